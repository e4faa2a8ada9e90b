import csv
import io
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from app.core.config import settings
from app.schemas.report import MemberSummary

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
CSV_DATE_FORMAT = "%Y-%m-%d"

EXPORT_COLUMNS = [
    "Name",
    "Email",
    "Phone",
    "Total Contributed",
    "Contributions",
    "Goals Joined",
    "Active Loans",
    "Member Since",
]


@dataclass(frozen=True)
class ExportPayload:
    filename: str
    content: str
    row_count: int = 0
    media_type: str = CSV_MEDIA_TYPE


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{settings.EXPORT_FILENAME_PREFIX}-{today.isoformat()}.csv"


def _format_amount(amount: Decimal) -> str:
    return f"{amount.quantize(Decimal('0.01'))}"


def export_row(member: MemberSummary) -> list:
    return [
        member.name,
        member.email,
        member.phone_number or "",
        _format_amount(member.total_contributed),
        str(member.contribution_count),
        str(member.goals_joined),
        "Yes" if member.has_active_loans else "No",
        member.member_since.strftime(CSV_DATE_FORMAT),
    ]


def export_members_csv(members: Sequence[MemberSummary], today: Optional[date] = None) -> ExportPayload:
    """Serialize the displayed rows, in display order, as fully quoted CSV."""
    csv_content = io.StringIO()
    writer = csv.writer(csv_content, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for member in members:
        writer.writerow(export_row(member))

    csv_data = csv_content.getvalue()
    csv_content.close()
    return ExportPayload(filename=export_filename(today), content=csv_data, row_count=len(members))
