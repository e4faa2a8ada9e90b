from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
import enum


class SortBy(str, enum.Enum):
    """Sort keys offered on the general report."""
    NAME = "name"
    TOTAL_CONTRIBUTED = "total_contributed"
    CONTRIBUTION_COUNT = "contribution_count"
    GOALS_JOINED = "goals_joined"


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class RankingMode(str, enum.Enum):
    """How the report is ordered.

    DEFAULT groups favorites first and orders each group by total contributed,
    high to low. USER orders by the caller's chosen key only.
    """
    DEFAULT = "default"
    USER = "user"


class ReportEmptyState(str, enum.Enum):
    NO_MEMBERS = "no_members"
    NO_MATCHES = "no_matches"


EMPTY_STATE_MESSAGES = {
    ReportEmptyState.NO_MEMBERS: "No members found",
    ReportEmptyState.NO_MATCHES: "No members match your search",
}


class MemberContribution(BaseModel):
    contribution_id: int
    goal_name: str
    amount: Decimal
    status: str
    submitted_at: Optional[datetime] = None

    class Config:
        frozen = True


class GoalParticipation(BaseModel):
    """A goal the member has at least one contribution against."""
    goal_id: int
    goal_name: str
    status: str
    progress: Decimal = Decimal("0")
    joined_at: Optional[datetime] = None

    class Config:
        frozen = True


class MemberLoan(BaseModel):
    loan_id: int
    principal_amount: Decimal
    status: str
    requested_date: Optional[datetime] = None
    remaining_amount: Decimal = Decimal("0")

    class Config:
        frozen = True


class MemberSummary(BaseModel):
    """Per-member row of the general report."""
    user_id: int
    name: str
    email: str
    phone_number: Optional[str] = None
    role: str
    member_since: date
    profile_picture_url: Optional[str] = None
    contributions: List[MemberContribution] = Field(default_factory=list)
    goals: List[GoalParticipation] = Field(default_factory=list)
    loans: List[MemberLoan] = Field(default_factory=list)
    total_contributed: Decimal = Decimal("0")
    contribution_count: int = 0
    goals_joined: int = 0
    has_active_loans: bool = False
    is_favorite: bool = False

    class Config:
        frozen = True


class ReportStatistics(BaseModel):
    """Summary cards computed over the displayed rows."""
    total_members: int = 0
    total_contributed: Decimal = Decimal("0")
    total_contributions: int = 0
    favorite_members: int = 0


class ReportView(BaseModel):
    """Search, sort and limit selections applied to a report."""
    search: str = ""
    sort_by: Optional[SortBy] = None
    sort_order: SortOrder = SortOrder.DESC
    limit: Optional[int] = Field(None, ge=1)

    @property
    def mode(self) -> RankingMode:
        return RankingMode.USER if self.sort_by is not None else RankingMode.DEFAULT


class GeneralReportResponse(BaseModel):
    generated_at: datetime
    ranking_mode: RankingMode
    sort_by: Optional[SortBy] = None
    sort_order: SortOrder
    search: str = ""
    limit: Optional[int] = None
    total_available: int
    members: List[MemberSummary]
    statistics: ReportStatistics
    empty_state: Optional[ReportEmptyState] = None
    empty_message: Optional[str] = None
    degraded_sources: List[str] = Field(default_factory=list)


class ReportErrorDetail(BaseModel):
    message: str
    retryable: bool = True
