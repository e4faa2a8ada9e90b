from pydantic import AfterValidator, BaseModel, Field, field_validator
from typing import Annotated, Optional
from datetime import datetime, timezone
from decimal import Decimal
import enum


class UserRole(str, enum.Enum):
    """Roles reported by the upstream member directory."""
    ADMIN = "Admin"
    MEMBER = "Member"


class GoalStatus(str, enum.Enum):
    """Goal status."""
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ContributionStatus(str, enum.Enum):
    """Contribution status."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class LoanStatus(str, enum.Enum):
    """Loan status."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PAID = "Paid"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Upstream mixes offset-aware and naive timestamps; naive ones are UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class SourceRecord(BaseModel):
    """Base for upstream records: camelCase on the wire, unknown fields ignored."""

    class Config:
        populate_by_name = True
        frozen = True
        extra = "ignore"


class UserRecord(SourceRecord):
    user_id: int = Field(..., alias="userId")
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: str = ""
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    role: str
    is_active: Optional[bool] = Field(None, alias="isActive")
    created_at: UtcDatetime = Field(..., alias="createdAt")
    profile_picture_url: Optional[str] = Field(None, alias="profilePictureUrl")

    @field_validator("first_name", "last_name", "email", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class GoalRecord(SourceRecord):
    goal_id: int = Field(..., alias="goalId")
    goal_name: str = Field(..., alias="goalName")
    status: str
    progress_percentage: Optional[Decimal] = Field(None, alias="progressPercentage")
    start_date: Optional[UtcDatetime] = Field(None, alias="startDate")


class ContributionRecord(SourceRecord):
    contribution_id: int = Field(..., alias="contributionId")
    user_id: int = Field(..., alias="userId")
    goal_id: int = Field(..., alias="goalId")
    goal_name: str = Field("", alias="goalName")
    amount: Decimal = Field(..., ge=0)
    status: str
    submitted_at: Optional[UtcDatetime] = Field(None, alias="submittedAt")


class LoanRecord(SourceRecord):
    loan_id: int = Field(..., alias="loanId")
    user_id: int = Field(..., alias="userId")
    principal_amount: Decimal = Field(..., alias="principalAmount")
    status: str
    requested_date: Optional[UtcDatetime] = Field(None, alias="requestedDate")
    remaining_amount: Decimal = Field(Decimal("0"), ge=0, alias="remainingAmount")

    @field_validator("remaining_amount", mode="before")
    @classmethod
    def none_to_zero(cls, value):
        return Decimal("0") if value is None else value
