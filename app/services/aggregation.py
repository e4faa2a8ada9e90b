import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.core.config import settings
from app.schemas.report import GoalParticipation, MemberContribution, MemberLoan, MemberSummary
from app.schemas.source import (
    ContributionRecord,
    ContributionStatus,
    GoalRecord,
    LoanRecord,
    LoanStatus,
    UserRecord,
    UserRole,
)

logger = logging.getLogger(__name__)

ContributionIndex = Dict[Tuple[int, int], List[ContributionRecord]]


def select_members(users: Iterable[UserRecord]) -> List[UserRecord]:
    """Keep only accounts whose role is exactly "Member" (administrators are excluded)."""
    return [u for u in users if u.role == UserRole.MEMBER.value]


def index_contributions(contributions: Iterable[ContributionRecord]) -> ContributionIndex:
    """Group contributions by (user_id, goal_id), preserving input order."""
    index: ContributionIndex = defaultdict(list)
    for contribution in contributions:
        index[(contribution.user_id, contribution.goal_id)].append(contribution)
    return index


def index_by_user(records: Iterable) -> Dict[int, list]:
    by_user: Dict[int, list] = defaultdict(list)
    for record in records:
        by_user[record.user_id].append(record)
    return by_user


def _first_submitted_at(contributions: Sequence[ContributionRecord]):
    timestamps = [c.submitted_at for c in contributions if c.submitted_at is not None]
    return min(timestamps) if timestamps else None


def build_goal_participations(
    member_id: int,
    goals: Sequence[GoalRecord],
    index: ContributionIndex,
) -> List[GoalParticipation]:
    """Goals the member has contributed to at least once, in goal-collection order.

    joined_at is the earliest contribution timestamp, or the goal's start date
    when none of the member's contributions to it carries a timestamp.
    """
    participations = []
    seen = set()
    for goal in goals:
        if goal.goal_id in seen:
            continue
        matches = index.get((member_id, goal.goal_id))
        if not matches:
            continue
        seen.add(goal.goal_id)

        joined_at = _first_submitted_at(matches)
        if joined_at is None:
            joined_at = goal.start_date

        participations.append(GoalParticipation(
            goal_id=goal.goal_id,
            goal_name=goal.goal_name,
            status=goal.status,
            progress=goal.progress_percentage or Decimal("0"),
            joined_at=joined_at,
        ))
    return participations


def is_favorite_member(
    contribution_count: int,
    total_contributed: Decimal,
    min_contributions: Optional[int] = None,
    min_total: Optional[Decimal] = None,
) -> bool:
    """Frequent or high-volume contributors; both thresholds are inclusive."""
    if min_contributions is None:
        min_contributions = settings.FAVORITE_MIN_CONTRIBUTIONS
    if min_total is None:
        min_total = settings.FAVORITE_MIN_TOTAL
    return contribution_count >= min_contributions or total_contributed >= min_total


def summarize_member(
    member: UserRecord,
    contributions: Sequence[ContributionRecord],
    participations: Sequence[GoalParticipation],
    loans: Sequence[LoanRecord],
) -> MemberSummary:
    """Reduce one member's joined records into a report row."""
    total_contributed = sum(
        (c.amount for c in contributions if c.status == ContributionStatus.APPROVED.value),
        Decimal("0"),
    )
    contribution_count = len(contributions)
    has_active_loans = any(
        loan.status == LoanStatus.APPROVED.value and loan.remaining_amount > 0
        for loan in loans
    )

    return MemberSummary(
        user_id=member.user_id,
        name=member.full_name,
        email=member.email,
        phone_number=member.phone_number,
        role=member.role,
        member_since=member.created_at.date(),
        profile_picture_url=member.profile_picture_url,
        contributions=[
            MemberContribution(
                contribution_id=c.contribution_id,
                goal_name=c.goal_name,
                amount=c.amount,
                status=c.status,
                submitted_at=c.submitted_at,
            )
            for c in contributions
        ],
        goals=list(participations),
        loans=[
            MemberLoan(
                loan_id=loan.loan_id,
                principal_amount=loan.principal_amount,
                status=loan.status,
                requested_date=loan.requested_date,
                remaining_amount=loan.remaining_amount,
            )
            for loan in loans
        ],
        total_contributed=total_contributed,
        contribution_count=contribution_count,
        goals_joined=len(participations),
        has_active_loans=has_active_loans,
        is_favorite=is_favorite_member(contribution_count, total_contributed),
    )


def build_member_summaries(
    users: Sequence[UserRecord],
    goals: Sequence[GoalRecord],
    contributions: Sequence[ContributionRecord],
    loans: Sequence[LoanRecord],
) -> List[MemberSummary]:
    """Join the four source collections into one summary per member, in member order."""
    members = select_members(users)
    pair_index = index_contributions(contributions)
    contributions_by_user = index_by_user(contributions)
    loans_by_user = index_by_user(loans)

    summaries = []
    for member in members:
        participations = build_goal_participations(member.user_id, goals, pair_index)
        summaries.append(summarize_member(
            member,
            contributions_by_user.get(member.user_id, []),
            participations,
            loans_by_user.get(member.user_id, []),
        ))

    logger.debug(f"Built {len(summaries)} member summaries from {len(users)} users")
    return summaries
