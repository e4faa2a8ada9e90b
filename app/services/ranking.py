from decimal import Decimal
from typing import List, Optional, Sequence

from app.schemas.report import (
    MemberSummary,
    RankingMode,
    ReportStatistics,
    ReportView,
    SortBy,
    SortOrder,
)


def _sort_key(sort_by: SortBy):
    if sort_by == SortBy.NAME:
        return lambda m: m.name.casefold()
    if sort_by == SortBy.TOTAL_CONTRIBUTED:
        return lambda m: m.total_contributed
    if sort_by == SortBy.CONTRIBUTION_COUNT:
        return lambda m: m.contribution_count
    if sort_by == SortBy.GOALS_JOINED:
        return lambda m: m.goals_joined
    raise ValueError(f"Unsupported sort key: {sort_by}")


def rank_members(
    members: Sequence[MemberSummary],
    mode: RankingMode = RankingMode.DEFAULT,
    sort_by: Optional[SortBy] = None,
    sort_order: SortOrder = SortOrder.DESC,
) -> List[MemberSummary]:
    """Order report rows.

    DEFAULT: favorites first, each group by total contributed high to low.
    USER: by `sort_by` only, direction from `sort_order`. Both are stable.
    """
    if mode == RankingMode.DEFAULT:
        return sorted(members, key=lambda m: (not m.is_favorite, -m.total_contributed))

    if sort_by is None:
        raise ValueError("sort_by is required when ranking in user mode")
    # sorted() stays stable with reverse=True, so ties keep input order either way
    return sorted(members, key=_sort_key(sort_by), reverse=sort_order == SortOrder.DESC)


def matches_search(member: MemberSummary, search: str) -> bool:
    needle = search.casefold()
    return (
        needle in member.name.casefold()
        or needle in member.email.casefold()
        or (member.phone_number is not None and needle in member.phone_number.casefold())
    )


def filter_members(
    members: Sequence[MemberSummary],
    search: str = "",
    limit: Optional[int] = None,
) -> List[MemberSummary]:
    """Search name/email/phone, then keep the first `limit` rows of the ranked input."""
    filtered = [m for m in members if matches_search(m, search)] if search else list(members)
    if limit:
        return filtered[:limit]
    return filtered


def apply_view(members: Sequence[MemberSummary], view: ReportView) -> List[MemberSummary]:
    """Rank, then filter and limit, according to the caller's selections."""
    ranked = rank_members(members, view.mode, view.sort_by, view.sort_order)
    return filter_members(ranked, view.search, view.limit)


def summarize_view(members: Sequence[MemberSummary]) -> ReportStatistics:
    return ReportStatistics(
        total_members=len(members),
        total_contributed=sum((m.total_contributed for m in members), Decimal("0")),
        total_contributions=sum(m.contribution_count for m in members),
        favorite_members=sum(1 for m in members if m.is_favorite),
    )
