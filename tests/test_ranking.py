"""Tests for ranking, search/limit filtering and view statistics."""

from datetime import date
from decimal import Decimal

import pytest

from app.schemas.report import MemberSummary, RankingMode, ReportView, SortBy, SortOrder
from app.services.ranking import apply_view, filter_members, rank_members, summarize_view


def _member(user_id, name, total="0", count=0, goals=0, favorite=None, email=None, phone=None):
    total = Decimal(total)
    if favorite is None:
        favorite = count >= 5 or total >= 1000
    return MemberSummary(
        user_id=user_id,
        name=name,
        email=email or f"{name.split()[0].lower()}@example.org",
        phone_number=phone,
        role="Member",
        member_since=date(2024, 1, 1),
        total_contributed=total,
        contribution_count=count,
        goals_joined=goals,
        is_favorite=favorite,
    )


@pytest.fixture
def members():
    return [
        _member(1, "amara Phiri", total="600", count=4, goals=3),
        _member(2, "Bongani Zulu", total="60", count=6, goals=1),
        _member(3, "Chipo Banda", total="0", count=0, goals=0, phone="+260 966 333 444"),
        _member(4, "Dalitso Mwale", total="1000", count=1, goals=1),
        _member(5, "Esther Tembo", total="600", count=2, goals=2),
    ]


def _ids(rows):
    return [m.user_id for m in rows]


class TestDefaultRanking:
    def test_favorites_first_then_total_descending(self, members):
        ranked = rank_members(members)
        assert _ids(ranked) == [4, 2, 1, 5, 3]
        flags = [m.is_favorite for m in ranked]
        assert flags == sorted(flags, reverse=True)

    def test_ties_keep_input_order(self, members):
        assert _ids(rank_members(list(reversed(members))))[2:4] == [5, 1]

    def test_ignores_sort_key_in_default_mode(self, members):
        ranked = rank_members(members, RankingMode.DEFAULT, SortBy.NAME, SortOrder.ASC)
        assert _ids(ranked) == [4, 2, 1, 5, 3]

    def test_does_not_mutate_input(self, members):
        before = _ids(members)
        rank_members(members)
        assert _ids(members) == before


class TestUserRanking:
    def test_name_ascending_is_case_insensitive(self, members):
        ranked = rank_members(members, RankingMode.USER, SortBy.NAME, SortOrder.ASC)
        assert _ids(ranked) == [1, 2, 3, 4, 5]

    def test_name_descending(self, members):
        ranked = rank_members(members, RankingMode.USER, SortBy.NAME, SortOrder.DESC)
        assert _ids(ranked) == [5, 4, 3, 2, 1]

    def test_total_descending_has_no_favorite_grouping(self, members):
        ranked = rank_members(members, RankingMode.USER, SortBy.TOTAL_CONTRIBUTED, SortOrder.DESC)
        assert _ids(ranked) == [4, 1, 5, 2, 3]

    def test_total_ascending_keeps_ties_in_input_order(self, members):
        ranked = rank_members(members, RankingMode.USER, SortBy.TOTAL_CONTRIBUTED, SortOrder.ASC)
        assert _ids(ranked) == [3, 2, 1, 5, 4]

    def test_contribution_count(self, members):
        ranked = rank_members(members, RankingMode.USER, SortBy.CONTRIBUTION_COUNT, SortOrder.DESC)
        assert _ids(ranked) == [2, 1, 5, 4, 3]

    def test_goals_joined_descending_is_stable(self, members):
        ranked = rank_members(members, RankingMode.USER, SortBy.GOALS_JOINED, SortOrder.DESC)
        assert _ids(ranked) == [1, 5, 2, 4, 3]

    def test_user_mode_requires_sort_key(self, members):
        with pytest.raises(ValueError):
            rank_members(members, RankingMode.USER, None)


class TestViewFilter:
    def test_empty_query_without_limit_is_identity(self, members):
        ranked = rank_members(members)
        assert filter_members(ranked, "", None) == ranked

    @pytest.mark.parametrize(
        "query, expected",
        [
            ("ZULU", [2]),
            ("esther@", [5]),
            ("966 333", [3]),
            ("an", [2, 3]),
            ("nobody", []),
        ],
    )
    def test_matches_name_email_or_phone(self, members, query, expected):
        assert _ids(filter_members(members, query)) == expected

    def test_limit_takes_top_of_ranked_order(self, members):
        ranked = rank_members(members)
        assert _ids(filter_members(ranked, "", 2)) == [4, 2]

    def test_limit_larger_than_rows(self, members):
        assert len(filter_members(members, "", 50)) == 5

    def test_limit_applies_after_search(self, members):
        ranked = rank_members(members)
        assert _ids(filter_members(ranked, "an", 1)) == [2]


class TestApplyView:
    def test_default_view_uses_default_mode(self, members):
        view = ReportView()
        assert view.mode == RankingMode.DEFAULT
        assert _ids(apply_view(members, view)) == [4, 2, 1, 5, 3]

    def test_sort_selection_switches_to_user_mode(self, members):
        view = ReportView(sort_by=SortBy.NAME, sort_order=SortOrder.ASC, limit=3)
        assert view.mode == RankingMode.USER
        assert _ids(apply_view(members, view)) == [1, 2, 3]

    def test_statistics_cover_displayed_rows(self, members):
        stats = summarize_view(apply_view(members, ReportView(limit=3)))
        assert stats.total_members == 3
        assert stats.total_contributed == Decimal("1660")
        assert stats.total_contributions == 11
        assert stats.favorite_members == 2
