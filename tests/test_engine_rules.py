"""
tests/test_engine_rules.py — Pure Rule Tests
=============================================

Covers the side-effect-free pieces under ``bfriends.engine``:
- vote transition table
- rank modes, calendar windows and paging math
- community activity scoring and match reasons
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from bfriends.database.models import UserRoleType, VoteType
from bfriends.engine.affinity import (
    MatchReason,
    ProfileSignals,
    community_activity,
    match_reasons,
)
from bfriends.engine.ranking import (
    RankMode,
    clamp_page,
    page_offset,
    parse_rank_mode,
    total_pages,
    window_bounds,
)
from bfriends.engine.votes import RowAction, parse_direction, transition

UP, DOWN = VoteType.UP, VoteType.DOWN


# ===========================================================================
# Vote transitions
# ===========================================================================
class TestVoteTransition:
    @pytest.mark.parametrize(
        "previous, requested, delta, action, new_type",
        [
            (None, UP, +1, RowAction.INSERT, UP),
            (None, DOWN, -1, RowAction.INSERT, DOWN),
            (UP, UP, -1, RowAction.DELETE, None),
            (DOWN, DOWN, +1, RowAction.DELETE, None),
            (UP, DOWN, -2, RowAction.UPDATE, DOWN),
            (DOWN, UP, +2, RowAction.UPDATE, UP),
        ],
    )
    def test_table(self, previous, requested, delta, action, new_type):
        step = transition(previous, requested)
        assert step.delta == delta
        assert step.action is action
        assert step.new_type == new_type

    def test_parse_direction_is_case_insensitive(self):
        assert parse_direction("up") is UP
        assert parse_direction(" Down ") is DOWN
        assert parse_direction(DOWN) is DOWN

    @pytest.mark.parametrize("raw", ["", "sideways", "+1", None])
    def test_parse_direction_rejects_unknown(self, raw):
        assert parse_direction(raw) is None


# ===========================================================================
# Rank modes & windows
# ===========================================================================
NOW = datetime(2026, 3, 18, 15, 30, tzinfo=UTC)  # a Wednesday


class TestRankMode:
    def test_wire_names(self):
        assert parse_rank_mode("top-week") is RankMode.TOP_WEEK
        assert parse_rank_mode("TOP-YEAR") is RankMode.TOP_YEAR

    @pytest.mark.parametrize("raw", [None, "", "hot", "top-decade"])
    def test_unknown_is_recent(self, raw):
        assert parse_rank_mode(raw) is RankMode.RECENT

    def test_recent_has_no_window(self):
        assert window_bounds(RankMode.RECENT, NOW) is None


class TestWindowBounds:
    def test_today(self):
        start, end = window_bounds(RankMode.TOP_TODAY, NOW)
        assert start == datetime(2026, 3, 18, tzinfo=UTC)
        assert end == datetime(2026, 3, 19, tzinfo=UTC)

    def test_week_starts_monday(self):
        start, end = window_bounds(RankMode.TOP_WEEK, NOW)
        assert start == datetime(2026, 3, 16, tzinfo=UTC)
        assert start.weekday() == 0
        assert end - start == timedelta(days=7)

    def test_week_on_a_monday_starts_that_day(self):
        start, _ = window_bounds(RankMode.TOP_WEEK, datetime(2026, 3, 16, 0, 0, tzinfo=UTC))
        assert start == datetime(2026, 3, 16, tzinfo=UTC)

    def test_month(self):
        assert window_bounds(RankMode.TOP_MONTH, NOW) == (
            datetime(2026, 3, 1, tzinfo=UTC),
            datetime(2026, 4, 1, tzinfo=UTC),
        )

    def test_december_rolls_into_next_year(self):
        start, end = window_bounds(RankMode.TOP_MONTH, datetime(2026, 12, 10, tzinfo=UTC))
        assert start == datetime(2026, 12, 1, tzinfo=UTC)
        assert end == datetime(2027, 1, 1, tzinfo=UTC)

    def test_year(self):
        assert window_bounds(RankMode.TOP_YEAR, NOW) == (
            datetime(2026, 1, 1, tzinfo=UTC),
            datetime(2027, 1, 1, tzinfo=UTC),
        )

    def test_naive_now_is_utc(self):
        naive = NOW.replace(tzinfo=None)
        assert window_bounds(RankMode.TOP_TODAY, naive) == window_bounds(RankMode.TOP_TODAY, NOW)

    def test_local_calendar_day(self):
        """20:00 UTC is already tomorrow at UTC+7."""
        wib = timezone(timedelta(hours=7))
        start, end = window_bounds(
            RankMode.TOP_TODAY, datetime(2026, 3, 18, 20, 0, tzinfo=UTC), wib
        )
        assert start == datetime(2026, 3, 18, 17, 0, tzinfo=UTC)
        assert end == datetime(2026, 3, 19, 17, 0, tzinfo=UTC)


class TestPaging:
    @pytest.mark.parametrize("raw, expected", [(3, 3), ("2", 2), (0, 1), (-4, 1), ("abc", 1), (None, 1)])
    def test_clamp_page(self, raw, expected):
        assert clamp_page(raw) == expected

    def test_offset(self):
        assert page_offset(1, 5) == 0
        assert page_offset(3, 5) == 10

    def test_total_pages_rounds_up(self):
        assert total_pages(12, 5) == 3
        assert total_pages(10, 5) == 2
        assert total_pages(0, 5) == 0


# ===========================================================================
# Affinity
# ===========================================================================
class TestCommunityActivity:
    def test_scores_posts_plus_comments(self):
        activity = community_activity(
            ["Chess", "Chess", "Robotics"],
            ["Robotics", "Robotics", "Chess", "Film"],
        )
        assert [(a.name, a.score) for a in activity] == [
            ("Chess", 3),
            ("Robotics", 3),
            ("Film", 1),
        ]

    def test_excludes_default_community(self):
        activity = community_activity(["PublicSphere", "Chess"], ["PublicSphere"], exclude="PublicSphere")
        assert [a.name for a in activity] == ["Chess"]

    def test_ignores_missing_names(self):
        assert community_activity([None], [None, ""]) == []


class TestMatchReasons:
    def _student(self, **kw) -> ProfileSignals:
        base = {
            "student_major": "Computer Science",
            "primary_role": UserRoleType.STUDENT,
            "student_batch": "B-26",
            "campuses": frozenset({"@Kemanggisan"}),
        }
        base.update(kw)
        return ProfileSignals(**base)

    def test_all_reasons_in_badge_order(self):
        me = self._student()
        them = self._student()
        assert match_reasons(me, them, candidate_communities=["Chess"], top=["Chess"]) == [
            MatchReason.MAJOR,
            MatchReason.ROLE,
            MatchReason.BATCH,
            MatchReason.CAMPUS,
            MatchReason.COMMUNITY,
        ]

    def test_batch_only_counts_for_students(self):
        me = self._student(primary_role=UserRoleType.EMPLOYEE, student_major=None)
        them = self._student(primary_role=UserRoleType.STUDENT, student_major=None, campuses=frozenset())
        assert match_reasons(me, them) == []

    def test_no_overlap(self):
        me = self._student()
        them = ProfileSignals(primary_role=UserRoleType.EMPLOYEE)
        assert match_reasons(me, them, candidate_communities=["Film"], top=["Chess"]) == []
