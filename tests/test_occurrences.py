# type: ignore
"""Tests for recurring session occurrence expansion"""
import logging
from datetime import date, time, timedelta

import pytest

from rift_admin.domain.scheduling.occurrences import (
    ORG_TZ,
    RecurrenceRule,
    days_array_to_string,
    expand_occurrences,
    format_days_of_week,
    iter_occurrences,
    occurs_on,
    org_today,
    parse_cancelled_dates,
    parse_days_of_week,
    validate_days_of_week,
)


def _make_session(**overrides):
    base = {
        "startdate": "2025-01-06",
        "enddate": "2025-01-27",
        "daysofweek": "monday",
        "starttime": "18:00",
        "endtime": "19:00",
        "repeat": "weekly",
        "cancel": None,
    }
    base.update(overrides)
    return base


SAMPLE_SESSIONS = [
    _make_session(),
    _make_session(daysofweek="Monday, Wednesday, FRIDAY", enddate="2025-03-31"),
    _make_session(daysofweek="lunes miércoles", cancel="2025-01-08,20250113"),
    _make_session(startdate="2024-12-28", enddate="2025-01-12", daysofweek="sat/sun"),
    _make_session(daysofweek="tue;thu", cancel="2025-01-07, 2025-01-09, 2025-01-14"),
]


class TestScenarios:
    def test_basic_weekly_recurrence(self):
        occurrences = expand_occurrences(_make_session())
        assert [o.ymd for o in occurrences] == ["20250106", "20250113", "20250120", "20250127"]
        for o in occurrences:
            assert o.start.time() == time(18, 0)
            assert o.end.time() == time(19, 0)
            assert o.start.tzinfo == ORG_TZ
            assert o.start.utcoffset() == timedelta(hours=-5)

    def test_cancellation_removes_one_date(self):
        occurrences = expand_occurrences(_make_session(cancel="20250113"))
        assert [o.date for o in occurrences] == [date(2025, 1, 6), date(2025, 1, 20), date(2025, 1, 27)]

    def test_iso_cancel_dates_are_honoured(self):
        occurrences = expand_occurrences(_make_session(cancel="2025-01-13, 2025-01-27"))
        assert [o.ymd for o in occurrences] == ["20250106", "20250120"]

    def test_missing_enddate_means_single_day(self):
        assert [o.ymd for o in expand_occurrences(_make_session(enddate=None))] == ["20250106"]

    def test_empty_days_of_week_yields_nothing(self):
        assert expand_occurrences(_make_session(daysofweek="")) == []
        assert expand_occurrences(_make_session(daysofweek=None)) == []

    def test_start_after_end_keeps_same_day_and_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            occurrences = expand_occurrences(_make_session(starttime="22:00", endtime="01:00"))
        assert len(occurrences) == 4
        first = occurrences[0]
        assert first.start.date() == first.end.date()
        assert first.end < first.start
        assert "starts after it ends" in caplog.text

    def test_dst_changes_offset(self):
        occurrences = expand_occurrences(
            _make_session(startdate="2025-03-03", enddate="2025-03-17", daysofweek="monday")
        )
        assert occurrences[0].start.utcoffset() == timedelta(hours=-5)
        assert occurrences[-1].start.utcoffset() == timedelta(hours=-4)

    def test_accepts_orm_like_objects(self, roster):
        occurrences = expand_occurrences(roster["session"])
        assert len(occurrences) == 4

    def test_missing_startdate_is_an_error(self):
        with pytest.raises(ValueError):
            expand_occurrences(_make_session(startdate=None))


class TestProperties:
    @pytest.mark.parametrize("session", SAMPLE_SESSIONS)
    def test_range_containment(self, session):
        rule = RecurrenceRule.from_session(session)
        for o in expand_occurrences(session):
            assert rule.start_date <= o.date <= rule.end_date

    @pytest.mark.parametrize("session", SAMPLE_SESSIONS)
    def test_weekday_membership(self, session):
        days = set(parse_days_of_week(session["daysofweek"]))
        for o in expand_occurrences(session):
            assert o.date.isoweekday() in days

    @pytest.mark.parametrize("session", SAMPLE_SESSIONS)
    def test_cancellation_exclusion(self, session):
        cancelled = parse_cancelled_dates(session["cancel"] or "")
        assert not {o.date for o in expand_occurrences(session)} & cancelled

    @pytest.mark.parametrize("session", SAMPLE_SESSIONS)
    def test_idempotent_and_ordered(self, session):
        first = expand_occurrences(session)
        second = expand_occurrences(session)
        assert first == second
        assert [o.date for o in first] == sorted(o.date for o in first)

    def test_iterator_is_lazy_and_restartable(self):
        session = _make_session()
        iterator = iter_occurrences(session)
        assert next(iterator).ymd == "20250106"
        assert next(iter_occurrences(session)).ymd == "20250106"


class TestParsing:
    def test_english_spanish_and_digits(self):
        assert parse_days_of_week("Monday, miércoles | 5") == [1, 3, 5]
        assert parse_days_of_week("0") == [7]
        assert parse_days_of_week("SUN 7 domingo") == [7]

    def test_unknown_tokens_ignored(self):
        assert parse_days_of_week("monday, funday") == [1]

    def test_cancel_list_ignores_garbage(self):
        assert parse_cancelled_dates("2025-01-13, nope, 20250120") == {date(2025, 1, 13), date(2025, 1, 20)}

    def test_display_helpers(self):
        assert format_days_of_week("monday,wednesday") == "Lun, Mié"
        assert days_array_to_string([1, 3]) == "monday,wednesday"
        assert validate_days_of_week("tue") is True
        assert validate_days_of_week("  ") is False


class TestOccursOn:
    def test_matches_expansion(self):
        session = _make_session(cancel="2025-01-20")
        expanded = {o.date for o in expand_occurrences(session)}
        day = date(2025, 1, 1)
        while day <= date(2025, 2, 1):
            assert occurs_on(session, day) == (day in expanded)
            day += timedelta(days=1)

    def test_org_today_is_a_date(self):
        assert isinstance(org_today(), date)
