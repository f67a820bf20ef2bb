from datetime import date, datetime
from types import SimpleNamespace

import pytest

from archflow.exceptions import ValidationError
from archflow.models.submission import SubmissionStatus
from archflow.services.calendar import (
    business_days_between,
    is_business_day,
    is_overdue,
    project_completion_date,
)


class TestIsBusinessDay:
    def test_weekdays(self) -> None:
        assert is_business_day(date(2024, 1, 1))  # Monday
        assert is_business_day(date(2024, 1, 5))  # Friday

    def test_weekend(self) -> None:
        assert not is_business_day(date(2024, 1, 6))
        assert not is_business_day(date(2024, 1, 7))

    def test_accepts_datetime(self) -> None:
        assert not is_business_day(datetime(2024, 1, 6, 9, 30))


class TestBusinessDaysBetween:
    def test_full_week_counts_both_ends(self) -> None:
        assert business_days_between(date(2024, 1, 1), date(2024, 1, 5)) == 5

    def test_weekend_only(self) -> None:
        assert business_days_between(date(2024, 1, 6), date(2024, 1, 7)) == 0

    def test_across_weekend(self) -> None:
        assert business_days_between(date(2024, 1, 5), date(2024, 1, 8)) == 2

    def test_reversed_range_is_zero(self) -> None:
        assert business_days_between(date(2024, 1, 8), date(2024, 1, 1)) == 0


class TestProjectCompletionDate:
    def test_zero_days_is_start(self) -> None:
        assert project_completion_date(date(2024, 1, 3), 0) == date(2024, 1, 3)

    def test_friday_plus_one_is_monday(self) -> None:
        assert project_completion_date(date(2024, 1, 5), 1) == date(2024, 1, 8)

    def test_two_weeks(self) -> None:
        assert project_completion_date(date(2024, 1, 1), 10) == date(2024, 1, 15)

    def test_start_on_weekend(self) -> None:
        assert project_completion_date(date(2024, 1, 6), 1) == date(2024, 1, 8)

    def test_negative_days_rejected(self) -> None:
        with pytest.raises(ValidationError):
            project_completion_date(date(2024, 1, 1), -1)


class TestIsOverdue:
    def _submission(self, status, expected):
        return SimpleNamespace(status=status, expected_completion_date=expected)

    def test_past_expected_date(self) -> None:
        sub = self._submission(SubmissionStatus.under_review, date(2024, 1, 10))
        assert is_overdue(sub, date(2024, 1, 11))

    def test_on_expected_date_is_not_overdue(self) -> None:
        sub = self._submission(SubmissionStatus.submitted, date(2024, 1, 10))
        assert not is_overdue(sub, date(2024, 1, 10))

    def test_terminal_never_overdue(self) -> None:
        sub = self._submission(SubmissionStatus.approved, date(2024, 1, 10))
        assert not is_overdue(sub, date(2024, 3, 1))

    def test_without_expected_date(self) -> None:
        sub = self._submission(SubmissionStatus.draft, None)
        assert not is_overdue(sub, date(2024, 3, 1))
