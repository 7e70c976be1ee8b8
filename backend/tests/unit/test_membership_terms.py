from __future__ import annotations

from datetime import datetime, timezone

import pytest
from dateutil.relativedelta import relativedelta

from clubhouse.domain.memberships.terms import compute_end_date, term_duration


@pytest.mark.parametrize(
	"term, expected",
	[
		("6 months", relativedelta(months=6)),
		("1 month", relativedelta(months=1)),
		("3 tháng", relativedelta(months=3)),
		("1 year", relativedelta(years=1)),
		("2 năm", relativedelta(years=2)),
		("  12 Months ", relativedelta(months=12)),
	],
)
def test_term_duration_parses_leading_count(term, expected):
	assert term_duration(term) == expected


def test_unparseable_month_term_falls_back_to_six_months():
	assert term_duration("vài tháng") == relativedelta(months=6)


def test_unparseable_year_term_falls_back_to_one_year():
	assert term_duration("yearly") == relativedelta(years=1)


@pytest.mark.parametrize("term", [None, "", "   ", "semester"])
def test_missing_or_unknown_term_defaults_to_one_year(term):
	assert term_duration(term) == relativedelta(years=1)


def test_compute_end_date_clamps_month_end():
	start = datetime(2025, 8, 31, tzinfo=timezone.utc)
	assert compute_end_date(start, "6 months") == datetime(2026, 2, 28, tzinfo=timezone.utc)
