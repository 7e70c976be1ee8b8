"""Membership term parsing.

Package terms are free text such as "6 months", "1 year", "3 tháng" or "1 năm".
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from dateutil.relativedelta import relativedelta

LOGGER = logging.getLogger(__name__)

_MONTH_WORDS = ("tháng", "month")
_YEAR_WORDS = ("năm", "year")
_LEADING_NUMBER = re.compile(r"^\s*(\d+)")

DEFAULT_TERM = relativedelta(years=1)
DEFAULT_MONTHLY_TERM = relativedelta(months=6)
DEFAULT_YEARLY_TERM = relativedelta(years=1)


def term_duration(term: str | None) -> relativedelta:
	"""Return the validity duration described by ``term``.

	Month terms that cannot be parsed fall back to six months, year terms to one
	year. Missing or unrecognised terms default to one year.
	"""
	if not term or not term.strip():
		return DEFAULT_TERM
	normalised = term.strip().lower()
	match = _LEADING_NUMBER.match(normalised)
	count = int(match.group(1)) if match else None
	if any(word in normalised for word in _MONTH_WORDS):
		if count is None or count <= 0:
			LOGGER.warning("unparseable_term", extra={"term": term, "fallback": "6 months"})
			return DEFAULT_MONTHLY_TERM
		return relativedelta(months=count)
	if any(word in normalised for word in _YEAR_WORDS):
		if count is None or count <= 0:
			LOGGER.warning("unparseable_term", extra={"term": term, "fallback": "1 year"})
			return DEFAULT_YEARLY_TERM
		return relativedelta(years=count)
	LOGGER.warning("unknown_term", extra={"term": term, "fallback": "1 year"})
	return DEFAULT_TERM


def compute_end_date(start: datetime, term: str | None) -> datetime:
	return start + term_duration(term)
