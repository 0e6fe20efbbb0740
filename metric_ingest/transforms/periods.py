"""
Period parsing for metric-ingest.

Converts a free-text period token into a canonical calendar date at
midnight UTC.  Spreadsheet exports write the same month in many ways, so
several notations are tried in order and the first one that matches wins:

  1. ``YYYY-MM`` or ``YYYY-MM-DD``   (day defaults to 1)
  2. ``M/YYYY`` or ``MM/YYYY``        (day defaults to 1)
  3. ``M/D/YYYY`` or ``MM/DD/YYYY``  (US month/day order)
  4. Anything ``pandas.to_datetime`` understands (e.g. ``"Jan 15, 2025"``)

A token that matches one of the strict notations but names an impossible
date (``2025-13``, ``2/30/2025``) is rejected outright rather than handed
to the generic fallback.  Tokens without a single digit never reach the
fallback either, so relative words like ``"now"`` are rejected.

All results are UTC-aware so that the same file yields the same dates on
every machine, regardless of the local timezone.
"""

from __future__ import annotations

import re
import warnings
from datetime import datetime, timezone

import pandas as pd

ACCEPTED_FORMATS_HINT = "Use YYYY-MM, YYYY-MM-DD, or MM/YYYY."

_ISO_RE = re.compile(r"^(\d{4})-(\d{2})(?:-(\d{2}))?$")
_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})/(\d{4})$")
_MONTH_DAY_YEAR_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def _utc_date(year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def _fallback_parse(text: str) -> datetime | None:
    with warnings.catch_warnings():
        # pandas warns when it has to guess a format per element
        warnings.simplefilter("ignore", UserWarning)
        try:
            ts = pd.to_datetime(text, errors="coerce")
        except (ValueError, OverflowError, TypeError):
            return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
    return _utc_date(ts.year, ts.month, ts.day)


def parse_period(text: str | None) -> datetime | None:
    """Parse a period token into a UTC-midnight ``datetime``.

    Returns ``None`` for blank or unrecognised input; never raises.

    Examples::

        parse_period("2025-01")     # 2025-01-01 00:00 UTC
        parse_period("1/2025")      # 2025-01-01 00:00 UTC
        parse_period("3/15/2025")   # 2025-03-15 00:00 UTC
        parse_period("not a date")  # None
    """
    if text is None:
        return None
    token = text.strip()
    if not token:
        return None

    match = _ISO_RE.match(token)
    if match:
        year, month, day = match.groups()
        return _utc_date(int(year), int(month), int(day or 1))

    match = _MONTH_YEAR_RE.match(token)
    if match:
        month, year = match.groups()
        return _utc_date(int(year), int(month), 1)

    match = _MONTH_DAY_YEAR_RE.match(token)
    if match:
        month, day, year = match.groups()
        return _utc_date(int(year), int(month), int(day))

    # "now", "today" etc. would resolve against the wall clock
    if not any(ch.isdigit() for ch in token):
        return None
    return _fallback_parse(token)
