"""
Header inference and column mapping for metric-ingest.

Uploaded files come with whatever headers a human typed.  This module
guesses which raw header holds each canonical field using a fixed synonym
table, and checks that the (possibly hand-edited) mapping covers the
fields the validator needs.

Inference rule, per field:
  For each synonym in priority order, scan the lowercased/trimmed headers
  left to right and take the first one that *equals* or *contains* the
  synonym.  The first synonym with any hit wins.  No scoring.

The template generator writes headers that this table recognises, so a
downloaded template maps itself with no manual edits.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Sequence

from metric_ingest.exceptions import UnmappedFieldError

logger = logging.getLogger(__name__)


class CanonicalField(str, Enum):
    METRIC = "metric"
    PERIOD = "period"
    VALUE = "value"
    NUMERATOR = "numerator"
    DENOMINATOR = "denominator"
    DEPARTMENT = "department"
    DIVISION = "division"
    REGION = "region"
    NOTES = "notes"


HEADER_SYNONYMS: Mapping[CanonicalField, tuple[str, ...]] = MappingProxyType({
    CanonicalField.METRIC: ("metric", "metric_name", "metric name", "kpi", "measure", "indicator"),
    CanonicalField.PERIOD: ("period", "date", "month", "period_start", "period start", "year", "time"),
    CanonicalField.VALUE: ("value", "amount", "count", "result", "score", "total", "number"),
    CanonicalField.NUMERATOR: ("numerator", "compliant", "events", "num"),
    CanonicalField.DENOMINATOR: ("denominator", "total", "exposure", "denom"),
    CanonicalField.DEPARTMENT: ("department", "dept", "department_name", "department name"),
    CanonicalField.DIVISION: ("division", "unit", "group", "section", "division_name"),
    CanonicalField.REGION: (
        "region",
        "individual",
        "person",
        "employee",
        "name",
        "individual_name",
        "base",
        "helicopter",
    ),
    CanonicalField.NOTES: ("notes", "note", "comment", "comments", "description"),
})


# Field -> raw header ("" = unmapped)
ColumnMapping = dict[CanonicalField, str]


def infer_column(headers: Sequence[str], field: CanonicalField) -> str:
    """Return the raw header that best matches *field*, or ``""``.

    The returned string is the header exactly as it appears in *headers*
    (original case and spacing), so it can be used to look the column up.
    """
    lowered = [h.lower().strip() for h in headers]
    for synonym in HEADER_SYNONYMS[field]:
        for idx, header in enumerate(lowered):
            if header == synonym or synonym in header:
                return headers[idx]
    return ""


def infer_mapping(headers: Sequence[str]) -> ColumnMapping:
    """Infer a header for every canonical field.

    The same header may be suggested for more than one field (e.g. a lone
    ``Total`` column matches both ``value`` and ``denominator``); a human is
    expected to review the suggestion before validating.
    """
    mapping = {field: infer_column(headers, field) for field in CanonicalField}
    logger.info(
        "Inferred mapping: %s",
        {f.value: h for f, h in mapping.items() if h},
    )
    return mapping


def normalize_mapping(mapping: Mapping[CanonicalField | str, str | None]) -> ColumnMapping:
    """Fill in unmapped fields and accept plain string keys.

    Lets callers pass ``{"metric": "KPI", "period": "Month"}`` instead of
    enum keys; ``None`` values are treated as unmapped.
    """
    result: ColumnMapping = {field: "" for field in CanonicalField}
    for key, header in mapping.items():
        result[CanonicalField(key)] = header or ""
    return result


def missing_required_fields(mapping: Mapping[CanonicalField, str]) -> list[str]:
    """List unmet mapping requirements (empty list means the mapping is usable).

    Requirements: ``metric`` and ``period`` are mapped, and either ``value``
    or both ``numerator`` and ``denominator`` are mapped.
    """
    missing: list[str] = []
    for field in (CanonicalField.METRIC, CanonicalField.PERIOD):
        if not mapping.get(field):
            missing.append(field.value)

    has_value = bool(mapping.get(CanonicalField.VALUE))
    has_components = bool(mapping.get(CanonicalField.NUMERATOR)) and bool(
        mapping.get(CanonicalField.DENOMINATOR)
    )
    if not (has_value or has_components):
        missing.append("value (or numerator + denominator)")
    return missing


def require_mapping(mapping: Mapping[CanonicalField, str]) -> None:
    """Raise ``UnmappedFieldError`` if the mapping cannot drive validation."""
    missing = missing_required_fields(mapping)
    if missing:
        raise UnmappedFieldError(missing)
