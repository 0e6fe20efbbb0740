"""
Upload template generation for metric-ingest.

The inverse of the validation pipeline: given the metrics a user wants to
report, a period range and an organizational scope, build a blank table
whose headers and rows are exactly what the pipeline expects back.

Column layout:
- Only continuous metrics selected (6 columns)::

    Metric, Period, Value, Division, Department, Notes

- Any proportion/rate metric selected (8 columns)::

    Metric, Period, Value, Numerator (<label>), Denominator (<label>),
    Division, Department, Notes

  The label is shown only when every selected proportion/rate metric uses
  the same one; otherwise the header is plain ``Numerator``/``Denominator``.
  Value is left blank; numerator/denominator drive the computation.

The "Department" column carries region names.  Every header is checked
against ``infer_mapping`` so a filled-in template maps itself on upload.

Period expansion:
  monthly    one period per month, start..end inclusive
  quarterly  one per quarter (months 1/4/7/10), start's quarter..end's quarter
  annual     one per year, month 1
  other      the start date only (daily/weekly/bi-weekly are filled by hand)
  no start   a single blank period
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import pandas as pd
from pydantic import BaseModel, Field, field_validator

from metric_ingest.config import MetricDefinition, PeriodType, ReferenceCatalog
from metric_ingest.exceptions import TemplateRequestError
from metric_ingest.mapping import CanonicalField, infer_mapping
from metric_ingest.table import RawTable
from metric_ingest.transforms.values import component_labels

logger = logging.getLogger(__name__)

_PERIOD_INPUT_RE = re.compile(r"^(\d{4})-(\d{2})(?:-\d{2})?$")

GENERIC_NUMERATOR = "Numerator"
GENERIC_DENOMINATOR = "Denominator"


class TemplateRequest(BaseModel):
    """A user's template selection.

    ``region_id`` is the "department" filter of the upload screen: in the
    application regions are presented as departments of a division.
    """

    metric_ids: list[str] = Field(default_factory=list)
    division_id: str | None = None
    region_id: str | None = None
    period_type: PeriodType = "monthly"
    start: str | None = Field(None, description="YYYY-MM or YYYY-MM-DD")
    end: str | None = Field(None, description="YYYY-MM or YYYY-MM-DD")
    expand_by_scope: bool = True

    @field_validator("start", "end")
    @classmethod
    def _check_period_input(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip()
        match = _PERIOD_INPUT_RE.match(v)
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise ValueError(f"Expected YYYY-MM or YYYY-MM-DD, got '{v}'")
        return v


@dataclass
class TemplateTable:
    """A generated template: header row plus pre-filled rows."""

    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.headers)

    def to_raw_table(self) -> RawTable:
        return RawTable.from_rows(self.headers, self.rows, source="template")


def _year_month(text: str) -> tuple[int, int]:
    year, month = text.split("-")[:2]
    return int(year), int(month)


def expand_periods(
    period_type: PeriodType,
    start: str | None,
    end: str | None = None,
) -> list[str]:
    """List the period tokens a template should contain.

    Tokens are ``YYYY-MM`` for monthly/quarterly/annual expansion and the
    start text verbatim otherwise.  Always returns at least one entry
    (``""`` when nothing could be expanded).
    """
    periods: list[str] = []
    if start and end:
        start_year, start_month = _year_month(start)
        end_year, end_month = _year_month(end)

        if period_type == "monthly":
            y, m = start_year, start_month
            while (y, m) <= (end_year, end_month):
                periods.append(f"{y}-{m:02d}")
                m += 1
                if m > 12:
                    y, m = y + 1, 1
        elif period_type == "quarterly":
            y, q = start_year, (start_month - 1) // 3
            end_q = (end_month - 1) // 3
            while (y, q) <= (end_year, end_q):
                periods.append(f"{y}-{q * 3 + 1:02d}")
                q += 1
                if q > 3:
                    y, q = y + 1, 0
        elif period_type == "annual":
            periods.extend(f"{y}-01" for y in range(start_year, end_year + 1))
        else:
            periods.append(start)
    elif start:
        periods.append(start)

    if not periods:
        if start:
            logger.warning("Period range %s..%s is empty; using a blank period", start, end)
        periods.append("")
    return periods


def metrics_for_scope(
    catalog: ReferenceCatalog,
    division_id: str | None = None,
    region_id: str | None = None,
) -> list[MetricDefinition]:
    """Metrics associated with a division or region, in catalog order.

    With a region, only associations to that region count.  With a
    division, associations to the division itself or to any of its regions
    count.  With neither, every metric is returned.
    """
    if division_id is None and region_id is None:
        return list(catalog.metrics)

    matching: set[str] = set()
    for assoc in catalog.associations:
        if region_id is not None:
            if assoc.region_id == region_id:
                matching.add(assoc.metric_id)
        elif assoc.division_id == division_id:
            matching.add(assoc.metric_id)
        elif assoc.region_id:
            region = catalog.region(assoc.region_id)
            if region is not None and region.division_id == division_id:
                matching.add(assoc.metric_id)
    return [m for m in catalog.metrics if m.id in matching]


def _component_headers(metrics: list[MetricDefinition]) -> tuple[str, str]:
    labels = [component_labels(m) for m in metrics if m.uses_components]
    numerators = {pair[0] for pair in labels if pair}
    denominators = {pair[1] for pair in labels if pair}
    num = f"{GENERIC_NUMERATOR} ({numerators.pop()})" if len(numerators) == 1 else GENERIC_NUMERATOR
    den = f"{GENERIC_DENOMINATOR} ({denominators.pop()})" if len(denominators) == 1 else GENERIC_DENOMINATOR
    return num, den


def _build_headers(with_components: bool, numerator: str, denominator: str) -> list[str]:
    if with_components:
        return ["Metric", "Period", "Value", numerator, denominator, "Division", "Department", "Notes"]
    return ["Metric", "Period", "Value", "Division", "Department", "Notes"]


def _maps_itself(headers: list[str], with_components: bool) -> bool:
    """True if header inference assigns every template column to its own field."""
    expected = {
        CanonicalField.METRIC: headers[0],
        CanonicalField.PERIOD: headers[1],
        CanonicalField.VALUE: headers[2],
        CanonicalField.NUMERATOR: headers[3] if with_components else "",
        CanonicalField.DENOMINATOR: headers[4] if with_components else "",
        CanonicalField.DIVISION: headers[-3],
        CanonicalField.DEPARTMENT: headers[-2],
        CanonicalField.REGION: "",
        CanonicalField.NOTES: headers[-1],
    }
    return infer_mapping(headers) == expected


def template_headers(metrics: list[MetricDefinition]) -> list[str]:
    """Header row for a template covering *metrics*.

    Falls back to the generic numerator/denominator headers when a
    configured label would make header inference pick the wrong column.
    """
    with_components = any(m.uses_components for m in metrics)
    headers = _build_headers(with_components, *_component_headers(metrics))
    if with_components and not _maps_itself(headers, with_components):
        logger.warning(
            "Component labels in %s confuse header inference; using generic headers",
            headers[3:5],
        )
        headers = _build_headers(with_components, GENERIC_NUMERATOR, GENERIC_DENOMINATOR)
    return headers


def _division_of(catalog: ReferenceCatalog, region_id: str) -> str | None:
    region = catalog.region(region_id)
    return region.division_id if region else None


def _scope_rows(
    metric: MetricDefinition,
    request: TemplateRequest,
    catalog: ReferenceCatalog,
) -> list[tuple[str, str]]:
    """(division name, region name) pairs to emit for one metric and period."""
    if not request.expand_by_scope:
        return [("", "")]

    region_ids = [a.region_id for a in catalog.associations if a.metric_id == metric.id and a.region_id]
    division_ids = [a.division_id for a in catalog.associations if a.metric_id == metric.id and a.division_id]

    if request.region_id is not None:
        region_ids = [r for r in region_ids if r == request.region_id]
    elif request.division_id is not None:
        region_ids = [r for r in region_ids if _division_of(catalog, r) == request.division_id]

    if region_ids:
        pairs = []
        for rid in region_ids:
            region = catalog.region(rid)
            if region is None:
                logger.warning("Association for metric %s names unknown region %s", metric.id, rid)
                pairs.append(("", ""))
                continue
            division = catalog.division(region.division_id)
            pairs.append((division.name if division else "", region.name))
        return pairs

    if request.division_id is not None:
        division_ids = [d for d in division_ids if d == request.division_id]
    if division_ids:
        pairs = []
        for did in division_ids:
            division = catalog.division(did)
            if division is None:
                logger.warning("Association for metric %s names unknown division %s", metric.id, did)
            pairs.append((division.name if division else "", ""))
        return pairs

    return [("", "")]


def build_template(request: TemplateRequest, catalog: ReferenceCatalog) -> TemplateTable:
    """Build the template table for *request*.

    Rows are ordered by metric (catalog order), then period, then scope.

    Raises:
        TemplateRequestError: If no metric is selected or an id is unknown.
    """
    if not request.metric_ids:
        raise TemplateRequestError("Select at least one metric for the template.")
    known = {m.id for m in catalog.metrics}
    unknown = [mid for mid in request.metric_ids if mid not in known]
    if unknown:
        raise TemplateRequestError(f"Unknown metric ids in template request: {unknown}")

    selected_ids = set(request.metric_ids)
    metrics = [m for m in catalog.metrics if m.id in selected_ids]
    headers = template_headers(metrics)
    with_components = len(headers) == 8
    periods = expand_periods(request.period_type, request.start, request.end)

    rows: list[list[str]] = []
    for metric in metrics:
        for period in periods:
            for division_name, region_name in _scope_rows(metric, request, catalog):
                if with_components:
                    rows.append([metric.name, period, "", "", "", division_name, region_name, ""])
                else:
                    rows.append([metric.name, period, "", division_name, region_name, ""])

    logger.info(
        "Built template: %d metrics x %d periods -> %d rows, %d columns",
        len(metrics),
        len(periods),
        len(rows),
        len(headers),
    )
    return TemplateTable(headers=headers, rows=rows)
