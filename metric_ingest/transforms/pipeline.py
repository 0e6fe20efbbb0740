"""
Row validation pipeline for metric-ingest.

Turns a ``RawTable`` plus a column mapping into one classified
``RowResult`` per data row.  Each row runs the same chain of steps, in
order, and stops at the first failure:

1. **Metric**: resolve the metric name against the catalog.
2. **Department**: taken from the metric definition (never from the file).
3. **Value**: direct value, or numerator/denominator per the metric's type.
4. **Period**: parse the period token into a UTC date.
5. **Division** (optional): fixed override, else resolve the column text.
6. **Region** (optional): resolve within the division's regions when a
   division was found, else against all regions.  When only a department
   column is mapped, its text is read as a region name, by exact name or
   slug only.
7. **Notes** (optional): carried through verbatim.

Unresolved division/region text is not an error: those dimensions are
optional and the row is stored unscoped.

Rows are independent of each other -- one row's error never affects
another -- and the pipeline keeps no state between ``run()`` calls, so
re-running it after the mapping is edited is always safe.

Row numbers match the spreadsheet: the header is row 1, the first data row
is row 2.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Sequence

import pandas as pd

from metric_ingest.config import PeriodType, ReferenceCatalog, ValidationOptions
from metric_ingest.exceptions import ErrorKind, RowValidationError
from metric_ingest.mapping import CanonicalField, ColumnMapping, normalize_mapping, require_mapping
from metric_ingest.table import RawTable
from metric_ingest.transforms.entities import regions_for_division, resolve_entity
from metric_ingest.transforms.periods import ACCEPTED_FORMATS_HINT, parse_period
from metric_ingest.transforms.values import derive_value

logger = logging.getLogger(__name__)

FIRST_DATA_ROW = 2


class RowStatus(str, Enum):
    VALID = "valid"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class CanonicalRecord:
    """A fully validated metric entry, ready for the importer."""

    metric_id: str
    department_id: str
    period_type: PeriodType
    period_start: datetime
    value: float
    division_id: str | None = None
    region_id: str | None = None
    numerator: float | None = None
    denominator: float | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RowResult:
    """Outcome of validating one data row.

    ``data`` is set if and only if ``status`` is ``VALID``.
    """

    row_number: int
    status: RowStatus
    message: str | None = None
    data: CanonicalRecord | None = None

    def __post_init__(self) -> None:
        if (self.status is RowStatus.VALID) != (self.data is not None):
            raise ValueError(
                f"Row {self.row_number}: data must be present exactly when status is valid"
            )

    @classmethod
    def error(cls, row_number: int, message: str) -> RowResult:
        return cls(row_number=row_number, status=RowStatus.ERROR, message=message)

    @classmethod
    def valid(cls, row_number: int, data: CanonicalRecord) -> RowResult:
        return cls(row_number=row_number, status=RowStatus.VALID, data=data)


@dataclass
class ValidationReport:
    """All row results of one pipeline run, in file order.

    Attributes:
        results: One RowResult per data row.
        mapping: The effective column mapping the run used.
    """

    results: list[RowResult] = field(default_factory=list)
    mapping: ColumnMapping = field(default_factory=dict)

    def _count(self, status: RowStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def valid_count(self) -> int:
        return self._count(RowStatus.VALID)

    @property
    def warning_count(self) -> int:
        return self._count(RowStatus.WARNING)

    @property
    def error_count(self) -> int:
        return self._count(RowStatus.ERROR)

    @property
    def valid_records(self) -> list[CanonicalRecord]:
        return [r.data for r in self.results if r.data is not None]

    def to_frame(self) -> pd.DataFrame:
        """One row per result: row number, status, message, and record fields."""
        columns = [
            "row", "status", "message", "metric_id", "department_id",
            "division_id", "region_id", "period_type", "period_start",
            "value", "numerator", "denominator", "notes",
        ]
        records = []
        for r in self.results:
            d = r.data
            records.append({
                "row": r.row_number,
                "status": r.status.value,
                "message": r.message,
                "metric_id": d.metric_id if d else None,
                "department_id": d.department_id if d else None,
                "division_id": d.division_id if d else None,
                "region_id": d.region_id if d else None,
                "period_type": d.period_type if d else None,
                "period_start": d.period_start.date().isoformat() if d else None,
                "value": d.value if d else None,
                "numerator": d.numerator if d else None,
                "denominator": d.denominator if d else None,
                "notes": d.notes if d else None,
            })
        return pd.DataFrame.from_records(records, columns=columns)


@dataclass(frozen=True)
class _ColumnIndex:
    """Positions of each canonical field in the raw rows (-1 = unmapped)."""

    metric: int
    period: int
    value: int
    numerator: int
    denominator: int
    division: int
    region: int
    notes: int
    region_from_department: bool = False


class ValidationPipeline:
    """Validates every row of a RawTable against a reference catalog.

    The pipeline is **stateless**: ``run()`` is a pure function of the
    table, the mapping, the catalog and the options.
    """

    def __init__(
        self,
        catalog: ReferenceCatalog,
        options: ValidationOptions | None = None,
    ) -> None:
        self.catalog = catalog
        self.options = options or ValidationOptions()

    def run(
        self,
        table: RawTable,
        mapping: Mapping[CanonicalField | str, str | None],
    ) -> ValidationReport:
        """Validate all rows of *table*.

        Args:
            table: The uploaded rows.
            mapping: Canonical field -> raw header.  Headers that are not in
                the table are treated as unmapped.

        Returns:
            A ``ValidationReport`` with one result per data row.

        Raises:
            UnmappedFieldError: If ``metric``, ``period`` or a value source
                is unmapped.  Raised before any row is processed.
        """
        effective = self._effective_mapping(table, normalize_mapping(mapping))
        require_mapping(effective)
        index = self._column_index(table, effective)

        logger.info(
            "Validating %d rows from %s (period_type=%s)",
            len(table),
            table.source or "<memory>",
            self.options.period_type,
        )
        results = [
            self._validate_row(row, i + FIRST_DATA_ROW, index)
            for i, row in enumerate(table.rows)
        ]
        report = ValidationReport(results=results, mapping=effective)
        logger.info(
            "Validation complete: %d valid, %d warning, %d error",
            report.valid_count,
            report.warning_count,
            report.error_count,
        )
        return report

    # -- Mapping helpers ----------------------------------------------------

    @staticmethod
    def _effective_mapping(table: RawTable, mapping: ColumnMapping) -> ColumnMapping:
        effective: ColumnMapping = {}
        for canonical, header in mapping.items():
            if header and table.column_index(header) < 0:
                logger.warning(
                    "Mapped header %r for '%s' is not in the file; treating as unmapped",
                    header,
                    canonical.value,
                )
                header = ""
            effective[canonical] = header
        return effective

    @staticmethod
    def _column_index(table: RawTable, mapping: ColumnMapping) -> _ColumnIndex:
        def idx(canonical: CanonicalField) -> int:
            return table.column_index(mapping[canonical])

        # Templates label the region column "Department"
        region = idx(CanonicalField.REGION)
        region_from_department = region < 0
        if region_from_department:
            region = idx(CanonicalField.DEPARTMENT)

        return _ColumnIndex(
            metric=idx(CanonicalField.METRIC),
            period=idx(CanonicalField.PERIOD),
            value=idx(CanonicalField.VALUE),
            numerator=idx(CanonicalField.NUMERATOR),
            denominator=idx(CanonicalField.DENOMINATOR),
            division=idx(CanonicalField.DIVISION),
            region=region,
            notes=idx(CanonicalField.NOTES),
            region_from_department=region_from_department and region >= 0,
        )

    # -- Per-row chain ------------------------------------------------------

    def _validate_row(
        self,
        row: Sequence[str],
        row_number: int,
        index: _ColumnIndex,
    ) -> RowResult:
        try:
            record = self._build_record(row, index)
        except RowValidationError as exc:
            logger.debug("Row %d: %s (%s)", row_number, exc.message, exc.kind.value)
            return RowResult.error(row_number, exc.message)
        return RowResult.valid(row_number, record)

    def _build_record(self, row: Sequence[str], index: _ColumnIndex) -> CanonicalRecord:
        cell = RawTable.cell

        # 1. Metric
        raw_metric = cell(row, index.metric)
        metric_id = resolve_entity(raw_metric, self.catalog.metrics)
        metric = self.catalog.metric(metric_id) if metric_id else None
        if metric is None:
            raise RowValidationError(
                ErrorKind.UNRESOLVED_ENTITY, f'Unknown metric: "{raw_metric}"'
            )

        # 2. Department
        if not metric.department_id:
            raise RowValidationError(
                ErrorKind.MISSING_DEPARTMENT,
                f'Could not resolve department for metric "{raw_metric}"',
            )

        # 3. Value
        derived = derive_value(
            metric.data_type,
            numerator=cell(row, index.numerator),
            denominator=cell(row, index.denominator),
            value=cell(row, index.value),
            rate_multiplier=metric.rate_multiplier,
            components_mapped=index.numerator >= 0 or index.denominator >= 0,
        )

        # 4. Period
        raw_period = cell(row, index.period)
        period_start = parse_period(raw_period)
        if period_start is None:
            raise RowValidationError(
                ErrorKind.MALFORMED_DATE,
                f'Invalid date: "{raw_period}". {ACCEPTED_FORMATS_HINT}',
            )

        # 5. Division
        division_id = self.options.fixed_division_id
        if division_id is None:
            division_id = resolve_entity(cell(row, index.division), self.catalog.divisions)

        # 6. Region (department text must name a region exactly)
        region_id = resolve_entity(
            cell(row, index.region),
            regions_for_division(self.catalog.regions, division_id),
            substring=not index.region_from_department,
        )

        # 7. Notes
        notes = cell(row, index.notes) or None

        return CanonicalRecord(
            metric_id=metric.id,
            department_id=metric.department_id,
            period_type=self.options.period_type,
            period_start=period_start,
            value=derived.value,
            division_id=division_id,
            region_id=region_id,
            numerator=derived.numerator,
            denominator=derived.denominator,
            notes=notes,
        )
