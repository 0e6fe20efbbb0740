"""
Unit tests for ValidationPipeline (metric_ingest.transforms.pipeline).

Uses small in-memory RawTables and the shared test catalog.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from metric_ingest.config import MetricDefinition, ReferenceCatalog, ValidationOptions
from metric_ingest.exceptions import UnmappedFieldError
from metric_ingest.mapping import infer_mapping
from metric_ingest.table import RawTable
from metric_ingest.transforms.pipeline import (
    CanonicalRecord,
    RowResult,
    RowStatus,
    ValidationPipeline,
    ValidationReport,
)

HEADERS = ["Metric", "Period", "Value", "Numerator", "Denominator", "Division", "Region", "Notes"]


def _run(catalog, rows, headers=HEADERS, options=None, mapping=None) -> ValidationReport:
    table = RawTable.from_rows(headers, rows)
    if mapping is None:
        mapping = infer_mapping(table.headers)
    return ValidationPipeline(catalog, options).run(table, mapping)


def _single(catalog, row, **kwargs) -> RowResult:
    report = _run(catalog, [row], **kwargs)
    assert len(report.results) == 1
    return report.results[0]


class TestValidRows:
    """Rows that should come out valid."""

    def test_continuous_metric_with_division(self, catalog):
        result = _single(catalog, ["Total Calls", "2025-01", "1523", "", "", "Air Care", "", ""])
        assert result.status is RowStatus.VALID
        assert result.message is None
        record = result.data
        assert record.metric_id == "m-calls"
        assert record.department_id == "dept-ops"
        assert record.value == 1523
        assert record.period_start == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert record.division_id == "div-air"
        assert record.region_id is None
        assert record.period_type == "monthly"

    def test_proportion_from_components(self, catalog):
        result = _single(catalog, ["Compliance Rate", "2025-01", "", "45", "50", "", "", ""])
        assert result.status is RowStatus.VALID
        assert result.data.value == pytest.approx(0.9)
        assert (result.data.numerator, result.data.denominator) == (45, 50)

    def test_rate_uses_multiplier(self, catalog):
        result = _single(catalog, ["incident-rate", "1/2025", "", "45", "50", "", "", ""])
        assert result.data.value == pytest.approx(900)

    def test_region_narrowed_by_division(self, catalog):
        result = _single(
            catalog, ["Total Calls", "2025-02", "10", "", "", "Ground Ambulance", "Base 1", ""]
        )
        assert result.data.division_id == "div-ground"
        assert result.data.region_id == "reg-ground-1"

    def test_region_without_division_searches_all(self, catalog):
        result = _single(catalog, ["Total Calls", "2025-02", "10", "", "", "", "Base 2", ""])
        assert result.data.division_id is None
        assert result.data.region_id == "reg-air-2"

    def test_unresolved_division_and_region_are_tolerated(self, catalog):
        result = _single(catalog, ["Total Calls", "2025-02", "10", "", "", "Atlantis", "Nowhere", ""])
        assert result.status is RowStatus.VALID
        assert result.data.division_id is None
        assert result.data.region_id is None

    def test_notes_carried_through(self, catalog):
        result = _single(catalog, ["Total Calls", "2025-02", "10", "", "", "", "", " late entry "])
        assert result.data.notes == "late entry"

    def test_blank_notes_become_none(self, catalog):
        result = _single(catalog, ["Total Calls", "2025-02", "10", "", "", "", "", "  "])
        assert result.data.notes is None

    def test_ragged_row_reads_missing_cells_as_blank(self, catalog):
        result = _single(catalog, ["Total Calls", "2025-02", "10"])
        assert result.status is RowStatus.VALID
        assert result.data.division_id is None

    def test_options_apply_to_every_row(self, catalog):
        options = ValidationOptions(period_type="quarterly", fixed_division_id="div-north")
        report = _run(
            catalog,
            [
                ["Total Calls", "2025-01", "1", "", "", "Air Care", "", ""],
                ["Total Calls", "2025-04", "2", "", "", "", "", ""],
            ],
            options=options,
        )
        assert [r.data.division_id for r in report.results] == ["div-north", "div-north"]
        assert {r.data.period_type for r in report.results} == {"quarterly"}

    def test_department_column_read_as_region_when_region_unmapped(self, catalog):
        headers = ["Metric", "Period", "Value", "Division", "Department", "Notes"]
        result = _single(
            catalog, ["Total Calls", "2025-01", "5", "Air Care", "Base 2", ""], headers=headers
        )
        assert result.data.region_id == "reg-air-2"
        assert result.data.department_id == "dept-ops"

    @pytest.mark.parametrize("text", ["Base", "Quality", "Air Care Base 1 Team"])
    def test_department_column_needs_exact_region_name(self, catalog, text):
        """Department text is never fuzzy-matched against regions."""
        headers = ["Metric", "Period", "Value", "Division", "Department"]
        result = _single(
            catalog, ["Total Calls", "2025-01", "5", "Air Care", text], headers=headers
        )
        assert result.status is RowStatus.VALID
        assert result.data.region_id is None

    def test_region_column_still_matches_substrings(self, catalog):
        headers = ["Metric", "Period", "Value", "Division", "Region", "Department"]
        result = _single(
            catalog, ["Total Calls", "2025-01", "5", "Air Care", "Base 2 (north)", "Ops"],
            headers=headers,
        )
        assert result.data.region_id == "reg-air-2"


class TestErrorRows:
    """Rows that should be classified as errors."""

    def test_unknown_metric(self, catalog):
        result = _single(catalog, ["Unknown Thing", "2025-01", "5", "", "", "", "", ""])
        assert result.status is RowStatus.ERROR
        assert "Unknown metric" in result.message
        assert result.data is None

    def test_missing_department(self, catalog):
        result = _single(catalog, ["Orphan Metric", "2025-01", "5", "", "", "", "", ""])
        assert result.status is RowStatus.ERROR
        assert "department" in result.message

    def test_zero_denominator(self, catalog):
        result = _single(catalog, ["Compliance Rate", "2025-01", "", "3", "0", "", "", ""])
        assert "zero" in result.message

    def test_invalid_value(self, catalog):
        result = _single(catalog, ["Total Calls", "2025-01", "lots", "", "", "", "", ""])
        assert result.message.startswith("Invalid value")

    def test_missing_value_when_no_component_columns(self, catalog):
        headers = ["Metric", "Period", "Value"]
        result = _single(catalog, ["Compliance Rate", "2025-01", ""], headers=headers)
        assert result.message.startswith("Missing value")

    def test_invalid_date_names_formats(self, catalog):
        result = _single(catalog, ["Total Calls", "someday", "5", "", "", "", "", ""])
        assert result.status is RowStatus.ERROR
        assert 'Invalid date: "someday"' in result.message
        assert "YYYY-MM" in result.message

    def test_metric_checked_before_value_and_date(self, catalog):
        """The first failing step decides the message."""
        result = _single(catalog, ["Unknown Thing", "never", "abc", "", "", "", "", ""])
        assert "Unknown metric" in result.message

    def test_value_checked_before_date(self, catalog):
        result = _single(catalog, ["Total Calls", "never", "abc", "", "", "", "", ""])
        assert "Invalid value" in result.message


class TestPipelineRun:
    """Run-level behaviour: numbering, isolation, purity, preconditions."""

    def test_row_numbers_start_at_two(self, catalog):
        report = _run(
            catalog,
            [
                ["Total Calls", "2025-01", "1", "", "", "", "", ""],
                ["Unknown Thing", "2025-01", "1", "", "", "", "", ""],
                ["Total Calls", "2025-02", "2", "", "", "", "", ""],
            ],
        )
        assert [r.row_number for r in report.results] == [2, 3, 4]
        assert [r.status for r in report.results] == [
            RowStatus.VALID, RowStatus.ERROR, RowStatus.VALID,
        ]
        assert (report.valid_count, report.error_count, report.warning_count) == (2, 1, 0)
        assert len(report.valid_records) == 2

    def test_run_is_pure(self, catalog):
        rows = [
            ["Total Calls", "2025-01", "1", "", "", "Air Care", "Base 1", "x"],
            ["Compliance Rate", "bad", "", "1", "2", "", "", ""],
        ]
        first = _run(catalog, rows)
        second = _run(catalog, rows)
        assert first.results == second.results
        assert first.to_frame().equals(second.to_frame())

    def test_unmapped_required_field_blocks_run(self, catalog):
        table = RawTable.from_rows(["Metric", "Value"], [["Total Calls", "1"]])
        with pytest.raises(UnmappedFieldError, match="period"):
            ValidationPipeline(catalog).run(table, infer_mapping(table.headers))

    def test_mapped_header_missing_from_table_counts_as_unmapped(self, catalog):
        table = RawTable.from_rows(["Metric", "Value"], [["Total Calls", "1"]])
        mapping = {"metric": "Metric", "period": "Month", "value": "Value"}
        with pytest.raises(UnmappedFieldError):
            ValidationPipeline(catalog).run(table, mapping)

    def test_to_frame_columns(self, catalog):
        report = _run(catalog, [["Total Calls", "2025-01", "1", "", "", "", "", ""]])
        df = report.to_frame()
        assert list(df.columns[:3]) == ["row", "status", "message"]
        assert df.loc[0, "period_start"] == "2025-01-01"
        assert df.loc[0, "status"] == "valid"

    def test_substring_metric_resolution(self):
        catalog = ReferenceCatalog(metrics=[
            MetricDefinition(id="a", name="Response Time", department_id="d"),
        ])
        table = RawTable.from_rows(["KPI", "Month", "Amount"], [["Avg Response Time (min)", "2025-01", "7.5"]])
        report = ValidationPipeline(catalog).run(table, infer_mapping(table.headers))
        assert report.results[0].data.metric_id == "a"


class TestRowResult:
    """The data-iff-valid invariant is enforced at construction."""

    def test_valid_without_data_rejected(self):
        with pytest.raises(ValueError):
            RowResult(row_number=2, status=RowStatus.VALID)

    def test_error_with_data_rejected(self):
        record = CanonicalRecord(
            metric_id="m", department_id="d", period_type="monthly",
            period_start=datetime(2025, 1, 1, tzinfo=timezone.utc), value=1.0,
        )
        with pytest.raises(ValueError):
            RowResult(row_number=2, status=RowStatus.ERROR, message="x", data=record)
