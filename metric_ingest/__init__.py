"""
metric-ingest: spreadsheet ingestion for quality-improvement metric data.

Public API surface:

- ``read_table(path, ...)`` -- Read an uploaded CSV/TSV/TXT into a
  ``RawTable``, enforcing the size/row preconditions.

- ``infer_mapping(headers)`` -- Guess which column holds each canonical
  field.  Review/override the result before validating.

- ``validate(table, catalog, ...)`` / ``validate_file(path, catalog, ...)``
  -- Classify every data row as valid or error.  Returns a
  ``ValidationReport``.

- ``generate_template(request, catalog, ...)`` -- Build (and optionally
  write) a blank upload template for a set of metrics and periods.

- ``import_rows(report, importer)`` -- Hand the valid records to an
  application-supplied importer in chunks.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from metric_ingest.config import (
    ReferenceCatalog,
    UploadLimits,
    ValidationOptions,
    load_catalog,
)
from metric_ingest.export import export_template
from metric_ingest.importer import BaseImporter, ImportSummary, InMemoryImporter, import_rows
from metric_ingest.mapping import CanonicalField, infer_mapping
from metric_ingest.table import RawTable, read_raw_table
from metric_ingest.template import TemplateRequest, TemplateTable, build_template
from metric_ingest.transforms.pipeline import (
    CanonicalRecord,
    RowResult,
    RowStatus,
    ValidationPipeline,
    ValidationReport,
)

__all__ = [
    "read_table",
    "infer_mapping",
    "validate",
    "validate_file",
    "generate_template",
    "import_rows",
    "BaseImporter",
    "CanonicalField",
    "CanonicalRecord",
    "ImportSummary",
    "InMemoryImporter",
    "RawTable",
    "ReferenceCatalog",
    "RowResult",
    "RowStatus",
    "TemplateRequest",
    "TemplateTable",
    "UploadLimits",
    "ValidationOptions",
    "ValidationReport",
]

logger = logging.getLogger(__name__)


def _as_catalog(catalog: ReferenceCatalog | str | Path) -> ReferenceCatalog:
    if isinstance(catalog, ReferenceCatalog):
        return catalog
    return load_catalog(catalog)


def read_table(path: str | Path, limits: UploadLimits | None = None) -> RawTable:
    """Read an uploaded file.  See ``metric_ingest.table.read_raw_table``."""
    return read_raw_table(path, limits)


def validate(
    table: RawTable,
    catalog: ReferenceCatalog | str | Path,
    mapping: Mapping[CanonicalField | str, str | None] | None = None,
    options: ValidationOptions | None = None,
) -> ValidationReport:
    """Validate every row of an already-read table.

    Args:
        table: The uploaded rows.
        catalog: A ReferenceCatalog, or a path to a catalog YAML file.
        mapping: Canonical field -> header.  If ``None``, the mapping is
            inferred from the table's headers.
        options: Period type and fixed-division override.

    Returns:
        A ``ValidationReport`` with one result per data row.

    Raises:
        UnmappedFieldError: If the (inferred or given) mapping lacks a
            required field.
    """
    if mapping is None:
        mapping = infer_mapping(table.headers)
    pipeline = ValidationPipeline(_as_catalog(catalog), options)
    return pipeline.run(table, mapping)


def validate_file(
    path: str | Path,
    catalog: ReferenceCatalog | str | Path,
    mapping: Mapping[CanonicalField | str, str | None] | None = None,
    options: ValidationOptions | None = None,
    limits: UploadLimits | None = None,
) -> ValidationReport:
    """Read *path* and validate it in one call.

    Orchestration:
      1. ``read_raw_table()`` -- extension, size and row-count checks.
      2. ``infer_mapping()`` if no mapping was given.
      3. ``ValidationPipeline.run()``.

    Raises:
        UnsupportedFileError, FileTooLargeError, TooManyRowsError,
        EmptyTableError, TableParseError: Precondition failures; no row
            has been inspected.
        UnmappedFieldError: If a required field is not mapped.
    """
    logger.info("validate_file() -- path=%s", path)
    table = read_raw_table(path, limits)
    return validate(table, catalog, mapping=mapping, options=options)


def generate_template(
    request: TemplateRequest,
    catalog: ReferenceCatalog | str | Path,
    output_path: str | Path | None = None,
) -> TemplateTable:
    """Build an upload template and optionally write it to *output_path*.

    Raises:
        TemplateRequestError: If no metric, or an unknown metric, is selected.
        ExportError: If the file cannot be written.
    """
    template = build_template(request, _as_catalog(catalog))
    if output_path is not None:
        export_template(template, output_path)
    return template
