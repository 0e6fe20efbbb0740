"""
Custom exception hierarchy for metric-ingest.

Two families live here:

- **Run-level errors** (``MetricIngestError`` subclasses) abort a whole
  upload before any row is inspected: the file is too big, has too many
  rows, or the column mapping is missing a required field.
- **Row-level errors** (``RowValidationError``) are raised inside a single
  row's validation chain and are always caught by the pipeline and turned
  into an ``error`` RowResult.  They never escape ``ValidationPipeline.run()``.
"""

from __future__ import annotations

from enum import Enum


class MetricIngestError(Exception):
    """Base exception for all metric-ingest errors."""


class CatalogError(MetricIngestError):
    """Raised when a reference catalog file is empty.

    Content problems (duplicate ids, a region whose ``divisionId`` is not in
    the division list) surface as ``pydantic.ValidationError`` from
    ``load_catalog``.
    """


class UnsupportedFileError(MetricIngestError):
    """Raised when an upload has an extension other than csv/tsv/txt."""


class FileTooLargeError(MetricIngestError):
    """Raised when an upload exceeds the configured byte limit."""


class TooManyRowsError(MetricIngestError):
    """Raised when an upload exceeds the configured data-row limit."""


class EmptyTableError(MetricIngestError):
    """Raised when a file has no header row or no data rows."""


class TableParseError(MetricIngestError):
    """Raised when the delimited text itself cannot be parsed.

    Structural problems (e.g. a row with more cells than the header) are
    reported for the whole file, not as per-row validation errors.
    """


class UnmappedFieldError(MetricIngestError):
    """Raised when a required canonical field has no column mapping.

    Attributes:
        missing: Names of the unmapped requirements, e.g.
            ``["period", "value (or numerator + denominator)"]``.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Required columns are not mapped: " + ", ".join(self.missing)
        )


class TemplateRequestError(MetricIngestError):
    """Raised when a template request selects no metrics or unknown ones."""


class ExportError(MetricIngestError):
    """Raised when a template or report cannot be written to disk."""


class ImportLimitError(MetricIngestError):
    """Raised when more valid rows are handed to an importer than allowed."""


class ErrorKind(str, Enum):
    """Taxonomy of per-row data errors."""

    UNRESOLVED_ENTITY = "unresolved_entity"
    MALFORMED_NUMBER = "malformed_number"
    MALFORMED_DATE = "malformed_date"
    MISSING_DEPARTMENT = "missing_department"


class RowValidationError(MetricIngestError):
    """A single row failed one step of the validation chain.

    Attributes:
        kind: Which class of data error occurred.
        message: Human-readable, row-actionable message.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)
