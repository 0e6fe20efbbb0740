"""
Exporter for metric-ingest.

Writes the two tables this library hands back to people:

- **Templates** (``export_template``): CSV, or TSV when the target path
  ends in ``.tsv``.  Written with ``utf-8-sig`` (BOM) so Excel opens the
  file with the right encoding.
- **Validation reports** (``export_report``): the per-row outcome table
  (row number, status, message, record fields) as CSV or Parquet, for
  review outside the application.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import pandas as pd

from metric_ingest.exceptions import ExportError
from metric_ingest.template import TemplateTable
from metric_ingest.transforms.pipeline import ValidationReport

logger = logging.getLogger(__name__)

_SUPPORTED_FORMATS = {"csv", "parquet"}


def _write_dataframe(
    df: pd.DataFrame,
    path: Path,
    output_format: str,
    sep: str = ",",
) -> None:
    """Write a single DataFrame to disk in the specified format.

    Raises:
        ExportError: If writing fails for any reason.
    """
    try:
        if output_format == "csv":
            df.to_csv(path, index=False, sep=sep, encoding="utf-8-sig")
        else:  # parquet
            df.to_parquet(path, index=False, engine="pyarrow")
    except Exception as exc:
        raise ExportError(
            f"Failed to write {path.name} as {output_format}: {exc}"
        ) from exc


def export_template(template: TemplateTable, path: str | Path) -> str:
    """Write a template to *path* as CSV (or TSV for a ``.tsv`` suffix).

    The parent directory is created if needed.

    Returns:
        The path written, as a string.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sep = "\t" if path.suffix.lower() == ".tsv" else ","
    _write_dataframe(template.to_frame(), path, "csv", sep=sep)
    logger.info(
        "Exported template -> %s (%d rows, %d cols)",
        path.name,
        len(template.rows),
        len(template.headers),
    )
    return str(path)


def export_report(
    report: ValidationReport,
    path: str | Path,
    output_format: Literal["csv", "parquet"] = "csv",
) -> str:
    """Write a validation report's result table to disk.

    Raises:
        ExportError: If *output_format* is unsupported, or the write fails.
    """
    if output_format not in _SUPPORTED_FORMATS:
        raise ExportError(
            f"Unsupported output format: '{output_format}'. "
            f"Supported formats: {sorted(_SUPPORTED_FORMATS)}"
        )

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = report.to_frame()
    _write_dataframe(df, path, output_format)
    logger.info(
        "Exported validation report -> %s (%d rows: %d valid, %d error)",
        path.name,
        len(df),
        report.valid_count,
        report.error_count,
    )
    return str(path)
