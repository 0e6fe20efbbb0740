"""
Raw table reading for metric-ingest.

Turns an uploaded delimited text file into a ``RawTable``: the header row
plus every data row as plain strings, exactly as a human typed them.  No
interpretation happens here -- numbers, dates and names stay text until the
validation pipeline resolves them.

Preconditions (checked in this order, before the data is parsed):
1. Extension is one of ``UploadLimits.allowed_extensions``.
2. File size is at most ``UploadLimits.max_bytes``.
3. After parsing, at least one data row and at most ``max_rows`` rows.

Delimiter choice:
- ``.tsv`` is always tab-separated.
- ``.csv`` / ``.txt`` are sniffed from the header line: tab if it has more
  tabs than commas, otherwise comma.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

from metric_ingest.config import UploadLimits
from metric_ingest.exceptions import (
    EmptyTableError,
    FileTooLargeError,
    TableParseError,
    TooManyRowsError,
    UnsupportedFileError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawTable:
    """An uploaded table before any interpretation.

    Attributes:
        headers: Header cells in file order.
        rows: Data rows in file order.  A row may be shorter than
            ``headers`` if the source file is ragged; missing cells read
            as empty strings.
        source: Where the table came from (file name), for log messages.
    """

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = field(default_factory=tuple)
    source: str = ""

    @classmethod
    def from_rows(
        cls,
        headers: Sequence[str],
        rows: Iterable[Sequence[str]],
        source: str = "",
    ) -> RawTable:
        return cls(
            headers=tuple(str(h) for h in headers),
            rows=tuple(tuple(str(c) for c in row) for row in rows),
            source=source,
        )

    @classmethod
    def from_frame(cls, df: pd.DataFrame, source: str = "") -> RawTable:
        """Build a RawTable from a DataFrame; NaN cells become empty strings."""
        values = df.astype(object).where(df.notna(), "").astype(str)
        return cls.from_rows(list(df.columns), values.itertuples(index=False), source)

    def __len__(self) -> int:
        return len(self.rows)

    def column_index(self, header: str) -> int:
        """Index of *header*, or -1 when it is empty or absent."""
        if not header:
            return -1
        try:
            return self.headers.index(header)
        except ValueError:
            return -1

    @staticmethod
    def cell(row: Sequence[str], index: int) -> str:
        """Cell at *index* with surrounding whitespace removed ('' if absent)."""
        if index < 0 or index >= len(row):
            return ""
        return row[index].strip()


def _check_extension(path: Path, limits: UploadLimits) -> None:
    ext = path.suffix.lower().lstrip(".")
    if ext not in limits.allowed_extensions:
        raise UnsupportedFileError(
            f"Unsupported file type '{path.suffix}'. "
            f"Please upload one of: {', '.join('.' + e for e in limits.allowed_extensions)}"
        )


def _check_size(path: Path, limits: UploadLimits) -> None:
    size = path.stat().st_size
    if size > limits.max_bytes:
        raise FileTooLargeError(
            f"File too large ({size:,} bytes). "
            f"Maximum size is {limits.max_bytes // (1024 * 1024)} MB."
        )


def _sniff_delimiter(path: Path) -> str:
    if path.suffix.lower() == ".tsv":
        return "\t"
    with open(path, "r", encoding="utf-8-sig") as f:
        first_line = f.readline()
    return "\t" if first_line.count("\t") > first_line.count(",") else ","


def read_raw_table(path: str | Path, limits: UploadLimits | None = None) -> RawTable:
    """Read a delimited upload into a ``RawTable``.

    Every cell is read as a string; pandas' NA inference is disabled so
    values like ``"N/A"`` or ``"null"`` reach the validator untouched.
    Lines that are entirely blank are ignored.

    Args:
        path: Path to the ``.csv`` / ``.tsv`` / ``.txt`` file.
        limits: Size limits; defaults to ``UploadLimits()``.

    Returns:
        The parsed table.

    Raises:
        FileNotFoundError: If *path* does not exist.
        UnsupportedFileError: If the extension is not allowed.
        FileTooLargeError: If the file exceeds ``max_bytes``.
        TableParseError: If the text is not UTF-8 or cannot be parsed as a
            delimited table.
        EmptyTableError: If there is no header or no data row.
        TooManyRowsError: If there are more than ``max_rows`` data rows.
    """
    path = Path(path)
    limits = limits or UploadLimits()
    if not path.exists():
        raise FileNotFoundError(f"Upload not found: {path}")

    _check_extension(path, limits)
    _check_size(path, limits)

    try:
        sep = _sniff_delimiter(path)
        df = pd.read_csv(
            path,
            sep=sep,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError as exc:
        raise EmptyTableError(f"File appears empty: {path.name}") from exc
    except pd.errors.ParserError as exc:
        raise TableParseError(f"Failed to parse {path.name}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise TableParseError(
            f"{path.name} is not UTF-8 text. Re-save it as \"CSV UTF-8\" and upload again."
        ) from exc

    df = df.fillna("")
    df = df[df.apply(lambda r: any(str(c).strip() for c in r), axis=1)]
    if len(df) < 2:
        raise EmptyTableError(
            "File appears empty or has only headers. Need at least one data row."
        )

    n_rows = len(df) - 1
    if n_rows > limits.max_rows:
        raise TooManyRowsError(
            f"Too many rows ({n_rows:,}). Maximum is {limits.max_rows:,} per upload."
        )

    records = df.values.tolist()
    headers = [str(h).strip() for h in records[0]]
    table = RawTable.from_rows(headers, records[1:], source=path.name)
    logger.info(
        "Read %s: %d data rows x %d columns (sep=%r)",
        path.name,
        len(table),
        len(table.headers),
        sep,
    )
    return table
