"""
Import hand-off for metric-ingest.

Persistence is not this library's job: an importer supplied by the host
application writes records to storage and decides what counts as a
duplicate.  This module defines that boundary and the one rule on this
side of it -- only rows classified ``valid`` ever reach an importer.

- ``BaseImporter``: the interface an application implements.
- ``ImportSummary``: counts of created/skipped rows plus an optional fatal
  error string.
- ``import_rows()``: filters valid records, enforces the row cap, and feeds
  the importer in fixed-size chunks, stopping at the first fatal error.
- ``InMemoryImporter``: a dictionary-backed importer keyed by
  metric + period + division + region, useful for tests and dry runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from metric_ingest.exceptions import ImportLimitError
from metric_ingest.transforms.pipeline import CanonicalRecord, RowResult, ValidationReport

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500
DEFAULT_MAX_ROWS = 10_000


@dataclass
class ImportSummary:
    """What an importer reports back after writing records."""

    created: int = 0
    skipped: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class BaseImporter(ABC):
    """Abstract base class for record importers.

    Implementations receive at most ``chunk_size`` records per call and
    must report how many were created and how many were skipped as
    duplicates.  A non-``None`` ``error`` in the returned summary stops the
    import.
    """

    @abstractmethod
    def import_chunk(self, records: Sequence[CanonicalRecord]) -> ImportSummary:
        """Persist *records* and report the outcome."""


class InMemoryImporter(BaseImporter):
    """Keeps records in a dict; a repeated metric/period/scope is skipped."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, datetime, str | None, str | None], CanonicalRecord] = {}

    @staticmethod
    def key(record: CanonicalRecord) -> tuple[str, datetime, str | None, str | None]:
        return (record.metric_id, record.period_start, record.division_id, record.region_id)

    def import_chunk(self, records: Sequence[CanonicalRecord]) -> ImportSummary:
        summary = ImportSummary()
        for record in records:
            k = self.key(record)
            if k in self.records:
                summary.skipped += 1
                continue
            self.records[k] = record
            summary.created += 1
        return summary


def _valid_records(source: ValidationReport | Iterable[RowResult]) -> list[CanonicalRecord]:
    if isinstance(source, ValidationReport):
        return source.valid_records
    return [r.data for r in source if r.data is not None]


def import_rows(
    source: ValidationReport | Iterable[RowResult],
    importer: BaseImporter,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> ImportSummary:
    """Hand the valid records of a validation run to *importer*.

    Args:
        source: A ValidationReport or any iterable of RowResults; rows that
            are not valid are ignored.
        importer: Where the records go.
        chunk_size: Records per ``import_chunk`` call.
        max_rows: Upper bound on valid records accepted in one import.

    Returns:
        Totals across all chunks.  If a chunk reports an error the import
        stops and the totals so far are returned with that error.

    Raises:
        ImportLimitError: If there are more than *max_rows* valid records.
        ValueError: If *chunk_size* is not positive.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    records = _valid_records(source)
    if not records:
        return ImportSummary(error="No valid rows.")
    if len(records) > max_rows:
        raise ImportLimitError(
            f"Too many rows ({len(records):,}). Maximum is {max_rows:,} per upload."
        )

    total = ImportSummary()
    for start in range(0, len(records), chunk_size):
        chunk = records[start:start + chunk_size]
        result = importer.import_chunk(chunk)
        total.created += result.created
        total.skipped += result.skipped
        if result.error is not None:
            logger.error(
                "Import stopped at chunk starting with record %d: %s", start, result.error
            )
            total.error = result.error
            break

    logger.info("Import finished: %d created, %d skipped", total.created, total.skipped)
    return total
