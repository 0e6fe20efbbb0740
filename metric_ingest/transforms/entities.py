"""
Entity resolution for metric-ingest.

Resolves a free-text label (a metric, division or region name as typed in a
spreadsheet) to the id of a reference entity.  Rules, first match wins:

  1. Case-insensitive exact match on ``name``.
  2. Case-insensitive exact match on ``slug``.
  3. Case-insensitive substring match in either direction: the candidate's
     name contains the text, or the text contains the candidate's name.

Within each rule the first candidate in catalog order wins.  Rule 3 can be
ambiguous ("North" is inside both "North Division" and "Northwest
Division"); the catalog-order pick is kept as-is.
"""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from metric_ingest.config import Region


class Named(Protocol):
    id: str
    name: str
    slug: str | None


def resolve_entity(
    text: str | None,
    candidates: Sequence[Named],
    substring: bool = True,
) -> str | None:
    """Return the id of the entity *text* refers to, or ``None``.

    Blank input returns ``None`` without scanning *candidates*.  With
    ``substring=False`` only rules 1 and 2 apply.
    """
    needle = (text or "").strip().lower()
    if not needle:
        return None

    for candidate in candidates:
        if candidate.name.lower() == needle:
            return candidate.id

    for candidate in candidates:
        if candidate.slug and candidate.slug.lower() == needle:
            return candidate.id

    if not substring:
        return None

    for candidate in candidates:
        name = candidate.name.lower()
        if name and (needle in name or name in needle):
            return candidate.id

    return None


def regions_for_division(regions: Iterable[Region], division_id: str | None) -> list[Region]:
    """Narrow *regions* to one division; all regions when *division_id* is None."""
    if division_id is None:
        return list(regions)
    return [r for r in regions if r.division_id == division_id]
