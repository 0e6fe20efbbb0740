"""
Value derivation for metric-ingest.

A metric's value arrives either directly (a ``Value`` column) or as a
numerator/denominator pair that must be combined according to the metric's
data type:

  continuous  value = direct value
  proportion  value = numerator / denominator
  rate        value = numerator / denominator * rate_multiplier
              (no multiplier configured -> plain ratio)

When both components are present they take precedence over a direct value.
Currency and percentage decoration (``$``, ``,``, ``%``) is stripped before
any number is parsed, so ``"$1,250"`` and ``"45%"`` read as 1250 and 45.

Failures raise ``RowValidationError`` (kind ``MALFORMED_NUMBER``); the
validation pipeline turns them into per-row errors.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from metric_ingest.config import DataType, MetricDefinition
from metric_ingest.exceptions import ErrorKind, RowValidationError

_DECORATION_RE = re.compile(r"[$,%]")

# data_type -> (numerator label, denominator label) when the metric has none
DEFAULT_COMPONENT_LABELS: Mapping[str, tuple[str, str]] = MappingProxyType({
    "proportion": ("Compliant", "Total"),
    "rate": ("Events", "Exposure"),
})


@dataclass(frozen=True)
class DerivedValue:
    """A metric value plus the components it was computed from (if any)."""

    value: float
    numerator: float | None = None
    denominator: float | None = None


def strip_decoration(text: str | None) -> str:
    """Remove ``$``, ``,`` and ``%`` and surrounding whitespace."""
    return _DECORATION_RE.sub("", text or "").strip()


def parse_number(text: str | None) -> float | None:
    """Parse a decorated numeric string; ``None`` if it is not a finite number."""
    cleaned = strip_decoration(text)
    # float() would accept Python digit grouping ("1_000")
    if not cleaned or "_" in cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def component_labels(metric: MetricDefinition) -> tuple[str, str] | None:
    """Display labels for a metric's numerator and denominator.

    Returns ``None`` for continuous metrics, which have no components.
    """
    defaults = DEFAULT_COMPONENT_LABELS.get(metric.data_type)
    if defaults is None:
        return None
    return (
        metric.numerator_label or defaults[0],
        metric.denominator_label or defaults[1],
    )


def _fail(message: str) -> RowValidationError:
    return RowValidationError(ErrorKind.MALFORMED_NUMBER, message)


def derive_value(
    data_type: DataType,
    *,
    numerator: str | None = None,
    denominator: str | None = None,
    value: str | None = None,
    rate_multiplier: float | None = None,
    components_mapped: bool = False,
) -> DerivedValue:
    """Compute a metric value from a row's raw cells.

    Args:
        data_type: The metric's data type.
        numerator: Raw numerator cell ('' or None if absent).
        denominator: Raw denominator cell ('' or None if absent).
        value: Raw direct-value cell ('' or None if absent).
        rate_multiplier: Scale applied to the ratio for ``rate`` metrics.
        components_mapped: Whether the upload has a numerator or denominator
            column at all.  Only changes the wording of the error for a
            proportion/rate row with no usable value.

    Returns:
        The derived value and the parsed components.

    Raises:
        RowValidationError: With one of the messages "Invalid numerator",
            "Invalid denominator", "Denominator cannot be zero",
            "Invalid value" or "Missing value".
    """
    if strip_decoration(numerator) and strip_decoration(denominator):
        num = parse_number(numerator)
        if num is None:
            raise _fail(f'Invalid numerator: "{numerator}"')
        den = parse_number(denominator)
        if den is None:
            raise _fail(f'Invalid denominator: "{denominator}"')
        if den == 0:
            raise _fail("Denominator cannot be zero")

        ratio = num / den
        if data_type == "rate" and rate_multiplier:
            return DerivedValue(ratio * rate_multiplier, num, den)
        return DerivedValue(ratio, num, den)

    direct = parse_number(value)
    if direct is not None:
        return DerivedValue(direct)

    if data_type in DEFAULT_COMPONENT_LABELS and not components_mapped:
        raise _fail(
            "Missing value: rate/proportion metric requires Numerator and "
            "Denominator columns, or a Value"
        )
    raise _fail(f'Invalid value: "{value or ""}"')
