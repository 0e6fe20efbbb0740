"""
Configuration models and YAML I/O for metric-ingest.

This module defines the Pydantic models for the read-only reference data the
pipeline consumes (metrics, divisions, regions, departments and the
metric-to-scope association table), plus the run options and upload limits.

Key models:
- ReferenceCatalog: Everything the validator and template generator look up.
- MetricDefinition: A metric plus how its value is computed.
- UploadLimits: Size preconditions checked before any row is inspected.
- ValidationOptions: Per-run choices (period type, fixed division override).

Key functions:
- load_catalog(path) -> ReferenceCatalog: Load and validate from YAML.
- save_catalog(catalog, path): Serialize to YAML.

Field names are snake_case in Python; the camelCase names used by the web
application (``dataType``, ``divisionId``, ...) are accepted as aliases so a
catalog dumped from the application loads unchanged.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from metric_ingest.exceptions import CatalogError

logger = logging.getLogger(__name__)

DataType = Literal["continuous", "proportion", "rate"]
PeriodType = Literal["daily", "weekly", "bi-weekly", "monthly", "quarterly", "annual"]

COMPONENT_DATA_TYPES: frozenset[str] = frozenset({"proportion", "rate"})


class _CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Division(_CatalogModel):
    """Top level of the organizational hierarchy."""

    id: str
    name: str
    slug: str | None = None


class Region(_CatalogModel):
    """Second level of the hierarchy; always belongs to one division."""

    id: str
    name: str
    slug: str | None = None
    division_id: str = Field(..., alias="divisionId")


class Department(_CatalogModel):
    """The organizational unit that owns a metric."""

    id: str
    name: str
    slug: str | None = None


class MetricDefinition(_CatalogModel):
    """A measurable quantity and the rule for computing its value.

    ``department_id`` is optional in the model only so that a catalog with a
    misconfigured metric still loads; the validator reports the missing
    department per row instead of refusing the whole catalog.
    """

    id: str
    name: str
    slug: str | None = None
    data_type: DataType = Field("continuous", alias="dataType")
    rate_multiplier: float | None = Field(None, alias="rateMultiplier")
    numerator_label: str | None = Field(None, alias="numeratorLabel")
    denominator_label: str | None = Field(None, alias="denominatorLabel")
    department_id: str | None = Field(None, alias="departmentId")

    @property
    def uses_components(self) -> bool:
        """True for proportion/rate metrics (numerator + denominator)."""
        return self.data_type in COMPONENT_DATA_TYPES


class MetricAssociation(_CatalogModel):
    """Links a metric to a division and/or region it is reported for."""

    metric_id: str = Field(..., alias="metricDefinitionId")
    division_id: str | None = Field(None, alias="divisionId")
    region_id: str | None = Field(None, alias="regionId")


class ReferenceCatalog(_CatalogModel):
    """All reference data needed by the pipeline, in catalog order.

    Catalog order matters: entity resolution returns the *first* candidate
    that matches, and template rows follow metric order.
    """

    metrics: list[MetricDefinition] = Field(default_factory=list)
    divisions: list[Division] = Field(default_factory=list)
    regions: list[Region] = Field(default_factory=list)
    departments: list[Department] = Field(default_factory=list)
    associations: list[MetricAssociation] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_ids(self) -> ReferenceCatalog:
        """Reject duplicate ids and regions pointing at unknown divisions."""
        for label, entities in (
            ("metric", self.metrics),
            ("division", self.divisions),
            ("region", self.regions),
            ("department", self.departments),
        ):
            seen: set[str] = set()
            for entity in entities:
                if entity.id in seen:
                    raise ValueError(f"Duplicate {label} id '{entity.id}' in catalog.")
                seen.add(entity.id)

        division_ids = {d.id for d in self.divisions}
        for region in self.regions:
            if region.division_id not in division_ids:
                raise ValueError(
                    f"Region '{region.name}' references unknown division "
                    f"'{region.division_id}'."
                )
        return self

    def metric(self, metric_id: str) -> MetricDefinition | None:
        return next((m for m in self.metrics if m.id == metric_id), None)

    def division(self, division_id: str) -> Division | None:
        return next((d for d in self.divisions if d.id == division_id), None)

    def region(self, region_id: str) -> Region | None:
        return next((r for r in self.regions if r.id == region_id), None)


class UploadLimits(BaseModel):
    """Preconditions enforced before the validator sees a single row."""

    max_bytes: int = Field(5 * 1024 * 1024, gt=0, description="Maximum file size")
    max_rows: int = Field(10_000, gt=0, description="Maximum number of data rows")
    allowed_extensions: tuple[str, ...] = Field(
        ("csv", "tsv", "txt"), description="Accepted file extensions (no dot)"
    )


class ValidationOptions(BaseModel):
    """Per-run choices that apply to every row of an upload."""

    period_type: PeriodType = Field(
        "monthly", description="Stored on every record; not inferred from the file"
    )
    fixed_division_id: str | None = Field(
        None,
        description="If set, every row gets this division and the column is ignored",
    )


def load_catalog(path: str | Path) -> ReferenceCatalog:
    """Load and validate a reference catalog YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        CatalogError: If the file is empty.
        pydantic.ValidationError: If the content fails schema validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        raise CatalogError(f"Catalog file is empty: {path}")
    catalog = ReferenceCatalog.model_validate(raw)
    logger.info(
        "Loaded catalog from %s: %d metrics, %d divisions, %d regions",
        path,
        len(catalog.metrics),
        len(catalog.divisions),
        len(catalog.regions),
    )
    return catalog


def save_catalog(catalog: ReferenceCatalog, path: str | Path) -> None:
    """Serialize a ReferenceCatalog to YAML using the application's field names."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = catalog.model_dump(mode="json", by_alias=True, exclude_none=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("# metric-ingest reference catalog\n\n")
        yaml.dump(
            data,
            f,
            allow_unicode=True,
            default_flow_style=False,
            sort_keys=False,
        )
    logger.info("Saved catalog to %s", path)
