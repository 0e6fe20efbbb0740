"""
Shared test fixtures for metric-ingest tests.

The reference catalog used across tests is built here so that every test
module resolves names against the same divisions, regions and metrics.
Catalog order is significant (entity resolution takes the first match), so
edit with care.
"""

from __future__ import annotations

import pytest

from metric_ingest.config import (
    Department,
    Division,
    MetricAssociation,
    MetricDefinition,
    ReferenceCatalog,
    Region,
)


def make_catalog() -> ReferenceCatalog:
    """Build the standard test catalog.

    Layout:
      Air Care (div-air)            -> Base 1 (reg-air-1), Base 2 (reg-air-2)
      Ground Ambulance (div-ground) -> Base 1 (reg-ground-1)
      North Division, Northwest Division (no regions)

      Total Calls      continuous, associated with both Air Care regions
      Compliance Rate  proportion, associated with Ground Ambulance
      Incident Rate    rate x1000, labels Incidents / Patient Days
      Orphan Metric    continuous, no department configured
    """
    return ReferenceCatalog(
        divisions=[
            Division(id="div-air", name="Air Care", slug="air-care"),
            Division(id="div-ground", name="Ground Ambulance", slug="ground"),
            Division(id="div-north", name="North Division"),
            Division(id="div-northwest", name="Northwest Division"),
        ],
        regions=[
            Region(id="reg-air-1", name="Base 1", division_id="div-air"),
            Region(id="reg-air-2", name="Base 2", division_id="div-air"),
            Region(id="reg-ground-1", name="Base 1", division_id="div-ground"),
        ],
        departments=[
            Department(id="dept-ops", name="Operations"),
            Department(id="dept-quality", name="Quality"),
        ],
        metrics=[
            MetricDefinition(
                id="m-calls",
                name="Total Calls",
                slug="total-calls",
                data_type="continuous",
                department_id="dept-ops",
            ),
            MetricDefinition(
                id="m-compliance",
                name="Compliance Rate",
                slug="compliance-rate",
                data_type="proportion",
                department_id="dept-quality",
            ),
            MetricDefinition(
                id="m-incidents",
                name="Incident Rate",
                slug="incident-rate",
                data_type="rate",
                rate_multiplier=1000,
                numerator_label="Incidents",
                denominator_label="Patient Days",
                department_id="dept-quality",
            ),
            MetricDefinition(
                id="m-orphan",
                name="Orphan Metric",
                data_type="continuous",
            ),
        ],
        associations=[
            MetricAssociation(metric_id="m-calls", region_id="reg-air-1"),
            MetricAssociation(metric_id="m-calls", region_id="reg-air-2"),
            MetricAssociation(metric_id="m-compliance", division_id="div-ground"),
        ],
    )


@pytest.fixture
def catalog() -> ReferenceCatalog:
    return make_catalog()


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------
def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (file I/O and full round trips)",
    )
