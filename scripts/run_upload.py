"""
Demo script: validate uploads against a reference catalog via the public API.

Usage:
    uv run python scripts/run_upload.py CATALOG.yaml UPLOAD.csv [UPLOAD.tsv ...]
    uv run python scripts/run_upload.py CATALOG.yaml --template 2025-01 2025-06

For each upload: read it, infer the column mapping, validate every row,
write the per-row report to outputs/<name>_report.csv and load the valid
rows into an in-memory importer (a dry run of the real import).

With --template, writes a monthly template for every metric in the catalog
to outputs/template.csv instead.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

OUTPUT_ROOT = Path("outputs")

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("run_upload")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _write_template(catalog, start: str | None, end: str | None) -> None:
    import metric_ingest

    request = metric_ingest.TemplateRequest(
        metric_ids=[m.id for m in catalog.metrics],
        start=start,
        end=end,
    )
    output_path = OUTPUT_ROOT / "template.csv"
    template = metric_ingest.generate_template(request, catalog, output_path=output_path)
    log.info("Template: %d rows x %d cols -> %s", len(template.rows), len(template.headers), output_path)


def _validate_upload(catalog, upload_path: str) -> None:
    import metric_ingest
    from metric_ingest.exceptions import MetricIngestError
    from metric_ingest.export import export_report

    log.info("=" * 70)
    log.info("Validating: %s", upload_path)
    log.info("=" * 70)

    try:
        table = metric_ingest.read_table(upload_path)
        mapping = metric_ingest.infer_mapping(table.headers)
        report = metric_ingest.validate(table, catalog, mapping=mapping)
    except MetricIngestError as exc:
        log.error("REJECTED  %s: %s", upload_path, exc)
        return

    for result in report.results:
        if result.status is metric_ingest.RowStatus.ERROR:
            log.warning("  row %d: %s", result.row_number, result.message)

    report_path = OUTPUT_ROOT / f"{Path(upload_path).stem}_report.csv"
    export_report(report, report_path)

    if report.valid_count:
        summary = metric_ingest.import_rows(report, metric_ingest.InMemoryImporter())
        log.info("  dry-run import: %d created, %d skipped", summary.created, summary.skipped)

    log.info(
        "Done: %s (%d valid, %d error) -> %s\n",
        upload_path,
        report.valid_count,
        report.error_count,
        report_path,
    )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    from metric_ingest.config import load_catalog

    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    catalog = load_catalog(sys.argv[1])
    args = sys.argv[2:]

    if args[0] == "--template":
        start = args[1] if len(args) > 1 else None
        end = args[2] if len(args) > 2 else None
        _write_template(catalog, start, end)
        return

    for upload_path in args:
        if not Path(upload_path).exists():
            log.warning("SKIP  %s  (file not found)", upload_path)
            continue
        _validate_upload(catalog, upload_path)

    log.info("All uploads processed.")


if __name__ == "__main__":
    main()
