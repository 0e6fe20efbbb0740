"""
Transforms sub-package for metric-ingest.

Contains the per-cell interpretation steps and the row pipeline that
chains them:

  - periods.py: Free-text period token -> UTC date.
  - entities.py: Free-text name -> reference entity id.
  - values.py: Direct value or numerator/denominator -> metric value.
  - pipeline.py: Runs the steps over every row and classifies each one.

Each step is a plain function of its inputs (no I/O, no shared state), so
it can be tested on its own and rows can be validated independently.
"""
