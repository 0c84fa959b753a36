"""Job crawler package.

The package is structured around a small extraction pipeline:
- `models.py` defines the canonical record schema every source produces.
- `sources/` contains per-site connectors, each an ordered chain of tactics.
- `tactics.py` holds the acquisition tactics (endpoint call, captured
  response, rendered DOM scrape); `normalize.py` the field heuristics.
- `pagination.py` and `orchestrator.py` drive sources page by page and merge
  the results; `dedupe.py` collapses duplicates across sources.
"""
