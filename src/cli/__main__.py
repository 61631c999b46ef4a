# =============================================================================
# src/cli/__main__.py — Package Entry Point
# =============================================================================
#
# Enables running the CLI package itself as a module:
#     python -m src.cli file report.pdf
#
# Python executes this file for `python -m src.cli`; it hands every
# argument to the ingestion CLI (ingest.py), the only tool in the package.
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.ingest import main

main()
