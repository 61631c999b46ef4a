# =============================================================================
# src/cli/__init__.py — CLI Module Overview
# =============================================================================
#
# This package provides the command-line interface for chunkwright. It is
# the operator's way to load documents into the vector store without going
# through a host application that embeds the ingestion services directly.
#
#   INGEST  (ingest.py)
#     Ingests files into the global or a conversation collection, deletes
#     a file's records, counts a collection, and prints the resolved
#     configuration.
#     Usage: python -m src.cli.ingest file <path> [<path> ...]
#
# Design notes:
#   - argparse with one subparser per command; each handler is a small
#     async function run through asyncio.run().
#   - Heavy imports (chromadb, openai, fitz) are deferred until a command
#     actually needs the pipeline, so --help and `config` start instantly.
#   - `python -m src.cli` is an alias for `python -m src.cli.ingest`.
# =============================================================================
