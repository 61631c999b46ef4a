# =============================================================================
# src/cli/ingest.py — CLI Ingest Command (document collections)
# =============================================================================
#
# Standalone CLI for feeding documents into the chunkwright vector store.
# Each document is converted to text, chunked within the embedding model's
# token budget, embedded, and written to one of two ChromaDB collections:
#
#   global        — shared documents, optionally tagged with a category id
#   conversation  — documents owned by one conversation (requires an id)
#
# Re-ingesting a file replaces its previous records, so running the same
# command twice never duplicates anything.
#
# Supported subcommands:
#
#   file    — Ingest one or more files (text, Markdown, HTML, JSON, XML,
#             CSV, PDF, PNG, JPEG, TIFF, BMP)
#   delete  — Remove every record of a previously ingested file
#   count   — Show how many records a collection holds
#   config  — Print the resolved configuration (YAML defaults + env)
#
# Provider Selection:
#   - INFERENCE_BACKEND=ollama (default): embeddings and vision through a
#     local Ollama server; both models are unloaded after each document
#   - INFERENCE_BACKEND=openai: hosted API, requires OPENAI_API_KEY
#   - Vector Store: ChromaDB (always)
#
# Usage examples:
#   python -m src.cli.ingest file docs/handbook.pdf docs/prices.csv
#   python -m src.cli.ingest file notes.md --collection conversation \
#       --conversation-id c-42
#   python -m src.cli.ingest delete handbook.pdf
#   python -m src.cli.ingest count --collection global
# =============================================================================

"""Standalone CLI for ingesting documents into the chunkwright vector store.

Usage::

    python -m src.cli.ingest file /path/to/report.pdf --category-id finance

    python -m src.cli.ingest file chat-upload.png --collection conversation \\
        --conversation-id c-42

    python -m src.cli.ingest delete report.pdf

    python -m src.cli.ingest count
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog
import yaml

from src.config.loader import load_config
from src.config.settings import Settings
from src.models.documents import DocumentCollectionType, IngestionRequest
from src.utils.errors import ChunkwrightError
from src.utils.logging import configure_logging

logger = structlog.get_logger(logger_name=__name__)


def _build_request(path: Path, args: argparse.Namespace, app_settings: Settings) -> IngestionRequest:
    """Describe one file on disk as an :class:`IngestionRequest`."""
    metadata: dict[str, str] = {}
    if args.category_id:
        metadata["category_id"] = args.category_id
    if args.conversation_id:
        metadata["conversation_id"] = args.conversation_id

    return IngestionRequest(
        file_name=path.name,
        local_path=str(path),
        content_type=args.content_type,
        collection_type=DocumentCollectionType(args.collection),
        batch_size=args.batch_size or app_settings.ingest_batch_size,
        between_batch_delay=app_settings.between_batch_delay_seconds,
        metadata=metadata,
    )


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_file(args: argparse.Namespace, service, app_settings: Settings) -> int:  # noqa: ANN001
    """Ingest each file given on the command line, in order.

    A failing file is reported and the remaining files are still ingested;
    the exit code is 1 if any file failed.
    """
    failures = 0
    for raw_path in args.paths:
        path = Path(raw_path)
        print(f"Ingesting: {path}")
        try:
            request = _build_request(path, args, app_settings)
            result = await service.ingest(request)
        except ChunkwrightError as exc:
            failures += 1
            print(f"  Failed: {exc}", file=sys.stderr)
            continue

        print(f"  Collection:      {result.collection_name}")
        print(f"  Content type:    {result.content_type}")
        print(f"  Records deleted: {result.records_deleted}")
        print(f"  Records written: {result.records_upserted}")
        print(f"  Total tokens:    {result.total_tokens}")
        print(f"  Time:            {result.ingestion_time:.2f}s")

    if len(args.paths) > 1:
        print(f"\n{len(args.paths) - failures}/{len(args.paths)} files ingested.")
    return 1 if failures else 0


async def _handle_delete(args: argparse.Namespace, service) -> int:  # noqa: ANN001
    """Delete every record of one file from a collection."""
    deleted = await service.delete_document(
        args.file_name,
        collection_type=DocumentCollectionType(args.collection),
        conversation_id=args.conversation_id,
    )
    if deleted == 0:
        print(f"No records found for {args.file_name}. Nothing to delete.")
    else:
        print(f"Deleted {deleted} records for {args.file_name}.")
    return 0


async def _handle_count(args: argparse.Namespace, service) -> int:  # noqa: ANN001
    collection_type = DocumentCollectionType(args.collection)
    total = await service.count(collection_type)
    print(f"{collection_type.value} collection: {total} records")
    return 0


def _handle_config(args: argparse.Namespace, app_settings: Settings) -> int:
    """Print the merged YAML + environment configuration."""
    config = load_config(args.config_path, settings=app_settings)
    print(yaml.safe_dump(config, sort_keys=False), end="")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_collection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--collection",
        choices=[c.value for c in DocumentCollectionType],
        default=DocumentCollectionType.GLOBAL.value,
        help="Target collection (default: global)",
    )
    parser.add_argument(
        "--conversation-id",
        dest="conversation_id",
        default=None,
        help="Owning conversation; required with --collection conversation",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Ingest documents into the chunkwright vector store.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Ingestion commands")

    # -- file --
    file_parser = subparsers.add_parser("file", help="Ingest one or more files")
    file_parser.add_argument("paths", nargs="+", help="Files to ingest")
    _add_collection_arguments(file_parser)
    file_parser.add_argument(
        "--category-id",
        dest="category_id",
        default=None,
        help="Category id copied onto every record",
    )
    file_parser.add_argument(
        "--content-type",
        dest="content_type",
        default=None,
        help="MIME type override (default: derived from the file extension)",
    )
    file_parser.add_argument(
        "--batch-size",
        dest="batch_size",
        type=int,
        default=None,
        help="Records per embedding/upsert batch (default: INGEST_BATCH_SIZE)",
    )

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a file's records")
    delete_parser.add_argument("file_name", help="File name the document was ingested as")
    _add_collection_arguments(delete_parser)

    # -- count --
    count_parser = subparsers.add_parser("count", help="Count records in a collection")
    count_parser.add_argument(
        "--collection",
        choices=[c.value for c in DocumentCollectionType],
        default=DocumentCollectionType.GLOBAL.value,
        help="Collection to count (default: global)",
    )

    # -- config --
    config_parser = subparsers.add_parser("config", help="Print the resolved configuration")
    config_parser.add_argument(
        "--path",
        dest="config_path",
        default="config/config.yaml",
        help="YAML defaults file (default: config/config.yaml)",
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ingestion tool.

    Parses the subcommand, loads :class:`Settings` from the environment and
    ``.env``, configures logging, and dispatches to the handler.  ``config``
    needs no providers; every other command builds the full pipeline.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, app_env=app_settings.app_env)

    if args.command == "config":
        sys.exit(_handle_config(args, app_settings))

    # Deferred so "config" and "--help" never import chromadb or openai.
    from src.providers.factory import build_ingestion_service

    try:
        service = build_ingestion_service(app_settings)
    except ChunkwrightError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "file":
            exit_code = asyncio.run(_handle_file(args, service, app_settings))
        elif args.command == "delete":
            exit_code = asyncio.run(_handle_delete(args, service))
        elif args.command == "count":
            exit_code = asyncio.run(_handle_count(args, service))
        else:
            parser.print_help()
            exit_code = 1
    except ChunkwrightError as exc:
        logger.error("cli_command_failed", command=args.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
