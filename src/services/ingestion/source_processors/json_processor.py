"""Source processor for JSON documents.

Flattens a JSON document into its scalar leaves.  Each leaf becomes one or
more :class:`~src.models.records.JsonTextRecord` chunks whose header names
the leaf's path, so a retrieved chunk still says where in the document its
value lives.

Path syntax::

    {"orders": [{"id": 7}]}   ->   orders[0]:id
    [1, 2]                    ->   [0], [1]
    "just a string"           ->   $

Object keys are joined with ``:``, array positions are appended as ``[i]``.
Empty objects and arrays produce no records.
"""

from __future__ import annotations

import json
from typing import Any, Iterator

import structlog

from src.models.records import JsonTextRecord
from src.services.ingestion.chunker import DocumentChunker
from src.utils.errors import ConversionError

logger = structlog.get_logger(logger_name=__name__)

ROOT_PATH = "$"
HEADER_TEMPLATE = "JSON Path: {path}\n"


class JsonProcessor:
    """Converts JSON text into path-tagged :class:`JsonTextRecord` objects."""

    def __init__(self, chunker: DocumentChunker) -> None:
        self._chunker = chunker

    def process(self, content: str, file_name: str) -> list[JsonTextRecord]:
        """Parse *content* and return one record per chunk of every scalar leaf.

        Parameters
        ----------
        content:
            The JSON document text.
        file_name:
            Declared file name, used for logging only.

        Raises
        ------
        ConversionError
            If *content* is not valid JSON.
        """
        try:
            document = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ConversionError(
                message=f"Malformed JSON in {file_name}: {exc.msg} at line {exc.lineno}",
            ) from exc

        records: list[JsonTextRecord] = []
        for path, value, parent in _flatten(document):
            header = HEADER_TEMPLATE.format(path=path)
            for chunk in self._chunker.chunk_text(value, header=header):
                records.append(
                    JsonTextRecord(
                        text=chunk,
                        json_path=path,
                        node_type="value",
                        parent_info=parent,
                    )
                )

        logger.info("json_processed", file_name=file_name, records=len(records))
        return records


# ------------------------------------------------------------------
# Internals
# ------------------------------------------------------------------


def _flatten(node: Any, path: str = "", parent: str = "root") -> Iterator[tuple[str, str, str]]:
    """Yield ``(path, rendered_value, parent_kind)`` for every scalar leaf."""
    if isinstance(node, dict):
        for key, child in node.items():
            child_path = f"{path}:{key}" if path else str(key)
            yield from _flatten(child, child_path, "object")
    elif isinstance(node, list):
        for index, child in enumerate(node):
            yield from _flatten(child, f"{path}[{index}]", "array")
    else:
        yield (path or ROOT_PATH, _render_scalar(node), parent)


def _render_scalar(value: Any) -> str:
    """Strings verbatim; numbers, booleans and null as JSON literals."""
    if isinstance(value, str):
        return value
    return json.dumps(value)
