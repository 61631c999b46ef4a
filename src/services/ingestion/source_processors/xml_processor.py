"""Source processor for XML documents.

Walks the element tree and emits :class:`~src.models.records.XmlTextRecord`
chunks for attributes and for the text of leaf elements.  Every record is
tagged with a slash path from the document root::

    <catalog><book id="1"><title>Dune</title></book>
             <book id="2"><title>Emma</title></book></catalog>

    /catalog/book[1]/@id      attribute   "1"
    /catalog/book[1]/title    text        "Dune"
    /catalog/book[2]/@id      attribute   "2"
    ...

Namespace URIs are dropped from tag and attribute names, and a 1-based
``[i]`` position is added only when a tag repeats among its siblings.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections import Counter
from typing import Iterator

import structlog

from src.models.records import XmlTextRecord
from src.services.ingestion.chunker import DocumentChunker
from src.utils.errors import ConversionError

logger = structlog.get_logger(logger_name=__name__)

HEADER_TEMPLATE = "XML Path: {path}\n"


def local_name(tag: str) -> str:
    """Strip a ``{namespace}`` prefix from an element or attribute name."""
    return tag.split("}", 1)[-1] if "}" in tag else tag


class XmlProcessor:
    """Converts XML text into path-tagged :class:`XmlTextRecord` objects."""

    def __init__(self, chunker: DocumentChunker) -> None:
        self._chunker = chunker

    def process(self, content: str, file_name: str) -> list[XmlTextRecord]:
        """Parse *content* and return attribute and leaf-text records.

        Raises
        ------
        ConversionError
            If *content* is not well-formed XML.
        """
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            raise ConversionError(
                message=f"Malformed XML in {file_name}: {exc}",
            ) from exc

        records: list[XmlTextRecord] = []
        for path, value, node_type in _walk(root, f"/{local_name(root.tag)}"):
            header = HEADER_TEMPLATE.format(path=path)
            for chunk in self._chunker.chunk_text(value, header=header):
                records.append(
                    XmlTextRecord(
                        text=chunk,
                        xml_path=path,
                        node_type=node_type,
                        parent_info="element",
                    )
                )

        logger.info("xml_processed", file_name=file_name, records=len(records))
        return records


# ------------------------------------------------------------------
# Internals
# ------------------------------------------------------------------


def _walk(element: ET.Element, path: str) -> Iterator[tuple[str, str, str]]:
    """Yield ``(path, value, node_type)`` in document order."""
    for attr_name, attr_value in element.attrib.items():
        yield (f"{path}/@{local_name(attr_name)}", attr_value, "attribute")

    children = list(element)
    if not children:
        text = (element.text or "").strip()
        if text:
            yield (path, text, "text")
        return

    totals = Counter(local_name(child.tag) for child in children if isinstance(child.tag, str))
    seen: Counter[str] = Counter()
    for child in children:
        # Comments and processing instructions have non-string tags.
        if not isinstance(child.tag, str):
            continue
        name = local_name(child.tag)
        seen[name] += 1
        step = f"{name}[{seen[name]}]" if totals[name] > 1 else name
        yield from _walk(child, f"{path}/{step}")
