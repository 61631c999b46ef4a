"""Source processors for the chunkwright ingestion pipeline.

Each processor decomposes one family of formats into text records (or, for
paginated and raster sources, into :class:`~src.models.documents.RawContent`
units that the orchestrators chunk with page headers).

Available processors and their input formats:

- **TextProcessor**   -- Plain text, Markdown and HTML (rendered to Markdown)
- **JsonProcessor**   -- JSON documents, one record per scalar leaf path
- **XmlProcessor**    -- XML documents, attribute and leaf-text paths
- **CsvProcessor**    -- CSV tables, one record per row / column group
- **PdfExtractor**    -- PDF pages via PyMuPDF: embedded images, then text blocks
- **load_image_contents / split_tiff_frames** -- PNG, JPEG, BMP and
  multi-frame TIFF rasters via Pillow
"""

from src.services.ingestion.source_processors.csv_processor import CsvProcessor
from src.services.ingestion.source_processors.image_processor import (
    load_image_contents,
    split_tiff_frames,
)
from src.services.ingestion.source_processors.json_processor import JsonProcessor
from src.services.ingestion.source_processors.pdf_processor import PdfExtractor
from src.services.ingestion.source_processors.text_processor import (
    HtmlToMarkdownConverter,
    MarkdownConverter,
    PlainTextConverter,
    TextProcessor,
)
from src.services.ingestion.source_processors.xml_processor import XmlProcessor

__all__ = [
    "CsvProcessor",
    "HtmlToMarkdownConverter",
    "JsonProcessor",
    "MarkdownConverter",
    "PdfExtractor",
    "PlainTextConverter",
    "TextProcessor",
    "XmlProcessor",
    "load_image_contents",
    "split_tiff_frames",
]
