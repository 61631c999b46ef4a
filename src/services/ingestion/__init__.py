"""Document ingestion pipeline.

Dependency order, leaves first:

- ``chunker``                 -- token-bounded chunking shared by all formats
- ``source_processors``       -- per-format conversion / decomposition
- ``image_text_extractor``    -- vision-model OCR with rate-limit retry
- ``embedding_generator``     -- embeddings with rate-limit retry
- ``record_enricher``         -- keys, provenance, token counts, embeddings
- ``ingestion_service``       -- shared stage machine and stale-record deletion
- ``{text,image,pdf}_ingestion_service`` -- per-format orchestrators
- ``document_ingestion_service``         -- content-type dispatcher
"""

from src.services.ingestion.chunker import DocumentChunker
from src.services.ingestion.document_ingestion_service import DocumentIngestionService
from src.services.ingestion.embedding_generator import EmbeddingGenerator
from src.services.ingestion.image_ingestion_service import ImageIngestionService
from src.services.ingestion.image_text_extractor import ImageTextExtractor
from src.services.ingestion.ingestion_service import IngestionService, IngestionStage
from src.services.ingestion.pdf_ingestion_service import PdfIngestionService
from src.services.ingestion.record_enricher import RecordEnricher
from src.services.ingestion.text_ingestion_service import TextFileIngestionService

__all__ = [
    "DocumentChunker",
    "DocumentIngestionService",
    "EmbeddingGenerator",
    "ImageIngestionService",
    "ImageTextExtractor",
    "IngestionService",
    "IngestionStage",
    "PdfIngestionService",
    "RecordEnricher",
    "TextFileIngestionService",
]
