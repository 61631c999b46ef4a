"""Source processor for CSV tables.

Each data row becomes its own record so a retrieved chunk always pairs
values with their column headers.  Rendering per row:

- **Narrow rows** (``<= max_columns_per_chunk`` columns) render as a
  one-row Markdown table.  A table over the token budget falls back to a
  ``- header: value`` bullet list, chunked further if still too large.
- **Wide rows** split into column groups rendered as separate tables
  (``SubRow``).  When a group is over budget and wider than
  ``min_columns_per_chunk`` the group size is halved and the SAME start
  column is retried, so every column lands in exactly one sub-row.  A
  minimum-size group still over budget falls back to bullets.

A final ``Summary`` record describes the table's shape and headers.
"""

from __future__ import annotations

import csv
import io

import structlog

from src.models.records import CsvTextRecord
from src.services.ingestion.chunker import DocumentChunker
from src.utils.errors import ConversionError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_COLUMNS_PER_CHUNK = 10
DEFAULT_MIN_COLUMNS_PER_CHUNK = 2


def escape_cell(value: str) -> str:
    """Escape characters that would break a Markdown table cell."""
    escaped = value.replace("|", "\\|")
    return escaped.replace("\r\n", "<br>").replace("\r", "<br>").replace("\n", "<br>")


def render_table(headers: list[str], cells: list[str]) -> str:
    """Render a one-row Markdown table."""
    return "\n".join(
        [
            "| " + " | ".join(escape_cell(h) for h in headers) + " |",
            "| " + " | ".join("---" for _ in headers) + " |",
            "| " + " | ".join(escape_cell(c) for c in cells) + " |",
        ]
    )


def render_bullets(headers: list[str], cells: list[str]) -> str:
    """Render a row as ``- header: value`` lines."""
    return "\n".join(
        f"- {escape_cell(h)}: {escape_cell(c)}" for h, c in zip(headers, cells)
    )


class CsvProcessor:
    """Converts CSV text into row-addressed :class:`CsvTextRecord` objects.

    Parameters
    ----------
    chunker:
        Shared chunker; its ``max_tokens`` is the per-record budget.
    max_columns_per_chunk:
        Widest row rendered as a single table (default 10).
    min_columns_per_chunk:
        Smallest column group the backtracking split will try (default 2).
    """

    def __init__(
        self,
        chunker: DocumentChunker,
        max_columns_per_chunk: int = DEFAULT_MAX_COLUMNS_PER_CHUNK,
        min_columns_per_chunk: int = DEFAULT_MIN_COLUMNS_PER_CHUNK,
    ) -> None:
        if min_columns_per_chunk < 1:
            raise ValueError("min_columns_per_chunk must be >= 1")
        if max_columns_per_chunk < min_columns_per_chunk:
            raise ValueError("max_columns_per_chunk must be >= min_columns_per_chunk")
        self._chunker = chunker
        self._max_columns = max_columns_per_chunk
        self._min_columns = min_columns_per_chunk

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, content: str, file_name: str) -> list[CsvTextRecord]:
        """Parse *content* and return row, sub-row and summary records.

        An empty file yields no records; a header-only file yields just the
        summary.

        Raises
        ------
        ConversionError
            If the CSV cannot be parsed (e.g. an unterminated quote).
        """
        try:
            rows = [
                row
                for row in csv.reader(io.StringIO(content), strict=True)
                if any(cell.strip() for cell in row)
            ]
        except csv.Error as exc:
            raise ConversionError(message=f"Malformed CSV in {file_name}: {exc}") from exc

        if not rows:
            logger.info("csv_empty", file_name=file_name)
            return []

        headers = [h.strip() or f"column_{i + 1}" for i, h in enumerate(rows[0])]
        data_rows = rows[1:]

        records: list[CsvTextRecord] = []
        for row_number, row in enumerate(data_rows, start=1):
            row_headers, cells = self._align(headers, row)
            if len(row_headers) <= self._max_columns:
                records.extend(self._row_records(file_name, row_number, row_headers, cells))
            else:
                records.extend(self._sub_row_records(file_name, row_number, row_headers, cells))

        records.extend(self._summary_records(file_name, headers, len(data_rows)))

        logger.info(
            "csv_processed",
            file_name=file_name,
            columns=len(headers),
            rows=len(data_rows),
            records=len(records),
        )
        return records

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    @staticmethod
    def _align(headers: list[str], row: list[str]) -> tuple[list[str], list[str]]:
        """Pad short rows and name the extra cells of long ones."""
        width = max(len(headers), len(row))
        row_headers = headers + [f"column_{i + 1}" for i in range(len(headers), width)]
        cells = [cell.strip() for cell in row] + [""] * (width - len(row))
        return row_headers, cells

    def _fits(self, text: str) -> bool:
        return self._chunker.count_tokens(text) <= self._chunker.max_tokens

    def _row_records(
        self,
        file_name: str,
        row_number: int,
        headers: list[str],
        cells: list[str],
    ) -> list[CsvTextRecord]:
        path = f"{file_name}:row:{row_number}"
        return [
            CsvTextRecord(text=text, csv_path=path, node_type="Row", parent_info="table")
            for text in self._render_within_budget(headers, cells)
        ]

    def _sub_row_records(
        self,
        file_name: str,
        row_number: int,
        headers: list[str],
        cells: list[str],
    ) -> list[CsvTextRecord]:
        records: list[CsvTextRecord] = []
        group_size = self._max_columns
        start = 0
        while start < len(headers):
            end = min(start + group_size, len(headers))
            table = render_table(headers[start:end], cells[start:end])

            if not self._fits(table) and end - start > self._min_columns:
                group_size = max(group_size // 2, self._min_columns)
                logger.debug(
                    "csv_group_shrunk",
                    file_name=file_name,
                    row=row_number,
                    start_column=start + 1,
                    group_size=group_size,
                )
                continue

            if self._fits(table):
                texts = [table]
            else:
                texts = self._bullet_chunks(headers[start:end], cells[start:end])

            path = f"{file_name}:row:{row_number}:columns:{start + 1}-{end}"
            records.extend(
                CsvTextRecord(
                    text=text,
                    csv_path=path,
                    node_type="SubRow",
                    parent_info=f"row:{row_number}",
                )
                for text in texts
            )
            start = end
        return records

    def _render_within_budget(self, headers: list[str], cells: list[str]) -> list[str]:
        table = render_table(headers, cells)
        if self._fits(table):
            return [table]
        return self._bullet_chunks(headers, cells)

    def _bullet_chunks(self, headers: list[str], cells: list[str]) -> list[str]:
        bullets = render_bullets(headers, cells)
        if self._fits(bullets):
            return [bullets]
        return self._chunker.chunk_text(bullets)

    def _summary_records(
        self,
        file_name: str,
        headers: list[str],
        row_count: int,
    ) -> list[CsvTextRecord]:
        summary = "\n".join(
            [
                f"CSV File: {file_name}",
                f"Columns: {len(headers)}",
                f"Rows: {row_count}",
                "Headers: " + " | ".join(escape_cell(h) for h in headers),
            ]
        )
        path = f"{file_name}:metadata"
        texts = [summary] if self._fits(summary) else self._chunker.chunk_text(summary)
        return [
            CsvTextRecord(text=text, csv_path=path, node_type="Summary", parent_info="table")
            for text in texts
        ]
