"""Delimited text parsing into header names and row mappings."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from backend.netviz.errors import TableParseError

LOGGER = logging.getLogger(__name__)

TableRow = Dict[str, Optional[str]]


@dataclass(frozen=True)
class ParsedTable:
    """Header names in column order and one mapping per data line."""

    headers: List[str]
    rows: List[TableRow]

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _split_lines(text: str) -> List[str]:
    return [line.rstrip("\r") for line in text.strip().split("\n")]


def _row_from_values(headers: Sequence[str], values: Sequence[str]) -> TableRow:
    row: TableRow = {}
    for index, header in enumerate(headers):
        row[header] = values[index] if index < len(values) else None
    return row


def parse_table(text: str, delimiter: str = "\t") -> ParsedTable:
    """Parse delimited text whose first line names the columns.

    Args:
        text: Raw file content.
        delimiter: Column separator, tab by default.

    Returns:
        ParsedTable: Headers and rows. Rows shorter than the header list map
        the missing trailing columns to ``None``.

    Raises:
        TableParseError: If the text holds no header line.
    """

    if not text or not text.strip():
        raise TableParseError("Table is empty; a header row is required")
    header_line, *data_lines = _split_lines(text)
    headers = header_line.split(delimiter)
    if len(set(headers)) != len(headers):
        LOGGER.warning("Table header contains duplicate column names: %s", headers)
    rows = [
        _row_from_values(headers, line.split(delimiter))
        for line in data_lines
        if line.strip()
    ]
    LOGGER.info("Parsed table with %d columns and %d rows", len(headers), len(rows))
    return ParsedTable(headers=headers, rows=rows)


class TableParser:
    """Parser bound to a configured delimiter."""

    def __init__(self, delimiter: str = "\t") -> None:
        if not delimiter:
            raise ValueError("delimiter must be a non-empty string")
        self._delimiter = delimiter

    @property
    def delimiter(self) -> str:
        return self._delimiter

    def parse(self, text: str) -> ParsedTable:
        return parse_table(text, delimiter=self._delimiter)
