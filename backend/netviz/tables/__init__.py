"""Delimited table input."""

from .parser import ParsedTable, TableParser, TableRow, parse_table

__all__ = ["ParsedTable", "TableParser", "TableRow", "parse_table"]
