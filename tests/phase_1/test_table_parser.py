"""Tests for delimited table parsing."""

from __future__ import annotations

import logging

import pytest

from backend.netviz.errors import TableParseError
from backend.netviz.tables import TableParser, parse_table


def test_parse_table_maps_rows_to_headers() -> None:
    table = parse_table("Subject\tPredicate\tObject\n<A>\t<knows>\t<B>\n<B>\t<knows>\t<C>\n")

    assert table.headers == ["Subject", "Predicate", "Object"]
    assert table.row_count == 2
    assert table.rows[0] == {"Subject": "<A>", "Predicate": "<knows>", "Object": "<B>"}


def test_short_rows_have_missing_trailing_values() -> None:
    table = parse_table("a\tb\tc\nx\ty")

    assert table.rows == [{"a": "x", "b": "y", "c": None}]


def test_blank_lines_and_crlf_are_tolerated() -> None:
    table = parse_table("a\tb\r\n1\t2\r\n\r\n3\t4\r\n")

    assert table.rows == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}]


def test_header_only_table_has_no_rows() -> None:
    table = parse_table("a\tb\n")

    assert table.headers == ["a", "b"]
    assert table.rows == []


@pytest.mark.parametrize("text", ["", "   \n  "])
def test_empty_text_is_rejected(text: str) -> None:
    with pytest.raises(TableParseError):
        parse_table(text)


def test_duplicate_headers_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        table = parse_table("a\ta\n1\t2")

    assert table.headers == ["a", "a"]
    assert table.rows == [{"a": "2"}]
    assert any("duplicate" in record.getMessage() for record in caplog.records)


def test_parser_uses_configured_delimiter() -> None:
    parser = TableParser(delimiter=",")

    table = parser.parse("x,y\n1,2")

    assert parser.delimiter == ","
    assert table.rows == [{"x": "1", "y": "2"}]


def test_parser_requires_delimiter() -> None:
    with pytest.raises(ValueError):
        TableParser(delimiter="")
