"""Tests for the CSV codec."""

from pathlib import Path

import pytest

from bookbench.errors import CodecError
from bookbench.generation.generator import RecordGenerator
from bookbench.ingestion.codec import (
    parse_csv,
    parse_row,
    read_csv_text,
    record_values,
    to_csv,
    to_csv_row,
)
from bookbench.models import AUTHOR_COLUMNS


class TestToCsvRow:
    def test_quotes_every_field(self) -> None:
        assert to_csv_row(["a", 1, 2.5]) == '"a","1","2.5"'

    def test_doubles_inner_quotes(self) -> None:
        assert to_csv_row(['say "hi"']) == '"say ""hi"""'

    def test_none_is_empty(self) -> None:
        assert to_csv_row([None, "x"]) == '"","x"'

    def test_rejects_newlines(self) -> None:
        with pytest.raises(CodecError):
            to_csv_row(["line one\nline two"])


class TestParseRow:
    def test_round_trip_with_commas_and_quotes(self) -> None:
        values = ['Smith, John', 'The "Best" Book', "plain", ""]
        assert parse_row(to_csv_row(values)) == values

    def test_unquoted_fields(self) -> None:
        assert parse_row("a,b,3") == ["a", "b", "3"]

    def test_empty_line(self) -> None:
        assert parse_row("") == []

    def test_strips_carriage_return(self) -> None:
        assert parse_row('"a","b"\r') == ["a", "b"]

    def test_embedded_newline(self) -> None:
        with pytest.raises(CodecError):
            parse_row('"a\nb"')

    def test_malformed_row(self) -> None:
        with pytest.raises(CodecError, match="Malformed"):
            parse_row('"a"b,c')


class TestToCsv:
    def test_header_and_trailing_newline(self) -> None:
        text = to_csv([{"x": 1, "y": 2, "z": "a"}], ["x", "y", "z"])
        assert text == 'x,y,z\n"1","2","a"\n'

    def test_no_records(self) -> None:
        assert to_csv([], ["x"]) == "x\n"

    def test_missing_key_is_empty(self) -> None:
        assert record_values({"x": 1}, ["x", "y"]) == [1, None]

    def test_authors_end_to_end(self) -> None:
        authors = RecordGenerator(seed=5).generate_authors(5, start_id=1)

        header, rows = parse_csv(to_csv(authors, AUTHOR_COLUMNS))

        assert header == ["id", "license", "name", "lastName", "secondLastName", "year"]
        assert len(rows) == 5
        assert [row[0] for row in rows] == ["1", "2", "3", "4", "5"]
        assert rows[0][1] == authors[0].license


class TestParseCsv:
    def test_skips_blank_lines(self) -> None:
        header, rows = parse_csv('a,b\n"1","2"\n\n"3","4"\n')
        assert header == ["a", "b"]
        assert rows == [["1", "2"], ["3", "4"]]

    def test_empty_text(self) -> None:
        assert parse_csv("") == ([], [])


class TestReadCsvText:
    def test_utf8(self, tmp_path: Path) -> None:
        f = tmp_path / "data.csv"
        f.write_text('name\n"Muñoz"\n', encoding="utf-8")
        assert "Muñoz" in read_csv_text(f)

    def test_falls_back_to_detected_encoding(self, tmp_path: Path) -> None:
        f = tmp_path / "data.csv"
        f.write_bytes("name\n\"Muñoz Gómez\"\n".encode("utf-16"))
        assert "Gómez" in read_csv_text(f)
