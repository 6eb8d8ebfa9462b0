"""Tests for chunked CSV file generation."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from bookbench.errors import GenerationError
from bookbench.generation import RecordGenerator, write_multiple_csv, write_records_csv
from bookbench.ingestion.codec import parse_csv
from bookbench.models import AUTHOR_COLUMNS, BOOK_COLUMNS


class TestWriteRecordsCsv:
    def test_writes_all_records_in_chunks(self, tmp_path: Path) -> None:
        generator = RecordGenerator(seed=1)
        generate = MagicMock(side_effect=generator.generate_authors)

        path = write_records_csv(tmp_path / "out" / "authors.csv", generate, 25, AUTHOR_COLUMNS, chunk_size=10)

        assert [c.args for c in generate.call_args_list] == [(10, 1), (10, 11), (5, 21)]
        header, rows = parse_csv(path.read_text(encoding="utf-8"))
        assert header == AUTHOR_COLUMNS
        assert [row[0] for row in rows] == [str(i) for i in range(1, 26)]

    def test_zero_records_writes_header(self, tmp_path: Path) -> None:
        path = write_records_csv(tmp_path / "empty.csv", RecordGenerator().generate_authors, 0, AUTHOR_COLUMNS)
        assert path.read_text(encoding="utf-8") == ",".join(AUTHOR_COLUMNS) + "\n"


class TestWriteMultipleCsv:
    def test_file_names_and_sizes(self, tmp_path: Path) -> None:
        generator = RecordGenerator(seed=2)

        files = write_multiple_csv(tmp_path, 3, 4, generator.generate_books, BOOK_COLUMNS, "books_batch")

        assert [f.name for f in files] == ["books_batch_1.csv", "books_batch_2.csv", "books_batch_3.csv"]
        for f in files:
            header, rows = parse_csv(f.read_text(encoding="utf-8"))
            assert header == BOOK_COLUMNS
            assert len(rows) == 4
        assert generator.isbn_count == 12


class TestCountValidation:
    def test_negative_count_raises(self, tmp_path: Path) -> None:
        out = tmp_path / "neg.csv"
        with pytest.raises(GenerationError):
            write_records_csv(out, RecordGenerator().generate_authors, -5, AUTHOR_COLUMNS)
        assert not out.exists()

    def test_negative_file_count_raises(self, tmp_path: Path) -> None:
        with pytest.raises(GenerationError):
            write_multiple_csv(tmp_path, -1, 4, RecordGenerator().generate_books, BOOK_COLUMNS, "b")

    def test_negative_items_per_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(GenerationError):
            write_multiple_csv(tmp_path, 2, -4, RecordGenerator().generate_books, BOOK_COLUMNS, "b")
        assert list(tmp_path.glob("b_*.csv")) == []
