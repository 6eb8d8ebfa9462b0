"""CSV ingestion: codec, row transforms and batch loading."""

from bookbench.ingestion.codec import parse_csv, parse_row, to_csv, to_csv_row
from bookbench.ingestion.loader import BatchLoader, build_insert_sql
from bookbench.ingestion.transforms import (
    RowTransform,
    author_transform,
    book_transform,
    column_transform,
    passthrough_transform,
)

__all__ = [
    "BatchLoader",
    "RowTransform",
    "author_transform",
    "book_transform",
    "build_insert_sql",
    "column_transform",
    "parse_csv",
    "parse_row",
    "passthrough_transform",
    "to_csv",
    "to_csv_row",
]
