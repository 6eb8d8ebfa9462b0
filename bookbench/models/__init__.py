"""Data models for bookbench."""

from bookbench.models.author import AUTHOR_COLUMNS, Author
from bookbench.models.book import (
    BOOK_COLUMNS,
    BOOK_STUB_COLUMNS,
    BOOK_TABLE_COLUMNS,
    Book,
    BookStub,
)
from bookbench.models.load import BatchFailure, TransformedRow
from bookbench.models.metrics import TimerEntry
from bookbench.models.sample import SAMPLE_COLUMNS, SampleRecord

__all__ = [
    "AUTHOR_COLUMNS",
    "Author",
    "BOOK_COLUMNS",
    "BOOK_STUB_COLUMNS",
    "BOOK_TABLE_COLUMNS",
    "BatchFailure",
    "Book",
    "BookStub",
    "SAMPLE_COLUMNS",
    "SampleRecord",
    "TimerEntry",
    "TransformedRow",
]
