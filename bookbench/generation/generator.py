"""Synthetic author, book and sample record generator."""

import logging
import random
import string
import time

from bookbench.errors import GenerationError, InvalidRangeError
from bookbench.models.author import Author
from bookbench.models.book import Book, BookStub
from bookbench.models.sample import SampleRecord

logger = logging.getLogger(__name__)

LANGUAGES: list[str] = [
    "English",
    "Spanish",
    "French",
    "German",
    "Chinese",
    "Japanese",
    "Russian",
    "Portuguese",
    "Italian",
    "Dutch",
]

GENRES: list[str] = [
    "Fiction",
    "Non-Fiction",
    "Science Fiction",
    "Fantasy",
    "Mystery",
    "Thriller",
    "Romance",
    "Western",
    "Horror",
    "Biography",
    "History",
    "Academic",
]

FORMATS: list[str] = [
    "Hardcover",
    "Paperback",
    "E-book",
    "Audio Book",
    "Large Print",
    "Pocket Edition",
]

PUBLISHERS: list[str] = [
    "Penguin",
    "Random House",
    "HarperCollins",
    "Simon & Schuster",
    "Macmillan",
    "Hachette",
    "Wiley",
    "Scholastic",
    "Oxford University Press",
]

# Inclusive (min, max) bounds per generated field
AUTHOR_NAME_LENGTH = (3, 10)
AUTHOR_LAST_NAME_LENGTH = (4, 12)
AUTHOR_YEAR = (1900, 2000)
BOOK_TITLE_LENGTH = (5, 50)
BOOK_PAGES = (50, 1200)
BOOK_YEAR = (1900, 2023)
BOOK_SYNOPSIS_LENGTH = (100, 500)
BOOK_CONTENT_LENGTH = (1000, 5000)
STUB_PAGES = (50, 1500)
SAMPLE_X = (1, 100)
SAMPLE_Y = (100, 200)
SAMPLE_Z_LENGTH = (5, 20)

ISBN_PREFIX = "978"
ISBN_DIGITS = 10
ISBN_MAX_ATTEMPTS = 10

RECORD_KINDS = ("author", "book", "sample", "book_stub")


class RecordGenerator:
    """Produces randomized records with bounded fields.

    Each instance owns its random source and the set of ISBNs it has
    handed out, so ISBN uniqueness holds for the lifetime of the instance.
    License codes are drawn from a fixed pattern and are not deduplicated.

    Args:
        seed: Optional seed for reproducible output.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)
        self._isbns: set[str] = set()

    @property
    def isbn_count(self) -> int:
        """Number of ISBNs issued by this generator."""
        return len(self._isbns)

    def random_number(self, lo: int, hi: int) -> int:
        """Return a uniform random integer in ``[lo, hi]``.

        Raises:
            InvalidRangeError: If ``lo > hi``.
        """
        if lo > hi:
            raise InvalidRangeError(lo, hi)
        return self._rng.randint(lo, hi)

    def random_text(self, length: int) -> str:
        """Return ``length`` random ASCII letters (upper and lower case)."""
        if length < 0:
            raise InvalidRangeError(0, length)
        return "".join(self._rng.choice(string.ascii_letters) for _ in range(length))

    def _random_text_between(self, bounds: tuple[int, int]) -> str:
        return self.random_text(self.random_number(*bounds))

    def _choice(self, options: list[str]) -> str:
        return options[self.random_number(0, len(options) - 1)]

    def generate_isbn(self) -> str:
        """Return an ISBN not yet issued by this generator.

        Tries a bounded number of random candidates, then falls back to a
        millisecond timestamp suffix bumped until it is unused.
        """
        for _ in range(ISBN_MAX_ATTEMPTS):
            digits = "".join(str(self.random_number(0, 9)) for _ in range(ISBN_DIGITS))
            isbn = ISBN_PREFIX + digits
            if isbn not in self._isbns:
                self._isbns.add(isbn)
                return isbn

        logger.debug("ISBN collisions after %d attempts, using timestamp", ISBN_MAX_ATTEMPTS)
        stamp = int(time.time() * 1000)
        isbn = ISBN_PREFIX + str(stamp)[-ISBN_DIGITS:]
        while isbn in self._isbns:
            stamp += 1
            isbn = ISBN_PREFIX + str(stamp)[-ISBN_DIGITS:]
        self._isbns.add(isbn)
        return isbn

    def generate_license(self) -> str:
        """Return a license code shaped ``AAA-NNNN-AA`` (11 characters)."""
        head = "".join(self._rng.choice(string.ascii_uppercase) for _ in range(3))
        number = self.random_number(1000, 9999)
        tail = "".join(self._rng.choice(string.ascii_uppercase) for _ in range(2))
        return f"{head}-{number}-{tail}"

    def generate_author(self, id: int | None = None) -> Author:
        second_last_name = None
        if self._rng.random() > 0.5:
            second_last_name = self._random_text_between(AUTHOR_LAST_NAME_LENGTH)

        return Author(
            id=id,
            license=self.generate_license(),
            name=self._random_text_between(AUTHOR_NAME_LENGTH),
            last_name=self._random_text_between(AUTHOR_LAST_NAME_LENGTH),
            second_last_name=second_last_name,
            year=self.random_number(*AUTHOR_YEAR),
        )

    def generate_authors(self, count: int, start_id: int | None = 1) -> list[Author]:
        """Generate ``count`` authors with consecutive ids from ``start_id``.

        Args:
            count: Number of authors.
            start_id: First id, or None to leave ids unassigned.

        Returns:
            List of Author records.

        Raises:
            GenerationError: If count is negative.
        """
        check_count(count)
        return [
            self.generate_author(None if start_id is None else start_id + i)
            for i in range(count)
        ]

    def generate_book(
        self, id: int | None = None, author_licenses: list[str] | None = None
    ) -> Book:
        author_license = self._choice(author_licenses) if author_licenses else None

        return Book(
            id=id,
            isbn=self.generate_isbn(),
            title=self._random_text_between(BOOK_TITLE_LENGTH),
            author_license=author_license,
            publisher=self._choice(PUBLISHERS),
            pages=self.random_number(*BOOK_PAGES),
            year=self.random_number(*BOOK_YEAR),
            genre=self._choice(GENRES),
            language=self._choice(LANGUAGES),
            format=self._choice(FORMATS),
            synopsis=self._random_text_between(BOOK_SYNOPSIS_LENGTH),
            content=self._random_text_between(BOOK_CONTENT_LENGTH),
        )

    def generate_books(
        self,
        count: int,
        start_id: int | None = 1,
        author_licenses: list[str] | None = None,
    ) -> list[Book]:
        """Generate ``count`` books.

        Args:
            count: Number of books.
            start_id: First id, or None to leave ids unassigned.
            author_licenses: Licenses to reference. When empty or None,
                books carry no author license.

        Returns:
            List of Book records with unique ISBNs.
        """
        check_count(count)
        return [
            self.generate_book(None if start_id is None else start_id + i, author_licenses)
            for i in range(count)
        ]

    def generate_book_stubs(self, count: int) -> list[BookStub]:
        check_count(count)
        return [
            BookStub(
                isbn=self.generate_isbn(),
                year=self.random_number(*BOOK_YEAR),
                pages=self.random_number(*STUB_PAGES),
            )
            for _ in range(count)
        ]

    def generate_samples(self, count: int) -> list[SampleRecord]:
        check_count(count)
        return [
            SampleRecord(
                x=self.random_number(*SAMPLE_X),
                y=self.random_number(*SAMPLE_Y),
                z=self._random_text_between(SAMPLE_Z_LENGTH),
            )
            for _ in range(count)
        ]

    def generate(self, kind: str, count: int, start_id: int | None = None) -> list:
        """Generate ``count`` records of the given kind.

        Args:
            kind: One of "author", "book", "sample", "book_stub".
            count: Number of records.
            start_id: First id for kinds that carry one.

        Returns:
            List of records.

        Raises:
            GenerationError: If kind is unknown or count is negative.
        """
        if kind == "author":
            return self.generate_authors(count, start_id)
        if kind == "book":
            return self.generate_books(count, start_id)
        if kind == "sample":
            return self.generate_samples(count)
        if kind == "book_stub":
            return self.generate_book_stubs(count)
        raise GenerationError(
            f"Unknown record kind: '{kind}'. Supported: {', '.join(RECORD_KINDS)}"
        )


def check_count(count: int) -> None:
    """Raise GenerationError for a negative record count."""
    if count < 0:
        raise GenerationError(f"Record count must be non-negative, got {count}")
