"""Book data models."""

from pydantic import BaseModel, ConfigDict, Field

# CSV header for generated books; ``id`` is assigned by the database
BOOK_COLUMNS: list[str] = [
    "isbn",
    "title",
    "autor_license",
    "editorial",
    "pages",
    "year",
    "genre",
    "language",
    "format",
    "sinopsis",
    "content",
]

# Insert columns for the Libro table, in CSV order
BOOK_TABLE_COLUMNS: list[str] = ["ISBN", *BOOK_COLUMNS[1:]]

BOOK_STUB_COLUMNS: list[str] = ["ISBN", "year", "pages"]


class Book(BaseModel):
    """A synthetic book record."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int | None = Field(default=None, exclude=True)
    isbn: str
    title: str
    author_license: str | None = Field(default=None, alias="autor_license")
    publisher: str = Field(alias="editorial")
    pages: int
    year: int
    genre: str
    language: str
    format: str
    synopsis: str = Field(alias="sinopsis")
    content: str


class BookStub(BaseModel):
    """Minimal book document used by the mass-insert test."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    isbn: str = Field(alias="ISBN")
    year: int
    pages: int
