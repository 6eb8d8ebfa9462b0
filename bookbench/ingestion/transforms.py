"""Row transform hooks for the batch loader.

A transform receives the raw parsed fields of one CSV line together with
the file header and returns a TransformedRow of bound values, or None to
skip the row. Transforms never format values into SQL.
"""

from collections.abc import Callable, Collection, Sequence

from bookbench.errors import CodecError
from bookbench.models.author import AUTHOR_COLUMNS
from bookbench.models.book import BOOK_STUB_COLUMNS, BOOK_TABLE_COLUMNS
from bookbench.models.load import TransformedRow
from bookbench.models.sample import SAMPLE_COLUMNS

RowTransform = Callable[[list[str], list[str]], TransformedRow | None]


def placeholders(count: int, marker: str = "?") -> str:
    """Return ``count`` comma-joined parameter markers, e.g. ``"?,?,?"``."""
    return ",".join([marker] * count)


def passthrough_transform(marker: str = "?") -> RowTransform:
    """Bind every raw field unchanged."""

    def transform(fields: list[str], header: list[str]) -> TransformedRow:
        return TransformedRow(values=list(fields), placeholders=placeholders(len(fields), marker))

    return transform


def column_transform(
    columns: Sequence[str],
    nullable: Collection[str] = (),
    integers: Collection[str] = (),
    marker: str = "?",
) -> RowTransform:
    """Build a transform that coerces fields positionally to ``columns``.

    Empty strings in ``nullable`` columns become None; ``integers``
    columns are converted with ``int``.

    Args:
        columns: Target columns, in CSV field order.
        nullable: Columns where an empty field means NULL.
        integers: Columns holding integer values.
        marker: Parameter marker of the target driver ("?" or "%s").

    Returns:
        A RowTransform. It raises CodecError on short rows and ValueError
        on non-numeric integer fields; the loader skips such rows.
    """
    fragment = placeholders(len(columns), marker)

    def transform(fields: list[str], header: list[str]) -> TransformedRow:
        if len(fields) < len(columns):
            raise CodecError(f"Expected {len(columns)} fields, got {len(fields)}")

        values: list = []
        for column, raw in zip(columns, fields):
            if raw == "" and column in nullable:
                values.append(None)
            elif column in integers:
                values.append(int(raw))
            else:
                values.append(raw)
        return TransformedRow(values=values, placeholders=fragment)

    return transform


def author_transform(marker: str = "?") -> RowTransform:
    return column_transform(
        AUTHOR_COLUMNS,
        nullable={"id", "secondLastName", "year"},
        integers={"id", "year"},
        marker=marker,
    )


def book_transform(marker: str = "?") -> RowTransform:
    return column_transform(
        BOOK_TABLE_COLUMNS,
        nullable={"autor_license"},
        integers={"pages", "year"},
        marker=marker,
    )


def sample_transform(marker: str = "?") -> RowTransform:
    return column_transform(SAMPLE_COLUMNS, integers={"x", "y"}, marker=marker)


def book_stub_transform(marker: str = "?") -> RowTransform:
    return column_transform(BOOK_STUB_COLUMNS, integers={"year", "pages"}, marker=marker)
