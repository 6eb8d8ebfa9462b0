"""Data models for the batch loading pipeline."""

from pydantic import BaseModel, Field


class TransformedRow(BaseModel):
    """Bound values for one row and the matching placeholder fragment.

    ``placeholders`` is the comma-joined marker list without parentheses,
    e.g. ``"?,?,?"``.
    """

    values: list = Field(default_factory=list)
    placeholders: str


class BatchFailure(BaseModel):
    """A batch that failed to insert while the loader was told to continue."""

    table: str
    batch_index: int
    row_count: int
    error: str
