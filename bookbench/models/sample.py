"""Sample record model for the x/y/z migration table."""

from pydantic import BaseModel, ConfigDict

SAMPLE_COLUMNS: list[str] = ["x", "y", "z"]


class SampleRecord(BaseModel):
    """A row of the ``test`` table: two bounded ints and a short text."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    z: str
