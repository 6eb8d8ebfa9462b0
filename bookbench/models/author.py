"""Author data model."""

from pydantic import BaseModel, ConfigDict, Field

# CSV header / SQL column order for the Autor table
AUTHOR_COLUMNS: list[str] = ["id", "license", "name", "lastName", "secondLastName", "year"]


class Author(BaseModel):
    """A synthetic author record."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int | None = None
    license: str  # "ABC-1234-DE", not guaranteed unique
    name: str
    last_name: str = Field(alias="lastName")
    second_last_name: str | None = Field(default=None, alias="secondLastName")
    year: int
