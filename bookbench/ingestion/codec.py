"""CSV codec: quote-all serialization and single-line row parsing.

Every value is wrapped in double quotes with inner quotes doubled.
Rows are assumed to be single-line: values containing newlines are
rejected rather than escaped.
"""

import csv
import io
import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

import chardet
from pydantic import BaseModel

from bookbench.errors import CodecError

logger = logging.getLogger(__name__)


def record_values(record: BaseModel | Mapping, columns: Sequence[str]) -> list:
    if isinstance(record, BaseModel):
        data = record.model_dump(by_alias=True)
    else:
        data = record
    return [data.get(column) for column in columns]


def _writer(buffer: io.StringIO):
    return csv.writer(
        buffer,
        quoting=csv.QUOTE_ALL,
        doublequote=True,
        lineterminator="\n",
    )


def _check_single_line(values: Sequence) -> None:
    for value in values:
        if isinstance(value, str) and ("\n" in value or "\r" in value):
            raise CodecError(f"Embedded newlines are not supported: {value[:40]!r}")


def to_csv_row(values: Sequence) -> str:
    """Serialize one row of values to a CSV line without terminator.

    ``None`` is written as an empty quoted field.

    Raises:
        CodecError: If a value contains a newline.
    """
    _check_single_line(values)
    buffer = io.StringIO()
    _writer(buffer).writerow(["" if v is None else v for v in values])
    return buffer.getvalue().rstrip("\n")


def to_csv(records: Iterable[BaseModel | Mapping], columns: Sequence[str]) -> str:
    """Serialize records to CSV text with a header line.

    Args:
        records: Pydantic records (dumped by alias) or mappings keyed by column.
        columns: Column names, used both for the header and for value lookup.

    Returns:
        CSV text ending with a newline.
    """
    lines = [",".join(columns)]
    lines.extend(to_csv_row(record_values(record, columns)) for record in records)
    return "\n".join(lines) + "\n"


def parse_row(line: str) -> list[str]:
    """Parse a single CSV line into raw string fields.

    Args:
        line: One line of CSV text, without its terminator.

    Returns:
        List of field strings with quoting removed.

    Raises:
        CodecError: If the line is malformed or contains a newline.
    """
    line = line.rstrip("\r")
    if "\n" in line or "\r" in line:
        raise CodecError("Embedded newlines are not supported")
    if not line:
        return []

    try:
        return next(csv.reader([line], strict=True))
    except csv.Error as exc:
        raise CodecError(f"Malformed CSV row: {exc}") from exc


def parse_csv(text: str) -> tuple[list[str], list[list[str]]]:
    """Parse CSV text into a header and data rows, skipping blank lines."""
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return [], []
    header = parse_row(lines[0])
    return header, [parse_row(line) for line in lines[1:]]


def read_csv_text(file_path: str | Path) -> str:
    """Read a CSV file, trying UTF-8 first and then detected encodings.

    Files written by this package are UTF-8; exports from external tools
    may not be.
    """
    path = Path(file_path)
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        pass

    raw_bytes = path.read_bytes()
    detected = chardet.detect(raw_bytes)
    encoding = detected.get("encoding") or "utf-8"
    confidence = detected.get("confidence", 0)

    if confidence < 0.7:
        logger.warning(
            "Low confidence encoding detection for %s: %s (%.0f%%)",
            path,
            encoding,
            confidence * 100,
        )

    try:
        return raw_bytes.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        logger.error("Failed to decode file: %s", path)
        return raw_bytes.decode("utf-8", errors="replace")
