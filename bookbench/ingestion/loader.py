"""Batched, parameterized CSV loading into a SQL table."""

import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from bookbench.errors import LoadError
from bookbench.ingestion.codec import parse_row, read_csv_text, record_values
from bookbench.ingestion.transforms import RowTransform, passthrough_transform, placeholders
from bookbench.models.load import BatchFailure

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def check_identifier(name: str) -> str:
    if not _IDENTIFIER.fullmatch(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def build_insert_sql(table: str, columns: Sequence[str], row_placeholders: Sequence[str]) -> str:
    """Build a multi-row INSERT statement.

    Args:
        table: Target table name.
        columns: Target column names.
        row_placeholders: One marker fragment per row, e.g. ``"?,?"``.

    Returns:
        ``INSERT INTO t (a,b) VALUES (?,?),(?,?)``

    Raises:
        ValueError: If a table or column name is not a plain identifier.
    """
    check_identifier(table)
    cols = ",".join(check_identifier(c) for c in columns)
    groups = ",".join(f"({fragment})" for fragment in row_placeholders)
    return f"INSERT INTO {table} ({cols}) VALUES {groups}"


class BatchLoader:
    """Loads rows into a table with one multi-row INSERT per batch.

    Works with any DB-API 2 connection. Each successful batch is
    committed. A failed batch is rolled back and, by default, aborts the
    load with LoadError; with ``continue_on_error`` it is recorded in
    ``failures`` and loading moves on to the next batch.

    Args:
        connection: DB-API 2 connection.
        batch_size: Rows per INSERT statement.
        continue_on_error: Record failed batches instead of raising.
        placeholder: Parameter marker of the driver ("?" for sqlite3,
            "%s" for PyMySQL).
    """

    def __init__(
        self,
        connection: Any,
        batch_size: int = DEFAULT_BATCH_SIZE,
        continue_on_error: bool = False,
        placeholder: str = "?",
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._connection = connection
        self.batch_size = batch_size
        self.continue_on_error = continue_on_error
        self.placeholder = placeholder
        self.failures: list[BatchFailure] = []
        self.skipped = 0

    def load_csv(
        self,
        file_path: str | Path,
        table: str,
        columns: Sequence[str],
        transform: RowTransform | None = None,
    ) -> int:
        """Insert the rows of a CSV file into ``table``.

        Line 0 is the header; blank lines are ignored. Rows that fail to
        parse or transform, or whose transform returns None, are skipped.

        Args:
            file_path: CSV file to read.
            table: Target table.
            columns: Target columns.
            transform: Row transform; defaults to binding all fields as-is.

        Returns:
            Number of rows inserted across all batches.

        Raises:
            LoadError: If a batch fails and ``continue_on_error`` is off.
        """
        logger.info("Batch inserting data from %s into %s", file_path, table)
        self.failures = []
        self.skipped = 0

        lines = read_csv_text(file_path).split("\n")
        header = parse_row(lines[0]) if lines else []
        data_lines = [line for line in lines[1:] if line.strip()]

        if not data_lines:
            logger.info("No data rows found in %s", file_path)
            return 0

        transform = transform or passthrough_transform(self.placeholder)
        inserted = 0

        for batch_index, start in enumerate(range(0, len(data_lines), self.batch_size)):
            values: list = []
            groups: list[str] = []

            for line in data_lines[start : start + self.batch_size]:
                try:
                    row = transform(parse_row(line), header)
                except Exception:
                    logger.exception("Error parsing row: %s", line[:120])
                    self.skipped += 1
                    continue
                if row is None:
                    self.skipped += 1
                    continue
                values.extend(row.values)
                groups.append(row.placeholders)

            inserted += self._insert_batch(table, columns, batch_index, values, groups)

            done = start + self.batch_size
            if done >= len(data_lines) or batch_index % 5 == 0:
                logger.info("Imported %d of %d rows", inserted, len(data_lines))

        return inserted

    def load_records(
        self,
        records: Iterable[BaseModel],
        table: str,
        columns: Sequence[str],
        fields: Sequence[str] | None = None,
    ) -> int:
        """Insert in-memory records using the same batching as ``load_csv``.

        Args:
            records: Pydantic records.
            table: Target table.
            columns: Target columns.
            fields: Record keys (by alias) matching ``columns``; defaults
                to ``columns``.

        Returns:
            Number of rows inserted.
        """
        self.failures = []
        self.skipped = 0
        keys = list(fields or columns)
        rows = [record_values(record, keys) for record in records]
        fragment = placeholders(len(keys), self.placeholder)
        inserted = 0

        for batch_index, start in enumerate(range(0, len(rows), self.batch_size)):
            batch = rows[start : start + self.batch_size]
            values = [value for row in batch for value in row]
            inserted += self._insert_batch(
                table, columns, batch_index, values, [fragment] * len(batch)
            )

        logger.info("Inserted %d of %d records into %s", inserted, len(rows), table)
        return inserted

    def _insert_batch(
        self,
        table: str,
        columns: Sequence[str],
        batch_index: int,
        values: list,
        groups: list[str],
    ) -> int:
        if not groups:
            return 0

        sql = build_insert_sql(table, columns, groups)
        cursor = self._connection.cursor()
        try:
            cursor.execute(sql, values)
            self._connection.commit()
        except Exception as exc:
            self._connection.rollback()
            if not self.continue_on_error:
                raise LoadError(table, batch_index, str(exc)) from exc
            logger.error("Batch %d into %s failed: %s", batch_index, table, exc)
            self.failures.append(
                BatchFailure(
                    table=table,
                    batch_index=batch_index,
                    row_count=len(groups),
                    error=str(exc),
                )
            )
            return 0
        finally:
            cursor.close()

        return len(groups)
