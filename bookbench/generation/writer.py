"""Chunked CSV file generation."""

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from bookbench.generation.generator import check_count
from bookbench.ingestion.codec import record_values, to_csv, to_csv_row

logger = logging.getLogger(__name__)

# Called as generate(count, start_id) and returns a list of records
GenerateFn = Callable[[int, int], list]


def write_records_csv(
    path: str | Path,
    generate: GenerateFn,
    count: int,
    columns: Sequence[str],
    chunk_size: int = 10_000,
) -> Path:
    """Generate ``count`` records in chunks and stream them to one CSV file.

    Only one chunk is held in memory at a time. The header is written
    first and each chunk is appended.

    Args:
        path: Output file.
        generate: Record factory called once per chunk.
        count: Total number of records.
        columns: CSV columns.
        chunk_size: Records per chunk.

    Returns:
        The output path.

    Raises:
        GenerationError: If count is negative.
    """
    check_count(count)
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    chunks = -(-count // chunk_size)

    with open(out, "w", encoding="utf-8", newline="") as f:
        f.write(",".join(columns) + "\n")
        for i in range(chunks):
            current = min(chunk_size, count - i * chunk_size)
            logger.info("Generating chunk %d/%d (%d records)", i + 1, chunks, current)
            for record in generate(current, i * chunk_size + 1):
                f.write(to_csv_row(record_values(record, columns)) + "\n")

    logger.info("Data saved to %s", out)
    return out


def write_multiple_csv(
    directory: str | Path,
    file_count: int,
    items_per_file: int,
    generate: GenerateFn,
    columns: Sequence[str],
    prefix: str,
) -> list[Path]:
    """Write ``file_count`` CSV files of ``items_per_file`` records each.

    Files are named ``{prefix}_{n}.csv`` with ``n`` starting at 1.
    """
    check_count(file_count)
    check_count(items_per_file)
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    files: list[Path] = []

    for i in range(file_count):
        records = generate(items_per_file, i * items_per_file + 1)
        file_path = out_dir / f"{prefix}_{i + 1}.csv"
        file_path.write_text(to_csv(records, columns), encoding="utf-8")
        files.append(file_path)

        if (i + 1) % 10 == 0:
            logger.info("Generated %d of %d %s files", i + 1, file_count, prefix)

    return files
