"""Shared fixtures."""

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from bookbench.config import AppConfig, PipelineConfig, StorageConfig
from bookbench.storage.database import create_schema, get_connection


@pytest.fixture
def db_conn(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    """SQLite connection with the application schema."""
    conn = get_connection(tmp_path / "bench.db")
    create_schema(conn, "sqlite")
    yield conn
    conn.close()


@pytest.fixture
def small_config(tmp_path: Path) -> AppConfig:
    """Config with tiny dataset sizes rooted in tmp_path."""
    return AppConfig(
        storage=StorageConfig(
            engine="sqlite",
            sqlite_path=str(tmp_path / "bench.db"),
            tmp_dir=str(tmp_path / "work"),
        ),
        pipeline=PipelineConfig(
            record_count=20,
            author_count=30,
            batch_size=7,
            chunk_size=8,
            output_path=str(tmp_path / "results"),
            stress_test_count=15,
            stress_batch_size=4,
            batch_files_count=3,
            files_batch_size=5,
            mass_record_count=12,
            mass_batch_size=5,
        ),
    )
