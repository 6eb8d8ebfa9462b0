"""Relational database connections, schema and table-level helpers.

SQLite is the default engine; MySQL is reached through PyMySQL. Both
connections return rows addressable by column name.
"""

import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pymysql
from pymysql.cursors import DictCursor

from bookbench.config import AppConfig, MySQLConfig, MySQLUser
from bookbench.ingestion.codec import to_csv
from bookbench.ingestion.loader import check_identifier

logger = logging.getLogger(__name__)

PLACEHOLDERS: dict[str, str] = {"sqlite": "?", "mysql": "%s"}

SCHEMA: dict[str, list[str]] = {
    "sqlite": [
        """
        CREATE TABLE IF NOT EXISTS Autor (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            license VARCHAR(12) NOT NULL UNIQUE,
            name TEXT NOT NULL,
            lastName TEXT,
            secondLastName TEXT,
            year SMALLINT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS Libro (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            ISBN VARCHAR(16) NOT NULL UNIQUE,
            title VARCHAR(512) NOT NULL,
            autor_license VARCHAR(12),
            editorial TEXT,
            pages SMALLINT,
            year SMALLINT NOT NULL,
            genre TEXT,
            language TEXT NOT NULL,
            format TEXT,
            sinopsis TEXT,
            content TEXT,
            FOREIGN KEY (autor_license) REFERENCES Autor(license)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS test (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            x INT,
            y INT,
            z VARCHAR(100)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS old_books (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            ISBN VARCHAR(16),
            pages SMALLINT,
            year SMALLINT NOT NULL
        )
        """,
    ],
    "mysql": [
        """
        CREATE TABLE IF NOT EXISTS Autor (
            id INT AUTO_INCREMENT PRIMARY KEY,
            license VARCHAR(12) NOT NULL UNIQUE,
            name TINYTEXT NOT NULL,
            lastName TINYTEXT,
            secondLastName TINYTEXT,
            year SMALLINT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS Libro (
            id INT AUTO_INCREMENT PRIMARY KEY,
            ISBN VARCHAR(16) NOT NULL UNIQUE,
            title VARCHAR(512) NOT NULL,
            autor_license VARCHAR(12),
            editorial TINYTEXT,
            pages SMALLINT,
            year SMALLINT NOT NULL,
            genre TINYTEXT,
            language TINYTEXT NOT NULL,
            format TINYTEXT,
            sinopsis TEXT,
            content TEXT,
            FOREIGN KEY (autor_license) REFERENCES Autor(license)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS test (
            id INT AUTO_INCREMENT PRIMARY KEY,
            x INT,
            y INT,
            z VARCHAR(100)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS old_books (
            id INT AUTO_INCREMENT PRIMARY KEY,
            ISBN VARCHAR(16),
            pages SMALLINT,
            year SMALLINT NOT NULL
        )
        """,
    ],
}

# Dependents first, so drops and deletes respect the foreign key
TABLES: list[str] = ["old_books", "test", "Libro", "Autor"]

STATISTICS_SQL = """
    SELECT
        genre,
        COUNT(*) AS book_count,
        AVG(pages) AS avg_pages,
        MIN(year) AS first_year,
        MAX(year) AS last_year
    FROM Libro
    GROUP BY genre
    ORDER BY book_count DESC
"""


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    """Create a connection to the SQLite database.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        A sqlite3 Connection with row_factory set to Row.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def connect_mysql(config: MySQLConfig, use_database: bool = True) -> Any:
    """Open a PyMySQL connection returning rows as dicts.

    Args:
        config: MySQL settings.
        use_database: Select ``config.database``; pass False to connect to
            the server only (e.g. to create the database).
    """
    return pymysql.connect(
        host=config.host,
        port=config.port,
        user=config.user,
        password=config.password,
        database=config.database if use_database else None,
        cursorclass=DictCursor,
        local_infile=True,
    )


def connect(config: AppConfig) -> Any:
    """Open a connection to the configured engine."""
    engine = config.storage.engine
    if engine == "sqlite":
        Path(config.storage.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
        return get_connection(config.storage.sqlite_path)
    if engine == "mysql":
        return connect_mysql(config.mysql)
    raise ValueError(f"Unsupported engine: '{engine}'. Supported: {', '.join(PLACEHOLDERS)}")


def placeholder_for(engine: str) -> str:
    """Parameter marker used by the engine's driver."""
    if engine not in PLACEHOLDERS:
        raise ValueError(f"Unsupported engine: '{engine}'. Supported: {', '.join(PLACEHOLDERS)}")
    return PLACEHOLDERS[engine]


def create_schema(connection: Any, engine: str = "sqlite", drop: bool = False) -> None:
    """Create the application tables.

    Args:
        connection: Open DB-API connection.
        engine: "sqlite" or "mysql".
        drop: Drop existing tables first.
    """
    cursor = connection.cursor()
    try:
        if drop:
            for table in TABLES:
                cursor.execute(f"DROP TABLE IF EXISTS {table}")
        for statement in SCHEMA[engine]:
            cursor.execute(statement)
        connection.commit()
    finally:
        cursor.close()
    logger.info("Database schema created (%s)", engine)


def create_mysql_database(config: MySQLConfig, drop: bool = False) -> None:
    """Create the configured MySQL database, optionally dropping it first."""
    database = check_identifier(config.database)
    conn = connect_mysql(config, use_database=False)
    try:
        with conn.cursor() as cursor:
            if drop:
                cursor.execute(f"DROP DATABASE IF EXISTS {database}")
            cursor.execute(f"CREATE DATABASE IF NOT EXISTS {database}")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_path: str | Path, drop: bool = False) -> None:
    """Create the SQLite database schema if it doesn't exist.

    Args:
        db_path: Path to the SQLite database file.
        drop: Drop existing tables first.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = get_connection(db_path)
    try:
        create_schema(conn, "sqlite", drop=drop)
    finally:
        conn.close()


def fetch_all(connection: Any, sql: str, params: Sequence = ()) -> list[dict]:
    """Run a query and return the rows as dicts."""
    cursor = connection.cursor()
    try:
        cursor.execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]
    finally:
        cursor.close()


def count_rows(connection: Any, table: str) -> int:
    rows = fetch_all(connection, f"SELECT COUNT(*) AS count FROM {check_identifier(table)}")
    return int(rows[0]["count"])


def truncate_tables(connection: Any, tables: Sequence[str], engine: str = "sqlite") -> None:
    """Remove all rows from ``tables`` in the given order."""
    cursor = connection.cursor()
    try:
        if engine == "mysql":
            cursor.execute("SET FOREIGN_KEY_CHECKS = 0")
            for table in tables:
                cursor.execute(f"TRUNCATE {check_identifier(table)}")
            cursor.execute("SET FOREIGN_KEY_CHECKS = 1")
        else:
            for table in tables:
                cursor.execute(f"DELETE FROM {check_identifier(table)}")
        connection.commit()
    finally:
        cursor.close()


def export_table_csv(
    connection: Any,
    table: str,
    columns: Sequence[str],
    file_path: str | Path,
) -> int:
    """Write ``columns`` of every row of ``table`` to a CSV file.

    Returns:
        Number of rows exported.
    """
    cols = ",".join(check_identifier(c) for c in columns)
    rows = fetch_all(connection, f"SELECT {cols} FROM {check_identifier(table)}")
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_csv(rows, columns), encoding="utf-8")
    logger.info("Exported %d rows from %s to %s", len(rows), table, path)
    return len(rows)


def load_data_infile(
    connection: Any,
    file_path: str | Path,
    table: str,
    columns: Sequence[str],
    ignore_lines: int = 1,
) -> int:
    """Bulk load a CSV file with MySQL ``LOAD DATA LOCAL INFILE``.

    The file name is passed as a bound parameter.

    Returns:
        Number of rows the server reports as loaded.
    """
    cols = ",".join(check_identifier(c) for c in columns)
    sql = (
        f"LOAD DATA LOCAL INFILE %s INTO TABLE {check_identifier(table)} "
        "FIELDS TERMINATED BY ',' ENCLOSED BY '\"' "
        "LINES TERMINATED BY '\\n' "
        f"IGNORE {int(ignore_lines)} ROWS ({cols})"
    )
    with connection.cursor() as cursor:
        cursor.execute("SET FOREIGN_KEY_CHECKS = 0")
        loaded = cursor.execute(sql, (str(Path(file_path).resolve()),))
        cursor.execute("SET FOREIGN_KEY_CHECKS = 1")
    connection.commit()
    logger.info("Loaded %s rows into %s from %s", loaded, table, file_path)
    return int(loaded or 0)


def run_statistics_query(connection: Any) -> list[dict]:
    """Per-genre book counts, average page count and year range."""
    return fetch_all(connection, STATISTICS_SQL)


_PRIVILEGES = {"SELECT", "INSERT", "UPDATE", "DELETE"}


def _privilege_list(privileges: Sequence[str]) -> str:
    for privilege in privileges:
        if privilege.upper() not in _PRIVILEGES:
            raise ValueError(f"Unsupported privilege: {privilege!r}")
    return ", ".join(p.upper() for p in privileges)


def create_users(connection: Any, config: MySQLConfig) -> None:
    """Recreate the benchmark accounts with their per-table grants.

    Existing accounts of the same name are dropped first. User names,
    hosts and passwords are bound as parameters.
    """
    database = check_identifier(config.database)
    cursor = connection.cursor()
    try:
        for user in config.users:
            cursor.execute("DROP USER IF EXISTS %s@%s", (user.name, user.host))

        for user in config.users:
            cursor.execute(
                "CREATE USER %s@%s IDENTIFIED BY %s", (user.name, user.host, user.password)
            )
            for table, privileges in user.grants.items():
                cursor.execute(
                    f"GRANT {_privilege_list(privileges)} ON {database}.{check_identifier(table)} "
                    "TO %s@%s",
                    (user.name, user.host),
                )
            logger.info(
                "Created MySQL user %s with grants on %s", user.name, list(user.grants) or "nothing"
            )

        cursor.execute("FLUSH PRIVILEGES")
        connection.commit()
    finally:
        cursor.close()


def _connect_as(config: MySQLConfig, user: MySQLUser) -> Any:
    return connect_mysql(config.model_copy(update={"user": user.name, "password": user.password}))


def check_user_permissions(
    config: MySQLConfig, user: MySQLUser, tables: Sequence[str] = ("Libro", "Autor")
) -> dict[str, str]:
    """Try a SELECT on each table as ``user``.

    Returns:
        Mapping of table to ``"SELECT: OK"`` or ``"SELECT: Failed"``, or
        ``{"connection": "Failed: ..."}`` if the user cannot connect.
    """
    try:
        conn = _connect_as(config, user)
    except pymysql.MySQLError as exc:
        return {"connection": f"Failed: {exc}"}

    results: dict[str, str] = {}
    try:
        for table in tables:
            try:
                conn.cursor().execute(f"SELECT 1 FROM {check_identifier(table)} LIMIT 1")
                results[table] = "SELECT: OK"
            except pymysql.MySQLError:
                results[table] = "SELECT: Failed"
    finally:
        conn.close()
    return results


def insert_as_user(
    config: MySQLConfig, user: MySQLUser, table: str, row: dict[str, Any]
) -> bool:
    """Attempt a single-row insert as ``user`` without committing it.

    Returns:
        True if the server accepted the insert, False if the connection
        or the statement was refused.
    """
    columns = ",".join(check_identifier(c) for c in row)
    markers = ",".join(["%s"] * len(row))
    sql = f"INSERT INTO {check_identifier(table)} ({columns}) VALUES ({markers})"

    try:
        conn = _connect_as(config, user)
    except pymysql.MySQLError as exc:
        logger.info("User %s could not connect: %s", user.name, exc)
        return False

    try:
        conn.cursor().execute(sql, list(row.values()))
        conn.rollback()
        return True
    except pymysql.MySQLError as exc:
        logger.info("User %s insert into %s refused: %s", user.name, table, exc)
        return False
    finally:
        conn.close()
