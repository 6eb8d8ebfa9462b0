"""Tests for database helpers."""

import sqlite3
from pathlib import Path
from unittest.mock import MagicMock, patch

import pymysql
import pytest

from bookbench.config import AppConfig, MySQLConfig, MySQLUser
from bookbench.errors import LoadError
from bookbench.generation import RecordGenerator
from bookbench.ingestion import BatchLoader
from bookbench.ingestion.codec import parse_csv
from bookbench.models import AUTHOR_COLUMNS, BOOK_COLUMNS, BOOK_TABLE_COLUMNS
from bookbench.storage.database import (
    connect,
    count_rows,
    check_user_permissions,
    create_schema,
    create_users,
    export_table_csv,
    fetch_all,
    get_connection,
    initialize_database,
    insert_as_user,
    load_data_infile,
    placeholder_for,
    run_statistics_query,
    truncate_tables,
)


def table_names(db_path: Path) -> list[str]:
    conn = sqlite3.connect(str(db_path))
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = [row[0] for row in cursor.fetchall()]
    conn.close()
    return tables


def insert_books(conn: sqlite3.Connection, count: int) -> list:
    books = RecordGenerator(seed=11).generate_books(count)
    BatchLoader(conn).load_records(books, "Libro", BOOK_TABLE_COLUMNS, fields=BOOK_COLUMNS)
    return books


class TestInitializeDatabase:
    def test_creates_tables(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        tables = table_names(db_path)
        for table in ("Autor", "Libro", "test", "old_books"):
            assert table in tables

    def test_idempotent(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)
        initialize_database(db_path)  # Should not raise
        assert "Libro" in table_names(db_path)

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "dir" / "test.db"
        initialize_database(db_path)
        assert db_path.exists()

    def test_libro_table_schema(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = sqlite3.connect(str(db_path))
        cursor = conn.execute("PRAGMA table_info(Libro)")
        columns = {row[1] for row in cursor.fetchall()}
        conn.close()

        assert set(BOOK_TABLE_COLUMNS) <= columns
        assert "id" in columns

    def test_drop_recreates_empty(self, db_conn: sqlite3.Connection) -> None:
        insert_books(db_conn, 3)
        create_schema(db_conn, "sqlite", drop=True)
        assert count_rows(db_conn, "Libro") == 0

    def test_initialize_with_drop(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)
        conn = get_connection(db_path)
        insert_books(conn, 2)
        conn.close()

        initialize_database(db_path, drop=True)

        conn = get_connection(db_path)
        assert count_rows(conn, "Libro") == 0
        conn.close()


class TestGetConnection:
    def test_returns_connection_with_row_factory(self, tmp_path: Path) -> None:
        conn = get_connection(tmp_path / "test.db")
        assert conn.row_factory == sqlite3.Row
        conn.close()

    def test_wal_mode_enabled(self, tmp_path: Path) -> None:
        conn = get_connection(tmp_path / "test.db")
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        conn.close()
        assert mode == "wal"

    def test_foreign_keys_enforced(self, db_conn: sqlite3.Connection) -> None:
        book = RecordGenerator(seed=1).generate_books(1, author_licenses=["ZZZ-0000-ZZ"])
        with pytest.raises(LoadError):
            BatchLoader(db_conn).load_records(book, "Libro", BOOK_TABLE_COLUMNS, fields=BOOK_COLUMNS)

    def test_connect_sqlite_from_config(self, tmp_path: Path) -> None:
        config = AppConfig(storage={"sqlite_path": str(tmp_path / "sub" / "x.db")})
        conn = connect(config)
        assert isinstance(conn, sqlite3.Connection)
        conn.close()

    def test_connect_unknown_engine(self) -> None:
        with pytest.raises(ValueError):
            connect(AppConfig(storage={"engine": "oracle"}))

    def test_placeholders(self) -> None:
        assert placeholder_for("sqlite") == "?"
        assert placeholder_for("mysql") == "%s"
        with pytest.raises(ValueError):
            placeholder_for("oracle")

    def test_connect_mysql_uses_dict_cursor(self) -> None:
        with patch("pymysql.connect") as mock_connect:
            connect(AppConfig(storage={"engine": "mysql"}, mysql=MySQLConfig(host="db", password="pw")))

        kwargs = mock_connect.call_args.kwargs
        assert kwargs["host"] == "db"
        assert kwargs["database"] == "LibrosAutores"
        assert kwargs["local_infile"] is True
        assert kwargs["cursorclass"].__name__ == "DictCursor"


class TestTableHelpers:
    def test_fetch_all_returns_dicts(self, db_conn: sqlite3.Connection) -> None:
        books = insert_books(db_conn, 2)
        rows = fetch_all(db_conn, "SELECT ISBN, pages FROM Libro ORDER BY id")
        assert rows == [{"ISBN": b.isbn, "pages": b.pages} for b in books]

    def test_count_rows_rejects_bad_name(self, db_conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError):
            count_rows(db_conn, "Libro; DROP TABLE Autor")

    def test_truncate_tables(self, db_conn: sqlite3.Connection) -> None:
        insert_books(db_conn, 4)
        truncate_tables(db_conn, ["Libro", "Autor"])
        assert count_rows(db_conn, "Libro") == 0

    def test_truncate_mysql_disables_fk_checks(self) -> None:
        conn = MagicMock()
        truncate_tables(conn, ["Libro", "Autor"], engine="mysql")

        statements = [c.args[0] for c in conn.cursor.return_value.execute.call_args_list]
        assert statements == [
            "SET FOREIGN_KEY_CHECKS = 0",
            "TRUNCATE Libro",
            "TRUNCATE Autor",
            "SET FOREIGN_KEY_CHECKS = 1",
        ]
        conn.commit.assert_called_once()

    def test_export_table_csv(self, tmp_path: Path, db_conn: sqlite3.Connection) -> None:
        authors = RecordGenerator(seed=2).generate_authors(3)
        BatchLoader(db_conn).load_records(authors, "Autor", AUTHOR_COLUMNS)

        exported = export_table_csv(db_conn, "Autor", AUTHOR_COLUMNS, tmp_path / "out" / "a.csv")

        header, rows = parse_csv((tmp_path / "out" / "a.csv").read_text(encoding="utf-8"))
        assert exported == 3
        assert header == AUTHOR_COLUMNS
        assert [row[1] for row in rows] == [a.license for a in authors]

    def test_statistics_query(self, db_conn: sqlite3.Connection) -> None:
        books = insert_books(db_conn, 30)

        stats = run_statistics_query(db_conn)

        assert sum(row["book_count"] for row in stats) == 30
        assert {row["genre"] for row in stats} == {b.genre for b in books}
        counts = [row["book_count"] for row in stats]
        assert counts == sorted(counts, reverse=True)
        for row in stats:
            assert row["first_year"] <= row["last_year"]


class TestLoadDataInfile:
    def test_builds_statement(self, tmp_path: Path) -> None:
        conn = MagicMock()
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.execute.side_effect = [0, 12, 0]

        loaded = load_data_infile(conn, tmp_path / "old.csv", "old_books", ["ISBN", "year", "pages"])

        sql, params = cursor.execute.call_args_list[1].args
        assert sql.startswith("LOAD DATA LOCAL INFILE %s INTO TABLE old_books")
        assert "IGNORE 1 ROWS (ISBN,year,pages)" in sql
        assert params == (str((tmp_path / "old.csv").resolve()),)
        assert loaded == 12
        conn.commit.assert_called_once()


class TestMySQLUsers:
    def test_create_users_statements(self) -> None:
        conn = MagicMock()
        config = MySQLConfig(
            users=[
                MySQLUser(name="reader", password="pw", grants={"Libro": ["select"]}),
                MySQLUser(name="nobody", password="pw2"),
            ]
        )

        create_users(conn, config)

        calls = [c.args for c in conn.cursor.return_value.execute.call_args_list]
        assert calls == [
            ("DROP USER IF EXISTS %s@%s", ("reader", "localhost")),
            ("DROP USER IF EXISTS %s@%s", ("nobody", "localhost")),
            ("CREATE USER %s@%s IDENTIFIED BY %s", ("reader", "localhost", "pw")),
            ("GRANT SELECT ON LibrosAutores.Libro TO %s@%s", ("reader", "localhost")),
            ("CREATE USER %s@%s IDENTIFIED BY %s", ("nobody", "localhost", "pw2")),
            ("FLUSH PRIVILEGES",),
        ]
        conn.commit.assert_called_once()

    def test_default_users_grants(self) -> None:
        conn = MagicMock()
        create_users(conn, MySQLConfig())

        grants = [
            c.args[0]
            for c in conn.cursor.return_value.execute.call_args_list
            if c.args[0].startswith("GRANT")
        ]
        assert grants == [
            "GRANT SELECT, INSERT, UPDATE, DELETE ON LibrosAutores.Libro TO %s@%s",
            "GRANT SELECT ON LibrosAutores.Autor TO %s@%s",
            "GRANT SELECT, INSERT, UPDATE, DELETE ON LibrosAutores.Autor TO %s@%s",
            "GRANT SELECT ON LibrosAutores.Libro TO %s@%s",
        ]

    def test_rejects_unknown_privilege(self) -> None:
        conn = MagicMock()
        config = MySQLConfig(users=[MySQLUser(name="x", password="y", grants={"Libro": ["DROP"]})])

        with pytest.raises(ValueError, match="Unsupported privilege"):
            create_users(conn, config)
        conn.commit.assert_not_called()
        conn.cursor.return_value.close.assert_called_once()

    def test_check_permissions_connects_as_user(self) -> None:
        user = MySQLUser(name="reader", password="pw")
        conn = MagicMock()
        conn.cursor.return_value.execute.side_effect = [
            None,
            pymysql.err.OperationalError(1142, "SELECT command denied"),
        ]
        with patch("pymysql.connect", return_value=conn) as mock_connect:
            results = check_user_permissions(MySQLConfig(), user)

        assert mock_connect.call_args.kwargs["user"] == "reader"
        assert mock_connect.call_args.kwargs["password"] == "pw"
        assert results == {"Libro": "SELECT: OK", "Autor": "SELECT: Failed"}
        conn.close.assert_called_once()

    def test_check_permissions_connection_refused(self) -> None:
        user = MySQLUser(name="ghost", password="pw")
        with patch("pymysql.connect", side_effect=pymysql.err.OperationalError(1045, "Access denied")):
            results = check_user_permissions(MySQLConfig(), user)

        assert list(results) == ["connection"]
        assert results["connection"].startswith("Failed")

    def test_insert_as_user_denied(self) -> None:
        user = MySQLUser(name="userC", password="passwordC")
        conn = MagicMock()
        conn.cursor.return_value.execute.side_effect = pymysql.err.OperationalError(
            1142, "INSERT command denied to user 'userC'@'localhost' for table 'Autor'"
        )
        with patch("pymysql.connect", return_value=conn):
            accepted = insert_as_user(
                MySQLConfig(), user, "Autor", {"license": "XYZ-1234-AB", "name": "Test"}
            )

        assert accepted is False
        sql, params = conn.cursor.return_value.execute.call_args.args
        assert sql == "INSERT INTO Autor (license,name) VALUES (%s,%s)"
        assert params == ["XYZ-1234-AB", "Test"]
        conn.commit.assert_not_called()
        conn.close.assert_called_once()

    def test_insert_as_user_accepted_is_rolled_back(self) -> None:
        conn = MagicMock()
        with patch("pymysql.connect", return_value=conn):
            accepted = insert_as_user(
                MySQLConfig(), MySQLUser(name="userA", password="pw"), "Libro", {"title": "T"}
            )

        assert accepted is True
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
