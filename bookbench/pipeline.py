"""Benchmark pipelines: generate, load, export and migrate synthetic data.

Every stage runs under a timer label. Whatever happens, the collected
metrics are logged and written to ``metrics.json`` in the configured
output directory.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pymongo.database import Database

from bookbench.config import AppConfig
from bookbench.generation.generator import RecordGenerator
from bookbench.generation.writer import write_multiple_csv, write_records_csv
from bookbench.ingestion.codec import to_csv
from bookbench.ingestion.loader import BatchLoader
from bookbench.ingestion.transforms import author_transform, book_stub_transform, book_transform
from bookbench.models.author import AUTHOR_COLUMNS, Author
from bookbench.models.book import BOOK_COLUMNS, BOOK_STUB_COLUMNS, BOOK_TABLE_COLUMNS
from bookbench.models.sample import SAMPLE_COLUMNS
from bookbench.storage import database as db
from bookbench.storage.mongo import fetch_documents, insert_documents, insert_records, reset_collection
from bookbench.storage.tools import mongo_export, mongo_import, mysql_dump, mysql_restore
from bookbench.timing import Timer

logger = logging.getLogger(__name__)

# Rows the restricted user tries to insert
PERMISSION_TEST_AUTHOR = {
    "license": "XYZ-1234-AB",
    "name": "Test",
    "lastName": "Author",
    "year": 1980,
}
PERMISSION_TEST_BOOK = {
    "ISBN": "1234567890123",
    "title": "Test Book",
    "year": 2020,
    "language": "English",
}


class _Pipeline:
    """Shared wiring for the benchmark pipelines."""

    def __init__(
        self,
        config: AppConfig,
        connection: Any,
        timer: Timer | None = None,
        generator: RecordGenerator | None = None,
    ) -> None:
        self._config = config
        self._settings = config.pipeline
        self._connection = connection
        self._engine = config.storage.engine
        self._placeholder = db.placeholder_for(self._engine)
        self.timer = timer or Timer()
        self._generator = generator or RecordGenerator()
        self._tmp_dir = config.tmp_dir
        self.results: dict[str, Any] = {}

    def _loader(self, batch_size: int | None = None, continue_on_error: bool | None = None) -> BatchLoader:
        if continue_on_error is None:
            continue_on_error = self._settings.continue_on_batch_error
        return BatchLoader(
            self._connection,
            batch_size=batch_size or self._settings.batch_size,
            continue_on_error=continue_on_error,
            placeholder=self._placeholder,
        )

    def write_metrics(self, file_name: str = "metrics.json") -> Path:
        """Log the metrics summary and write it with the stage results."""
        summary = self.timer.to_json()
        logger.info("Performance metrics:\n%s", summary)

        out_dir = Path(self._settings.output_path)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / file_name
        payload = {"metrics": json.loads(summary), "results": self.results}
        path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        return path


class PerformanceTest(_Pipeline):
    """Book/author load, export and migration benchmark.

    Args:
        config: Application configuration.
        connection: Open connection to the configured SQL engine.
        timer: Timer collecting stage durations.
        generator: Record generator (owns ISBN uniqueness for the run).
        mongo_db: MongoDB database for the migration stage; the stage is
            skipped when None.
    """

    def __init__(
        self,
        config: AppConfig,
        connection: Any,
        timer: Timer | None = None,
        generator: RecordGenerator | None = None,
        mongo_db: Database | None = None,
    ) -> None:
        super().__init__(config, connection, timer, generator)
        self._mongo_db = mongo_db
        self.books_csv = self._tmp_dir / "large_books.csv"
        self.authors_csv = self._tmp_dir / "large_authors.csv"
        self.exported_books_csv = self._tmp_dir / "exported_books.csv"
        self.exported_authors_csv = self._tmp_dir / "exported_authors.csv"

    def run(self, skip_mongo: bool = False, skip_dump: bool = False) -> dict[str, Any]:
        """Run every stage in order.

        Raises:
            Exception: The first failing stage's error, after metrics
                have been written.
        """
        self.timer.start("total_performance_test")
        try:
            db.create_schema(self._connection, self._engine, drop=True)
            self.generate_books_csv()
            self.load_books_csv()
            self.stress_test()
            self.load_multiple_csv(self.generate_multiple_csv())
            self.run_statistics()
            self.generate_and_load_authors()
            self.export_tables()
            if self._engine == "mysql":
                self.check_permission_failures()
            if self._mongo_db is not None and not skip_mongo:
                self.migrate_and_restore()
            if self._engine == "mysql" and not skip_dump:
                self.dump_and_restore()
        except Exception:
            logger.exception("Performance test failed")
            raise
        finally:
            self.timer.end("total_performance_test")
            self.write_metrics()
        return self.results

    def generate_books_csv(self) -> Path:
        count = self._settings.record_count
        logger.info("Generating %d books CSV", count)
        with self.timer.measure("generate_large_books_csv"):
            return write_records_csv(
                self.books_csv,
                self._generator.generate_books,
                count,
                BOOK_COLUMNS,
                chunk_size=self._settings.chunk_size,
            )

    def load_books_csv(self) -> int:
        loader = self._loader()
        with self.timer.measure("insert_large_books_csv"):
            inserted = loader.load_csv(
                self.books_csv, "Libro", BOOK_TABLE_COLUMNS, book_transform(self._placeholder)
            )
        logger.info("Inserted %d books from CSV", inserted)
        self.results["books_csv_inserted"] = inserted
        self.results["books_csv_batch_failures"] = [f.model_dump() for f in loader.failures]
        return inserted

    def stress_test(self) -> int:
        count = self._settings.stress_test_count
        logger.info("Stress test with %d books", count)
        with self.timer.measure("stress_test"):
            books = self._generator.generate_books(count, start_id=None)
            loader = self._loader(batch_size=self._settings.stress_batch_size)
            inserted = loader.load_records(books, "Libro", BOOK_TABLE_COLUMNS, fields=BOOK_COLUMNS)
        self.results["stress_test_inserted"] = inserted
        self.results["stress_test_batch_failures"] = [f.model_dump() for f in loader.failures]
        return inserted

    def generate_multiple_csv(self) -> list[Path]:
        logger.info(
            "Generating %d CSV files (%d books each)",
            self._settings.batch_files_count,
            self._settings.files_batch_size,
        )
        with self.timer.measure("generate_multiple_csv"):
            return write_multiple_csv(
                self._tmp_dir,
                self._settings.batch_files_count,
                self._settings.files_batch_size,
                self._generator.generate_books,
                BOOK_COLUMNS,
                "books_batch",
            )

    def load_multiple_csv(self, files: list[Path]) -> int:
        """Load each file in turn, collecting failed batches across all of them."""
        total = 0
        failures = []
        with self.timer.measure("insert_multiple_csv"):
            loader = self._loader()
            transform = book_transform(self._placeholder)
            for i, csv_file in enumerate(files):
                total += loader.load_csv(csv_file, "Libro", BOOK_TABLE_COLUMNS, transform)
                failures.extend(f.model_dump() | {"file": str(csv_file)} for f in loader.failures)
                if (i + 1) % 10 == 0 or i == len(files) - 1:
                    logger.info("Processed %d of %d CSV files", i + 1, len(files))
        logger.info("Total rows in Libro: %d", db.count_rows(self._connection, "Libro"))
        self.results["multiple_csv_inserted"] = total
        self.results["multiple_csv_batch_failures"] = failures
        return total

    def run_statistics(self) -> list[dict]:
        with self.timer.measure("complex_query"):
            rows = db.run_statistics_query(self._connection)
        self.results["statistics"] = rows
        return rows

    def generate_and_load_authors(self) -> int:
        """Generate authors to CSV and load them into ``Autor``.

        License codes are not unique, so a batch containing a duplicate
        violates the UNIQUE constraint. The load runs in continue mode and
        reports the collisions found during generation.
        """
        seen: set[str] = set()
        collisions = 0

        def generate(count: int, start_id: int) -> list[Author]:
            nonlocal collisions
            authors = self._generator.generate_authors(count, start_id)
            for author in authors:
                if author.license in seen:
                    collisions += 1
                    logger.warning("Duplicate license found: %s", author.license)
                seen.add(author.license)
            return authors

        with self.timer.measure("generate_insert_authors"):
            with self.timer.measure("generate_authors"):
                write_records_csv(
                    self.authors_csv,
                    generate,
                    self._settings.author_count,
                    AUTHOR_COLUMNS,
                    chunk_size=self._settings.chunk_size,
                )
            if collisions:
                logger.warning("%d duplicate licenses will fail their batches", collisions)

            loader = self._loader(continue_on_error=True)
            with self.timer.measure("insert_authors"):
                inserted = loader.load_csv(
                    self.authors_csv, "Autor", AUTHOR_COLUMNS, author_transform(self._placeholder)
                )

        self.results["license_collisions"] = collisions
        self.results["authors_inserted"] = inserted
        self.results["author_batch_failures"] = [f.model_dump() for f in loader.failures]
        return inserted

    def export_tables(self) -> None:
        with self.timer.measure("export_tables_csv"):
            with self.timer.measure("export_books"):
                db.export_table_csv(
                    self._connection, "Libro", BOOK_TABLE_COLUMNS, self.exported_books_csv
                )
            with self.timer.measure("export_authors"):
                db.export_table_csv(
                    self._connection, "Autor", AUTHOR_COLUMNS, self.exported_authors_csv
                )

    def check_permission_failures(self) -> dict[str, bool]:
        """Time inserts by the restricted MySQL user; both are expected to be refused."""
        user = self._config.mysql.get_user(self._config.mysql.restricted_user)
        attempts = {
            f"{user.name}_insert_author_fail": ("Autor", PERMISSION_TEST_AUTHOR),
            f"{user.name}_insert_book_fail": ("Libro", PERMISSION_TEST_BOOK),
        }
        denied: dict[str, bool] = {}
        for label, (table, row) in attempts.items():
            with self.timer.measure(label):
                accepted = db.insert_as_user(self._config.mysql, user, table, row)
            if accepted:
                logger.warning("Insert into %s as %s was not refused", table, user.name)
            denied[label] = not accepted
        self.results["permission_denied"] = denied
        return denied

    def migrate_and_restore(self) -> None:
        """Copy both tables to MongoDB, empty them, and restore them from MongoDB."""
        mongo = self._config.mongo
        books_path = self._tmp_dir / "libros_mongo_export.csv"
        authors_path = self._tmp_dir / "autores_mongo_export.csv"

        with self.timer.measure("migrate_restore"):
            with self.timer.measure("export_to_mongodb"):
                books = db.fetch_all(
                    self._connection, f"SELECT {','.join(BOOK_TABLE_COLUMNS)} FROM Libro"
                )
                authors = db.fetch_all(
                    self._connection, f"SELECT {','.join(AUTHOR_COLUMNS)} FROM Autor"
                )
                insert_documents(reset_collection(self._mongo_db, mongo.books_collection), books)
                insert_documents(reset_collection(self._mongo_db, mongo.authors_collection), authors)
            logger.info("Migrated %d books and %d authors to MongoDB", len(books), len(authors))

            with self.timer.measure("delete_from_sql"):
                db.truncate_tables(self._connection, ["Libro", "Autor"], self._engine)

            with self.timer.measure("export_from_mongodb"):
                books_docs = fetch_documents(self._mongo_db[mongo.books_collection], BOOK_TABLE_COLUMNS)
                authors_docs = fetch_documents(
                    self._mongo_db[mongo.authors_collection], AUTHOR_COLUMNS
                )
                books_path.write_text(to_csv(books_docs, BOOK_TABLE_COLUMNS), encoding="utf-8")
                authors_path.write_text(to_csv(authors_docs, AUTHOR_COLUMNS), encoding="utf-8")

            # Authors first so book licenses resolve
            with self.timer.measure("restore_to_sql"):
                loader = self._loader()
                restored_authors = loader.load_csv(
                    authors_path, "Autor", AUTHOR_COLUMNS, author_transform(self._placeholder)
                )
                restored_books = loader.load_csv(
                    books_path, "Libro", BOOK_TABLE_COLUMNS, book_transform(self._placeholder)
                )

        self.results["restored_authors"] = restored_authors
        self.results["restored_books"] = restored_books

    def dump_and_restore(self) -> None:
        """Dump the MySQL database, recreate it empty and replay the dump."""
        dump_file = self._tmp_dir / "mysqldump.sql"
        with self.timer.measure("mysql_dump"):
            mysql_dump(self._config, dump_file)
        with self.timer.measure("mysql_restore"):
            db.create_mysql_database(self._config.mysql, drop=True)
            mysql_restore(self._config, dump_file)


class MassBookTest(_Pipeline):
    """Insert many book stubs into MongoDB, export them and load them into SQL."""

    def __init__(
        self,
        config: AppConfig,
        connection: Any,
        mongo_db: Database,
        timer: Timer | None = None,
        generator: RecordGenerator | None = None,
    ) -> None:
        super().__init__(config, connection, timer, generator)
        self._mongo_db = mongo_db
        self.export_csv = self._tmp_dir / "old_books.csv"

    def run(self) -> dict[str, Any]:
        self.timer.start("total")
        try:
            db.create_schema(self._connection, self._engine)
            db.truncate_tables(self._connection, ["old_books"], self._engine)
            self.generate_mass_records()
            self.export_fields()
            self.load_old_books()
        except Exception:
            logger.exception("Mass book test failed")
            raise
        finally:
            self.timer.end("total")
            self.write_metrics("mass_metrics.json")
        return self.results

    def generate_mass_records(self) -> int:
        total = self._settings.mass_record_count
        batch_size = self._settings.mass_batch_size
        collection = reset_collection(self._mongo_db, self._config.mongo.mass_collection)
        inserted = 0

        logger.info("Generating and inserting %d records in batches of %d", total, batch_size)
        with self.timer.measure("generate_mass_mongodb"):
            while inserted < total:
                stubs = self._generator.generate_book_stubs(min(batch_size, total - inserted))
                inserted += insert_records(collection, stubs, batch_size)
        self.results["mass_inserted"] = inserted
        return inserted

    def export_fields(self) -> Path:
        with self.timer.measure("export_fields_csv"):
            mongo_export(
                self._config,
                self._config.mongo.mass_collection,
                BOOK_STUB_COLUMNS,
                self.export_csv,
                silent=True,
            )
        return self.export_csv

    def load_old_books(self) -> int:
        with self.timer.measure("import_old_books"):
            if self._engine == "mysql":
                inserted = db.load_data_infile(
                    self._connection, self.export_csv, "old_books", BOOK_STUB_COLUMNS
                )
            else:
                inserted = self._loader().load_csv(
                    self.export_csv,
                    "old_books",
                    BOOK_STUB_COLUMNS,
                    book_stub_transform(self._placeholder),
                )
        logger.info("Inserted %d books into old_books", inserted)
        self.results["old_books_inserted"] = inserted
        return inserted


class SampleMigration(_Pipeline):
    """Insert x/y/z sample rows into SQL, export them and ``mongoimport`` the CSV."""

    def run(self, count: int = 1000, import_to_mongo: bool = True) -> dict[str, Any]:
        csv_path = self._tmp_dir / "export_sql_csv.csv"
        self.timer.start("total")
        try:
            db.create_schema(self._connection, self._engine)
            with self.timer.measure("data_generation"):
                samples = self._generator.generate_samples(count)
            with self.timer.measure("sql_insert"):
                self.results["sql_inserted"] = self._loader().load_records(
                    samples, "test", SAMPLE_COLUMNS
                )
            with self.timer.measure("sql_csv_export"):
                db.export_table_csv(self._connection, "test", SAMPLE_COLUMNS, csv_path)
            if import_to_mongo:
                with self.timer.measure("mongo_csv_import"):
                    mongo_import(self._config, "test", csv_path)
        except Exception:
            logger.exception("Sample migration failed")
            raise
        finally:
            self.timer.end("total")
            self.write_metrics("sample_metrics.json")
        return self.results
