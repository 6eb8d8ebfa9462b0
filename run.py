"""Entry point for the bookbench command-line tool."""

import argparse
import logging
import sys
from pathlib import Path

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pymysql import MySQLError

from bookbench.config import AppConfig, load_config
from bookbench.errors import BookbenchError
from bookbench.generation import RecordGenerator, write_records_csv
from bookbench.ingestion import BatchLoader
from bookbench.ingestion.transforms import (
    author_transform,
    book_stub_transform,
    book_transform,
    sample_transform,
)
from bookbench.models import (
    AUTHOR_COLUMNS,
    BOOK_COLUMNS,
    BOOK_STUB_COLUMNS,
    BOOK_TABLE_COLUMNS,
    SAMPLE_COLUMNS,
)
from bookbench.pipeline import MassBookTest, PerformanceTest, SampleMigration
from bookbench.process import ExternalProcess
from bookbench.storage import database as db
from bookbench.storage.mongo import export_collections_json, get_client, get_database
from bookbench.timing import Timer

logger = logging.getLogger("bookbench")

# kind -> (CSV columns, table, table columns, transform factory)
KINDS = {
    "author": (AUTHOR_COLUMNS, "Autor", AUTHOR_COLUMNS, author_transform),
    "book": (BOOK_COLUMNS, "Libro", BOOK_TABLE_COLUMNS, book_transform),
    "sample": (SAMPLE_COLUMNS, "test", SAMPLE_COLUMNS, sample_transform),
    "book_stub": (BOOK_STUB_COLUMNS, "old_books", BOOK_STUB_COLUMNS, book_stub_transform),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookbench", description="Synthetic book data load and migration benchmark"
    )
    parser.add_argument("--config", default="config.yaml", help="Path to the YAML config")
    parser.add_argument("--engine", choices=sorted(db.PLACEHOLDERS), help="Override the SQL engine")
    parser.add_argument("--log-level", help="Override the configured log level")
    parser.add_argument(
        "--reduced-data", action="store_true", help="Use the reduced dataset sizes"
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Record failed batches and keep loading instead of stopping",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    schema = sub.add_parser("schema", help="Create the database schema")
    schema.add_argument("--drop", action="store_true", help="Drop existing tables first")

    sub.add_parser("users", help="Create the MySQL benchmark users and check their grants")

    generate = sub.add_parser("generate", help="Write generated records to a CSV file")
    generate.add_argument("kind", choices=list(KINDS))
    generate.add_argument("count", type=int)
    generate.add_argument("output", type=Path)
    generate.add_argument("--seed", type=int)

    load = sub.add_parser("load", help="Batch load a CSV file into its table")
    load.add_argument("kind", choices=list(KINDS))
    load.add_argument("file", type=Path)
    load.add_argument("--batch-size", type=int)

    benchmark = sub.add_parser("benchmark", help="Run the full performance test")
    benchmark.add_argument("--skip-mongo", action="store_true", help="Skip the MongoDB migration")
    benchmark.add_argument("--skip-dump", action="store_true", help="Skip mysqldump/restore")

    sub.add_parser("mongo-mass", help="Run the MongoDB mass insert test")

    migrate = sub.add_parser("migrate", help="Run the sample SQL to MongoDB migration")
    migrate.add_argument("--count", type=int, default=1000)
    migrate.add_argument("--skip-mongo", action="store_true", help="Stop after the CSV export")

    export_json = sub.add_parser("export-json", help="Dump the MongoDB collections to JSON files")
    export_json.add_argument("output_dir", type=Path)
    export_json.add_argument(
        "--collection", action="append", dest="collections", help="Collection to export (repeatable)"
    )

    run_all = sub.add_parser("all", help="Run schema, users, benchmark and mongo-mass as separate processes")
    run_all.add_argument("--skip-mongo", action="store_true", help="Skip every MongoDB step")
    run_all.add_argument("--skip-dump", action="store_true", help="Skip mysqldump/restore")

    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Fold command-line flags into the loaded configuration."""
    if args.engine:
        config.storage.engine = args.engine
    if args.log_level:
        config.app.log_level = args.log_level
    if args.reduced_data:
        config.pipeline = config.pipeline.reduced()
    if args.continue_on_error:
        config.pipeline.continue_on_batch_error = True
    return config


def cmd_schema(config: AppConfig, args: argparse.Namespace) -> int:
    if config.storage.engine == "sqlite":
        db.initialize_database(config.storage.sqlite_path, drop=args.drop)
        return 0

    db.create_mysql_database(config.mysql, drop=args.drop)
    conn = db.connect(config)
    try:
        db.create_schema(conn, config.storage.engine, drop=args.drop)
    finally:
        conn.close()
    return 0


def cmd_users(config: AppConfig, args: argparse.Namespace) -> int:
    if config.storage.engine != "mysql":
        logger.error("The users command needs the mysql engine, not %s", config.storage.engine)
        return 1

    timer = Timer()
    conn = db.connect(config)
    try:
        with timer.measure("create_users"):
            db.create_users(conn, config.mysql)
    finally:
        conn.close()

    with timer.measure("check_user_permissions"):
        for user in config.mysql.users:
            logger.info("%s: %s", user.name, db.check_user_permissions(config.mysql, user))
    logger.info("User metrics:\n%s", timer.to_json())
    return 0


def cmd_generate(config: AppConfig, args: argparse.Namespace) -> int:
    generator = RecordGenerator(seed=args.seed)
    columns = KINDS[args.kind][0]
    write_records_csv(
        args.output,
        lambda count, start_id: generator.generate(args.kind, count, start_id),
        args.count,
        columns,
        chunk_size=config.pipeline.chunk_size,
    )
    return 0


def cmd_load(config: AppConfig, args: argparse.Namespace) -> int:
    _, table, columns, transform = KINDS[args.kind]
    placeholder = db.placeholder_for(config.storage.engine)
    conn = db.connect(config)
    try:
        loader = BatchLoader(
            conn,
            batch_size=args.batch_size or config.pipeline.batch_size,
            continue_on_error=config.pipeline.continue_on_batch_error,
            placeholder=placeholder,
        )
        inserted = loader.load_csv(args.file, table, columns, transform(placeholder))
    finally:
        conn.close()

    logger.info("Inserted %d rows into %s (%d skipped)", inserted, table, loader.skipped)
    if loader.failures:
        logger.warning("%d batches failed", len(loader.failures))
        return 1
    return 0


def _open_mongo(config: AppConfig) -> tuple[MongoClient, Database]:
    client = get_client(config.mongo)
    return client, get_database(client, config.mongo)


def cmd_benchmark(config: AppConfig, args: argparse.Namespace) -> int:
    conn = db.connect(config)
    client = None
    try:
        mongo_db = None
        if not args.skip_mongo:
            client, mongo_db = _open_mongo(config)
        PerformanceTest(config, conn, mongo_db=mongo_db).run(
            skip_mongo=args.skip_mongo, skip_dump=args.skip_dump
        )
    finally:
        if client is not None:
            client.close()
        conn.close()
    return 0


def cmd_mongo_mass(config: AppConfig, args: argparse.Namespace) -> int:
    conn = db.connect(config)
    client = None
    try:
        client, mongo_db = _open_mongo(config)
        MassBookTest(config, conn, mongo_db).run()
    finally:
        if client is not None:
            client.close()
        conn.close()
    return 0


def cmd_migrate(config: AppConfig, args: argparse.Namespace) -> int:
    conn = db.connect(config)
    try:
        SampleMigration(config, conn).run(count=args.count, import_to_mongo=not args.skip_mongo)
    finally:
        conn.close()
    return 0


def cmd_export_json(config: AppConfig, args: argparse.Namespace) -> int:
    collections = args.collections or [
        config.mongo.books_collection,
        config.mongo.authors_collection,
    ]
    client, mongo_db = _open_mongo(config)
    try:
        results = export_collections_json(mongo_db, collections, args.output_dir)
    finally:
        client.close()

    failed = [name for name, result in results.items() if "error" in result]
    if failed:
        logger.error("Failed to export: %s", ", ".join(failed))
        return 1
    return 0


def cmd_all(config: AppConfig, args: argparse.Namespace) -> int:
    """Run each step in its own interpreter and stop at the first failure."""
    common = ["--config", str(args.config)]
    if args.engine:
        common += ["--engine", args.engine]
    if args.log_level:
        common += ["--log-level", args.log_level]
    if args.reduced_data:
        common.append("--reduced-data")
    if args.continue_on_error:
        common.append("--continue-on-error")

    steps: list[list[str]] = [["schema", "--drop"]]
    if config.storage.engine == "mysql":
        steps.append(["users"])
    benchmark = ["benchmark"]
    if args.skip_mongo:
        benchmark.append("--skip-mongo")
    if args.skip_dump:
        benchmark.append("--skip-dump")
    steps.append(benchmark)
    if not args.skip_mongo:
        steps.append(["mongo-mass"])

    for step in steps:
        logger.info("Running step: %s", step[0])
        proc = ExternalProcess(sys.executable, [str(Path(__file__).resolve())])
        proc.add_arguments(common).add_arguments(step)
        try:
            proc.run()
        except BookbenchError as exc:
            logger.error("Step %s failed: %s", step[0], exc)
            return getattr(exc, "returncode", None) or 1
    logger.info("All steps completed")
    return 0


COMMANDS = {
    "schema": cmd_schema,
    "users": cmd_users,
    "generate": cmd_generate,
    "load": cmd_load,
    "benchmark": cmd_benchmark,
    "mongo-mass": cmd_mongo_mass,
    "migrate": cmd_migrate,
    "export-json": cmd_export_json,
    "all": cmd_all,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = apply_overrides(load_config(args.config), args)

    logging.basicConfig(
        level=config.app.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](config, args)
    except (BookbenchError, PyMongoError, MySQLError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
