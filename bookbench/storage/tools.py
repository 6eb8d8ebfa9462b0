"""Wrappers for the database command-line tools.

Each function runs a single tool invocation through ExternalProcess and
raises ProcessError on failure.
"""

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from bookbench.config import AppConfig, build_mongo_uri
from bookbench.process import ExternalProcess, ProcessResult

logger = logging.getLogger(__name__)


def mongo_import(
    config: AppConfig,
    collection: str,
    file_path: str | Path,
    fields: Sequence[str] | None = None,
    silent: bool = False,
) -> ProcessResult:
    """Import a CSV file into a collection with ``mongoimport``.

    Args:
        config: Application config (URI, database, tool name).
        collection: Target collection.
        file_path: CSV file.
        fields: Field names for a headerless file; when None the first
            line of the file is used as the header.
        silent: Do not echo the tool's output.
    """
    proc = ExternalProcess(config.tools.mongoimport, silent=silent)
    proc.add_argument("--uri", build_mongo_uri(config.mongo))
    proc.add_argument("--db", config.mongo.database)
    proc.add_argument("--collection", collection)
    proc.add_argument("--type", "csv")
    proc.add_argument("--file", str(file_path))
    if fields:
        proc.add_argument("--fields", ",".join(fields))
    else:
        proc.add_argument("--headerline")

    result = proc.run()
    logger.info("Imported %s into %s.%s", file_path, config.mongo.database, collection)
    return result


def mongo_export(
    config: AppConfig,
    collection: str,
    fields: Sequence[str],
    out_path: str | Path,
    silent: bool = False,
) -> ProcessResult:
    """Export ``fields`` of a collection to a CSV file with ``mongoexport``."""
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)

    proc = ExternalProcess(config.tools.mongoexport, silent=silent)
    proc.add_argument("--uri", build_mongo_uri(config.mongo))
    proc.add_argument("--db", config.mongo.database)
    proc.add_argument("--collection", collection)
    proc.add_argument("--type", "csv")
    proc.add_argument("--fields", ",".join(fields))
    proc.add_argument("--out", str(out_path))

    result = proc.run()
    logger.info("Exported %s.%s to %s", config.mongo.database, collection, out_path)
    return result


def _mysql_env(config: AppConfig) -> dict[str, str]:
    # Keeps the password off the command line
    return {**os.environ, "MYSQL_PWD": config.mysql.password}


def _mysql_connection_args(proc: ExternalProcess, config: AppConfig) -> None:
    proc.add_argument(f"--host={config.mysql.host}")
    proc.add_argument(f"--port={config.mysql.port}")
    proc.add_argument(f"--user={config.mysql.user}")


def mysql_dump(config: AppConfig, result_file: str | Path, silent: bool = False) -> ProcessResult:
    """Dump the configured database to ``result_file`` with ``mysqldump``."""
    Path(result_file).parent.mkdir(parents=True, exist_ok=True)

    proc = ExternalProcess(config.tools.mysqldump, silent=silent, env=_mysql_env(config))
    _mysql_connection_args(proc, config)
    proc.add_argument(config.mysql.database)
    proc.add_argument(f"--result-file={result_file}")

    result = proc.run()
    logger.info("Dumped %s to %s", config.mysql.database, result_file)
    return result


def mysql_restore(config: AppConfig, dump_file: str | Path, silent: bool = False) -> ProcessResult:
    """Replay a dump into the configured database through ``mysql``'s stdin."""
    script = Path(dump_file).read_text(encoding="utf-8")

    proc = ExternalProcess(config.tools.mysql, silent=silent, env=_mysql_env(config))
    _mysql_connection_args(proc, config)
    proc.add_argument(config.mysql.database)

    result = proc.run(input=script)
    logger.info("Restored %s from %s", config.mysql.database, dump_file)
    return result
