"""MongoDB access through pymongo."""

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from bson import json_util
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from bookbench.config import MongoConfig, build_mongo_uri

logger = logging.getLogger(__name__)


def get_client(config: MongoConfig) -> MongoClient:
    """Create a client and check the server is reachable.

    Raises:
        pymongo.errors.PyMongoError: If the server cannot be reached
            within the configured selection timeout.
    """
    client: MongoClient = MongoClient(
        build_mongo_uri(config),
        serverSelectionTimeoutMS=config.server_selection_timeout_ms,
        connectTimeoutMS=config.server_selection_timeout_ms,
    )
    try:
        client.admin.command("ping")
    except PyMongoError:
        client.close()
        raise
    logger.info("MongoDB connection successful")
    return client


def get_database(client: MongoClient, config: MongoConfig) -> Database:
    return client[config.database]


def insert_documents(
    collection: Collection, documents: Sequence[dict], batch_size: int = 5000
) -> int:
    """Insert documents with one ``insert_many`` call per batch.

    Returns:
        Number of documents inserted.
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    inserted = 0
    for start in range(0, len(documents), batch_size):
        # insert_many adds _id to the dicts it is given
        batch = [dict(doc) for doc in documents[start : start + batch_size]]
        result = collection.insert_many(batch)
        inserted += len(result.inserted_ids)
        logger.info("Inserted %d of %d documents into %s", inserted, len(documents), collection.name)
    return inserted


def insert_records(
    collection: Collection, records: Iterable[BaseModel], batch_size: int = 5000
) -> int:
    """Insert pydantic records, keyed by their CSV aliases."""
    return insert_documents(
        collection, [record.model_dump(by_alias=True) for record in records], batch_size
    )


def fetch_documents(collection: Collection, fields: Sequence[str]) -> list[dict]:
    """Return every document projected to ``fields``, without ``_id``."""
    projection = {field: 1 for field in fields}
    projection["_id"] = 0
    return list(collection.find({}, projection))


def reset_collection(database: Database, name: str) -> Collection:
    """Drop a collection if it exists and return a handle to it."""
    database.drop_collection(name)
    logger.info("Collection %s dropped", name)
    return database[name]


def export_collections_json(
    database: Database, collections: Sequence[str], output_dir: str | Path = "."
) -> dict[str, dict]:
    """Dump whole collections to ``{name}.json`` files.

    A failing collection is reported in the result and does not stop
    the others.

    Returns:
        Mapping of collection name to ``{"path", "count"}`` or ``{"error"}``.
    """
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    results: dict[str, dict] = {}

    for name in collections:
        try:
            logger.info("Exporting collection: %s", name)
            documents = list(database[name].find({}))
            output_path = out_dir / f"{name}.json"
            output_path.write_text(json_util.dumps(documents, indent=2), encoding="utf-8")
            logger.info("Exported %d documents to %s", len(documents), output_path)
            results[name] = {"path": str(output_path), "count": len(documents)}
        except PyMongoError as exc:
            logger.exception("Error exporting collection %s", name)
            results[name] = {"error": str(exc)}

    return results
