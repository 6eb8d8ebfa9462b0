"""Configuration loader for bookbench."""

import logging
import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AppInfo(BaseModel):
    """Application metadata."""

    name: str = "bookbench"
    version: str = "1.0.0"
    log_level: str = "INFO"


class MySQLUser(BaseModel):
    """A benchmark account and its per-table privileges."""

    name: str
    password: str
    host: str = "localhost"
    grants: dict[str, list[str]] = Field(default_factory=dict)


def default_users() -> list[MySQLUser]:
    return [
        MySQLUser(
            name="userA",
            password="passwordA",
            grants={"Libro": ["SELECT", "INSERT", "UPDATE", "DELETE"], "Autor": ["SELECT"]},
        ),
        MySQLUser(
            name="userB",
            password="passwordB",
            grants={"Autor": ["SELECT", "INSERT", "UPDATE", "DELETE"], "Libro": ["SELECT"]},
        ),
        # No grants: used to time denied inserts
        MySQLUser(name="userC", password="passwordC"),
    ]


class MySQLConfig(BaseModel):
    """MySQL connection settings."""

    host: str = "localhost"
    port: int = 3306
    user: str = "base"
    password: str = "utt"
    database: str = "LibrosAutores"
    users: list[MySQLUser] = Field(default_factory=default_users)
    restricted_user: str = "userC"

    def get_user(self, name: str) -> MySQLUser:
        for user in self.users:
            if user.name == name:
                return user
        raise KeyError(f"MySQL user not configured: '{name}'")


class MongoConfig(BaseModel):
    """MongoDB connection settings."""

    uri: str = "mongodb://localhost:27018/LibrosAutores"
    user: str | None = None
    password: str | None = None
    database: str = "LibrosAutores"
    books_collection: str = "Libros"
    authors_collection: str = "Autores"
    mass_collection: str = "MassBooks"
    server_selection_timeout_ms: int = 5000


class StorageConfig(BaseModel):
    """Local storage paths."""

    engine: str = "sqlite"  # "sqlite" or "mysql"
    sqlite_path: str = "./db/bookbench.db"
    tmp_dir: str = "~/tmp"


class PipelineConfig(BaseModel):
    """Dataset sizes and batching for the benchmark pipeline."""

    record_count: int = 100_000
    author_count: int = 150_000
    batch_size: int = 1000
    chunk_size: int = 10_000
    output_path: str = "./results"
    stress_test_count: int = 3500
    stress_batch_size: int = 100
    batch_files_count: int = 100
    files_batch_size: int = 1000
    mass_record_count: int = 1_000_000
    mass_batch_size: int = 5000
    continue_on_batch_error: bool = False

    def reduced(self) -> "PipelineConfig":
        """Return a copy with the reduced dataset sizes used for quick runs."""
        return self.model_copy(
            update={
                "record_count": self.record_count // 10,
                "author_count": self.author_count // 10,
                "stress_test_count": 1000,
                "batch_files_count": self.batch_files_count // 10,
                "mass_record_count": self.mass_record_count // 10,
            }
        )


class ToolsConfig(BaseModel):
    """Executable names of the external database tools."""

    mongoimport: str = "mongoimport"
    mongoexport: str = "mongoexport"
    mysqldump: str = "mysqldump"
    mysql: str = "mysql"


class AppConfig(BaseModel):
    """Root application configuration."""

    app: AppInfo = Field(default_factory=AppInfo)
    mysql: MySQLConfig = Field(default_factory=MySQLConfig)
    mongo: MongoConfig = Field(default_factory=MongoConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    @property
    def tmp_dir(self) -> Path:
        """Temporary directory for generated CSV files, created on access."""
        path = Path(self.storage.tmp_dir).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        return path


def build_mongo_uri(config: MongoConfig) -> str:
    """Return the MongoDB URI with credentials injected when needed.

    A URI that already carries ``user:password@`` is returned unchanged.
    Otherwise the separate user and password, when both are set, are
    inserted in front of the host.

    Args:
        config: MongoDB settings.

    Returns:
        Connection URI.
    """
    if "@" in config.uri:
        return config.uri

    if config.user and config.password:
        match = re.match(r"mongodb://([^/]+)(/.*)?", config.uri)
        if match:
            host = match.group(1)
            db_path = match.group(2) or f"/{config.database}"
            return f"mongodb://{config.user}:{config.password}@{host}{db_path}"

    logger.warning("Using MongoDB without authentication. Check your .env file.")
    return config.uri


# Environment variable -> (section, field)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "MYSQL_HOST": ("mysql", "host"),
    "MYSQL_USER": ("mysql", "user"),
    "MYSQL_PASSWORD": ("mysql", "password"),
    "MYSQL_DATABASE": ("mysql", "database"),
    "MONGO_URI": ("mongo", "uri"),
    "MONGO_USER": ("mongo", "user"),
    "MONGO_PASSWORD": ("mongo", "password"),
    "MONGO_DATABASE": ("mongo", "database"),
    "BOOKBENCH_TMP_DIR": ("storage", "tmp_dir"),
    "BOOKBENCH_ENGINE": ("storage", "engine"),
    "BOOKBENCH_SQLITE_PATH": ("storage", "sqlite_path"),
}


def load_config(config_path: str | Path = "config.yaml") -> AppConfig:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Fully populated AppConfig instance.
    """
    load_dotenv()

    yaml_data: dict = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            yaml_data = yaml.safe_load(f) or {}

    # Environment wins over the YAML file
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            yaml_data.setdefault(section, {})[key] = value

    return AppConfig(**yaml_data)
