"""Configuration loader for scholia.toml."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore


def default_data_dir() -> Path:
    """SCHOLIA_DATA_DIR, else ~/.local/share/scholia."""
    env = os.environ.get("SCHOLIA_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".local" / "share" / "scholia"


@dataclass
class ProjectConfig:
    """Project under review."""
    directory: Path


@dataclass
class StoreConfig:
    """Comment storage: local database, or a running server's URL."""
    db: Path
    url: str = "http://127.0.0.1:4779"


@dataclass
class ServerConfig:
    """API server configuration."""
    host: str = "127.0.0.1"
    port: int = 4779


@dataclass
class WatchConfig:
    """File watcher configuration."""
    debounce_ms: int = 150


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "WARNING"


@dataclass
class ScholiaConfig:
    """Complete scholia configuration."""
    project: ProjectConfig
    store: StoreConfig
    server: ServerConfig
    watch: WatchConfig
    logging: LoggingConfig


def load_config(config_path: Path | None = None, project_path: Path | None = None) -> ScholiaConfig:
    """
    Load configuration from scholia.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/scholia.toml
    3. project_path/scholia.toml

    Args:
        config_path: Explicit path to config file
        project_path: Project root for fallback search

    Returns:
        ScholiaConfig with resolved settings
    """
    toml_data: dict[str, Any] = {}

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / "scholia.toml")
    if project_path:
        search_paths.append(project_path / "scholia.toml")

    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            break

    project_data = toml_data.get("project", {})
    project_config = ProjectConfig(
        directory=Path(project_data.get("directory", project_path or Path.cwd()))
    )

    store_data = toml_data.get("store", {})
    store_config = StoreConfig(
        db=Path(store_data.get("db", default_data_dir() / "comments.db")),
        url=store_data.get("url", "http://127.0.0.1:4779"),
    )

    server_data = toml_data.get("server", {})
    server_config = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=server_data.get("port", 4779),
    )

    watch_data = toml_data.get("watch", {})
    watch_config = WatchConfig(debounce_ms=watch_data.get("debounce_ms", 150))

    logging_data = toml_data.get("logging", {})
    logging_config = LoggingConfig(level=str(logging_data.get("level", "WARNING")).upper())

    return ScholiaConfig(
        project=project_config,
        store=store_config,
        server=server_config,
        watch=watch_config,
        logging=logging_config,
    )
