"""Runtime wiring helper for the CLI and the API server."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.markdown_renderer import MarkdownRenderer
from .adapters.sqlite_store import SQLiteCommentStore
from .config import ScholiaConfig, load_config
from .core.ports import Renderer
from .events import EventHub


@dataclass
class Runtime:
    """Container for all wired components."""
    store: SQLiteCommentStore
    renderer: Renderer
    hub: EventHub
    config: ScholiaConfig

    @property
    def project_directory(self) -> str:
        return str(self.config.project.directory.resolve())


def build_runtime(
    project_path: Path | None = None,
    db_path: Path | None = None,
    config_path: Path | None = None,
) -> Runtime:
    """Build and wire all components for a project."""
    config = load_config(config_path=config_path, project_path=project_path)

    # CLI args win over config values
    if project_path is not None:
        config.project.directory = project_path
    if db_path is not None:
        config.store.db = db_path

    return Runtime(
        store=SQLiteCommentStore(db_path=config.store.db),
        renderer=MarkdownRenderer(),
        hub=EventHub(),
        config=config,
    )
