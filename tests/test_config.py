"""Tests for configuration loading."""

import os
import tempfile
from pathlib import Path

from scholia.config import default_data_dir, load_config
from scholia.runtime import build_runtime


def test_load_config_defaults(monkeypatch):
    """Test loading config with defaults when no file exists."""
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("SCHOLIA_DATA_DIR", tmpdir)
        project = Path(tmpdir) / "project"
        project.mkdir()

        config = load_config(project_path=project)

        assert config.project.directory == project
        assert config.store.db == Path(tmpdir) / "comments.db"
        assert config.store.url == "http://127.0.0.1:4779"
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 4779
        assert config.watch.debounce_ms == 150
        assert config.logging.level == "WARNING"


def test_default_data_dir(monkeypatch):
    """Test the data directory falls back to the user's share directory."""
    monkeypatch.delenv("SCHOLIA_DATA_DIR", raising=False)
    assert default_data_dir() == Path.home() / ".local" / "share" / "scholia"

    monkeypatch.setenv("SCHOLIA_DATA_DIR", "/srv/scholia")
    assert default_data_dir() == Path("/srv/scholia")


def test_load_config_from_file():
    """Test loading config from a file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "scholia.toml"
        config_path.write_text("""
[project]
directory = "docs"

[store]
db = "review.db"
url = "http://review.local:9000"

[server]
host = "0.0.0.0"
port = 9000

[watch]
debounce_ms = 400

[logging]
level = "debug"
""")

        config = load_config(config_path=config_path)

        assert config.project.directory == Path("docs")
        assert config.store.db == Path("review.db")
        assert config.store.url == "http://review.local:9000"
        assert config.server.host == "0.0.0.0"
        assert config.server.port == 9000
        assert config.watch.debounce_ms == 400
        assert config.logging.level == "DEBUG"


def test_load_config_search_cwd():
    """Test config search in current working directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        orig_cwd = os.getcwd()
        try:
            os.chdir(tmpdir)
            config_path = Path(tmpdir) / "scholia.toml"
            config_path.write_text("""
[server]
port = 5000
""")

            config = load_config()
            assert config.server.port == 5000
        finally:
            os.chdir(orig_cwd)


def test_load_config_search_project():
    """Test config search in project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        project = Path(tmpdir) / "project"
        project.mkdir()
        (project / "scholia.toml").write_text("""
[watch]
debounce_ms = 50
""")

        config = load_config(project_path=project)
        assert config.watch.debounce_ms == 50


def test_build_runtime_overrides():
    """Test explicit paths win over the config file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        project = Path(tmpdir) / "project"
        project.mkdir()
        (project / "scholia.toml").write_text("""
[store]
db = "ignored.db"
""")
        db_path = Path(tmpdir) / "state" / "comments.db"

        rt = build_runtime(project_path=project, db_path=db_path)

        assert rt.config.store.db == db_path
        assert rt.store.db_path == db_path
        assert db_path.exists()
        assert rt.project_directory == str(project.resolve())
