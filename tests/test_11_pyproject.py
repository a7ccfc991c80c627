"""Tests for pyproject.toml and package installation."""
from __future__ import annotations

from pathlib import Path

import pytest

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


def _load_pyproject() -> dict:
    tomllib = pytest.importorskip("tomllib")  # Python 3.11+
    return tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))


class TestPackageInstallation:
    """Test that the package is properly installed."""

    def test_version_defined(self):
        """Package has __version__ attribute."""
        import voice_queue
        assert isinstance(voice_queue.__version__, str)
        assert voice_queue.__version__

    def test_core_modules_importable(self):
        """Core modules can be imported."""
        from voice_queue.api import routes, schemas
        from voice_queue.core import config, logging
        from voice_queue.speech import pipeline, usage_registry, voicevox

        for module in (routes, schemas, config, logging, pipeline, usage_registry, voicevox):
            assert module is not None


class TestPyprojectToml:
    """Test pyproject.toml configuration."""

    def test_project_name_and_version(self):
        import voice_queue

        data = _load_pyproject()
        assert data["project"]["name"] == "voice-queue"
        assert data["project"]["version"] == voice_queue.__version__

    def test_runtime_dependencies(self):
        data = _load_pyproject()
        names = {d.split(">=")[0].split("[")[0].strip().lower() for d in data["project"]["dependencies"]}
        assert {"fastapi", "uvicorn", "pydantic", "pyyaml", "httpx", "prometheus_client"} <= names

    def test_test_extra_has_pytest(self):
        data = _load_pyproject()
        extras = data["project"]["optional-dependencies"]["test"]
        assert any(dep.startswith("pytest") for dep in extras)

    def test_console_script(self):
        data = _load_pyproject()
        assert data["project"]["scripts"]["voice-queue"] == "voice_queue.cli:main"

    def test_pytest_settings(self):
        data = _load_pyproject()
        assert data["tool"]["pytest"]["ini_options"]["testpaths"] == ["tests"]
