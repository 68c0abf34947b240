"""Shared test fixtures for specbind.

Provides reusable fixtures for loading document fixtures, compiling them,
creating isolated config environments, and managing output state. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from specbind.models import CompiledSpec
from specbind.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_api_path() -> Path:
    return FIXTURES_DIR / "test-api.yaml"


@pytest.fixture
def routes_path() -> Path:
    return FIXTURES_DIR / "routes.yaml"


@pytest.fixture
def test_api_raw(test_api_path: Path) -> dict[str, Any]:
    """Load the raw posts API document."""
    with open(test_api_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def compiled(test_api_raw: dict[str, Any]) -> CompiledSpec:
    """The posts API document, compiled."""
    from specbind.compiler import compile_spec

    return compile_spec(test_api_raw, "3.0.0")


@pytest.fixture
def make_document():
    """Factory for a minimal OpenAPI 3.0 document around *paths* and *schemas*.

    Extra keyword arguments become sibling sections of ``components``
    (``parameters=...``, ``requestBodies=...``).
    """

    def _make(
        paths: dict[str, Any] | None = None,
        schemas: dict[str, Any] | None = None,
        **components: Any,
    ) -> dict[str, Any]:
        document: dict[str, Any] = {
            "openapi": "3.0.3",
            "info": {"title": "Test", "version": "1.0.0"},
            "paths": paths or {},
        }
        if schemas is not None or components:
            document["components"] = dict(components)
            if schemas is not None:
                document["components"]["schemas"] = schemas
        return document

    return _make


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config. Clears all SPECBIND_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("specbind.config._is_xdg_platform", lambda: True)

    for var in [
        "SPECBIND_CONFIG",
        "SPECBIND_BODY_SLOT",
        "SPECBIND_FAIL_ON_WARNINGS",
        "NO_COLOR",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def plain_output() -> OutputManager:
    """Install a PLAIN, colourless OutputManager so captured text is predictable."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON, no_color=True)
    set_output(output)
    yield output
    reset_output()
