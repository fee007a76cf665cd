"""Test packaging metadata and installation extras."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _load_pyproject() -> dict[str, Any]:
    raw = (PROJECT_ROOT / "pyproject.toml").read_text(encoding="utf-8")
    if sys.version_info >= (3, 11):
        import tomllib

        return tomllib.loads(raw)

    import tomli

    return tomli.loads(raw)


def _names(requirements: list[str]) -> set[str]:
    names = set()
    for item in requirements:
        name = str(item).strip().lower()
        for sep in ("[", ";", ">", "<", "=", "~", "!"):
            name = name.split(sep, 1)[0]
        names.add(name.strip())
    return names


def test_pyproject_declares_test_extras() -> None:
    """Ensure `pyproject.toml` declares pytest under `[project.optional-dependencies].test`."""
    data = _load_pyproject()
    test_deps = data.get("project", {}).get("optional-dependencies", {}).get("test", [])
    assert "pytest" in _names(test_deps)


def test_runtime_dependencies_cover_imported_libraries() -> None:
    deps = _names(_load_pyproject()["project"]["dependencies"])
    for required in ("fastapi", "pydantic", "loguru", "pyyaml", "filelock", "httpx", "anthropic", "uvicorn"):
        assert required in deps


def test_console_script_points_at_cli_main() -> None:
    scripts = _load_pyproject()["project"]["scripts"]
    assert scripts["orion-runner"] == "orion_runner.cli:main"
