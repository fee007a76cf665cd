from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import ScriptedProvider

from orion_runner.cli import main
from orion_runner.runtime.domain.models import WorkItemStatus
from orion_runner.runtime.storage.container import OrionContainer

BACKLOG = """\
project:
  id: proj-atlas
  name: Atlas
  description: Field service app
work_items:
  - id: t-discover
    title: Gather requirements
    phase: 1
    phase_name: Discovery
    assigned_agent: agent-business_analyst
  - id: t-design
    title: Wireframes
    phase: 2
    phase_name: Design
    assigned_agent: agent-uiux_designer
"""


@pytest.fixture(autouse=True)
def _no_llm_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "OPENROUTER_API_KEY", "ORION_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


def _load_backlog(tmp_path: Path) -> None:
    backlog = tmp_path / "backlog.yaml"
    backlog.write_text(BACKLOG, encoding="utf-8")
    assert main(["--data-dir", str(tmp_path), "load", str(backlog)]) == 0


def test_load_and_status(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _load_backlog(tmp_path)
    capsys.readouterr()

    assert main(["--data-dir", str(tmp_path), "status", "proj-atlas"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["project"]["name"] == "Atlas"
    assert [(p["phase"], p["phase_name"], p["pending"]) for p in report["phases"]] == [
        (1, "Discovery", 1),
        (2, "Design", 1),
    ]


def test_status_unknown_project(tmp_path: Path) -> None:
    assert main(["--data-dir", str(tmp_path), "status", "missing"]) == 1


def test_execute_requires_credentials(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _load_backlog(tmp_path)
    assert main(["--data-dir", str(tmp_path), "execute", "proj-atlas"]) == 1
    assert "No LLM key configured" in capsys.readouterr().err


def test_execute_runs_in_foreground_and_prints_events(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _load_backlog(tmp_path)
    capsys.readouterr()
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    provider = ScriptedProvider()
    monkeypatch.setattr(
        "orion_runner.runtime.execution.coordinator.build_provider",
        lambda _settings: provider,
    )
    config_path = tmp_path / ".orion" / "config.yaml"
    config_path.write_text(
        config_path.read_text(encoding="utf-8").replace("inter_task_pause_seconds: 0.8", "inter_task_pause_seconds: 0"),
        encoding="utf-8",
    )

    assert main(["--data-dir", str(tmp_path), "execute", "proj-atlas", "--max-phase", "1"]) == 0

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.strip()]
    types = [event["type"] for event in lines if event["type"] != "task_update"]
    assert types == ["execution_start", "phase_start", "task_start", "task_done", "phase_done", "execution_done"]
    assert len(provider.calls) == 1

    container = OrionContainer(tmp_path)
    assert container.work_items.get("t-discover").status is WorkItemStatus.DONE
    assert container.work_items.get("t-design").status is WorkItemStatus.TODO
