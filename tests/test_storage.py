from __future__ import annotations

from pathlib import Path

from orion_runner.runtime.domain.models import AgentLogEntry, AgentStatus, WorkItem, WorkItemStatus
from orion_runner.runtime.storage import DEFAULT_AGENT_ROSTER, OrionContainer


def test_bootstrap_creates_state_files_and_seeds_roster_once(tmp_path: Path) -> None:
    container = OrionContainer(tmp_path)
    root = tmp_path / ".orion"
    for name in ("projects.yaml", "work_items.yaml", "agents.yaml", "agent_logs.jsonl", "config.yaml"):
        assert (root / name).exists()

    agents = container.agents.list()
    assert len(agents) == len(DEFAULT_AGENT_ROSTER) == 13
    assert all(agent.status is AgentStatus.IDLE for agent in agents)

    (root / "agents.yaml").write_text("version: 1\nagents: []\n", encoding="utf-8")
    again = OrionContainer(tmp_path)
    assert again.agents.list() == []

    cfg = again.config.load()
    assert cfg["execution"]["final_phase"] == 7
    assert cfg["llm"]["preferred"] == "auto"


def test_for_project_orders_by_phase_then_position(container: OrionContainer) -> None:
    for phase, position, title in [(2, 0, "c"), (1, 1, "b"), (1, 0, "a"), (3, 0, "d")]:
        container.work_items.upsert(WorkItem(project_id="p1", title=title, phase=phase, position=position))
    container.work_items.upsert(WorkItem(project_id="other", title="x", phase=1))

    titles = [item.title for item in container.work_items.for_project("p1")]
    assert titles == ["a", "b", "c", "d"]


def test_reset_in_progress_only_touches_one_project(container: OrionContainer) -> None:
    stuck = WorkItem(project_id="p1", title="stuck", status=WorkItemStatus.IN_PROGRESS)
    other = WorkItem(project_id="p2", title="other", status=WorkItemStatus.IN_PROGRESS)
    done = WorkItem(project_id="p1", title="done", status=WorkItemStatus.DONE)
    for item in (stuck, other, done):
        container.work_items.upsert(item)

    moved = container.work_items.reset_in_progress("p1")

    assert [item.id for item in moved] == [stuck.id]
    assert container.work_items.get(stuck.id).status is WorkItemStatus.TODO
    assert container.work_items.get(other.id).status is WorkItemStatus.IN_PROGRESS
    assert container.work_items.get(done.id).status is WorkItemStatus.DONE


def test_agent_log_is_append_only_jsonl(container: OrionContainer) -> None:
    for idx in range(3):
        container.agent_logs.append(AgentLogEntry(agent_type="qa_engineer", details=f"run {idx}", task_id=f"t{idx}"))

    recent = container.agent_logs.list_recent(limit=2)
    assert [entry.details for entry in recent] == ["run 1", "run 2"]
    lines = (container.state_root / "agent_logs.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
