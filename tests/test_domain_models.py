from __future__ import annotations

import pytest

from orion_runner.runtime.domain.events import TaskDone
from orion_runner.runtime.domain.models import (
    AGENT_TRANSITIONS,
    WORK_ITEM_TRANSITIONS,
    AgentRecord,
    AgentStatus,
    WorkItem,
    WorkItemStatus,
)
from orion_runner.runtime.errors import InvalidTransitionError


def test_transition_tables_cover_every_status() -> None:
    assert set(WORK_ITEM_TRANSITIONS) == set(WorkItemStatus)
    assert set(AGENT_TRANSITIONS) == set(AgentStatus)


def test_work_item_lifecycle_and_illegal_moves() -> None:
    item = WorkItem(title="Write stories")
    item.transition(WorkItemStatus.IN_PROGRESS)
    item.transition(WorkItemStatus.IN_PROGRESS)
    item.transition(WorkItemStatus.DONE)
    assert item.status is WorkItemStatus.DONE

    with pytest.raises(InvalidTransitionError):
        item.transition(WorkItemStatus.TODO)

    fresh = WorkItem(title="Skip ahead")
    with pytest.raises(InvalidTransitionError):
        fresh.transition(WorkItemStatus.DONE)


def test_agent_cannot_jump_from_idle_to_error() -> None:
    agent = AgentRecord(name="QA", type="qa_engineer")
    with pytest.raises(InvalidTransitionError):
        agent.transition(AgentStatus.ERROR)
    agent.transition(AgentStatus.WORKING)
    agent.transition(AgentStatus.ERROR)
    assert agent.last_active is not None


def test_work_item_from_dict_normalizes_legacy_rows() -> None:
    item = WorkItem.from_dict({"id": "t1", "title": "Old row", "status": "review", "phase": None, "position": "3"})
    assert item.status is WorkItemStatus.TODO
    assert item.phase == 1
    assert item.position == 3
    assert item.display_phase_name == "Phase 1"

    named = WorkItem.from_dict({"id": "t2", "phase": 4, "phase_name": "Development", "status": "done"})
    assert named.display_phase_name == "Development"
    assert not named.status.is_pending


def test_task_done_event_uses_camel_case_on_the_wire() -> None:
    event = TaskDone(task_id="t1", agent="QA Engineer Agent", title="Test plan", output_preview="ok")
    wire = event.to_wire()
    assert wire["type"] == "task_done"
    assert wire["taskId"] == "t1"
    assert "task_id" not in wire
    assert TaskDone.model_validate(wire).task_id == "t1"
