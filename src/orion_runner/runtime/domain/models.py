"""Persistent records handled by the phase execution engine.

Work items, agents and projects are plain dataclasses with ``to_dict`` /
``from_dict`` helpers so the file repositories can store them as YAML.
Status fields are ``str`` enums with explicit transition tables; moving a
record to a status its table does not allow raises ``InvalidTransitionError``.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, TypeVar

from ..errors import InvalidTransitionError


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class WorkItemStatus(str, Enum):
    """Lifecycle of a single backlog item."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @property
    def is_pending(self) -> bool:
        return self is not WorkItemStatus.DONE


class AgentStatus(str, Enum):
    """Availability of an executor identity."""

    IDLE = "idle"
    WORKING = "working"
    COMPLETED = "completed"
    ERROR = "error"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"


WORK_ITEM_TRANSITIONS: dict[WorkItemStatus, frozenset[WorkItemStatus]] = {
    WorkItemStatus.TODO: frozenset({WorkItemStatus.IN_PROGRESS}),
    # in_progress -> in_progress carries interim notes while a retry waits;
    # in_progress -> todo is the recovery sweep.
    WorkItemStatus.IN_PROGRESS: frozenset(
        {WorkItemStatus.IN_PROGRESS, WorkItemStatus.DONE, WorkItemStatus.TODO}
    ),
    WorkItemStatus.DONE: frozenset(),
}

AGENT_TRANSITIONS: dict[AgentStatus, frozenset[AgentStatus]] = {
    AgentStatus.IDLE: frozenset({AgentStatus.IDLE, AgentStatus.WORKING}),
    AgentStatus.WORKING: frozenset(
        {AgentStatus.WORKING, AgentStatus.IDLE, AgentStatus.COMPLETED, AgentStatus.ERROR}
    ),
    AgentStatus.COMPLETED: frozenset({AgentStatus.IDLE, AgentStatus.WORKING}),
    AgentStatus.ERROR: frozenset({AgentStatus.IDLE, AgentStatus.WORKING}),
}


E = TypeVar("E", bound=Enum)


def _coerce_enum(enum_cls: type[E], value: Any, default: E) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value))
    except ValueError:
        return default


def _coerce_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class ProjectRecord:
    id: str = field(default_factory=lambda: _id("proj"))
    name: str = ""
    description: str = ""
    status: ProjectStatus = ProjectStatus.PLANNING
    priority: str = "medium"
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectRecord":
        return cls(
            id=str(data.get("id") or _id("proj")),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            status=_coerce_enum(ProjectStatus, data.get("status"), ProjectStatus.PLANNING),
            priority=str(data.get("priority") or "medium"),
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


@dataclass
class WorkItem:
    """A backlog item assigned to one phase of a project."""

    id: str = field(default_factory=lambda: _id("task"))
    project_id: str = ""
    title: str = ""
    description: str = ""
    phase: int = 1
    phase_name: Optional[str] = None
    position: int = 0
    status: WorkItemStatus = WorkItemStatus.TODO
    priority: str = "medium"
    assigned_agent: Optional[str] = None
    notes: str = ""
    error: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    @property
    def display_phase_name(self) -> str:
        return self.phase_name or f"Phase {self.phase}"

    @property
    def order_key(self) -> tuple[int, int, str, str]:
        return (self.phase, self.position, self.created_at, self.id)

    def transition(self, target: WorkItemStatus) -> None:
        if target not in WORK_ITEM_TRANSITIONS[self.status]:
            raise InvalidTransitionError("work item", self.status.value, target.value)
        self.status = target
        self.updated_at = now_iso()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkItem":
        phase = _coerce_int(data.get("phase"), 1)
        return cls(
            id=str(data.get("id") or _id("task")),
            project_id=str(data.get("project_id") or ""),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            phase=phase if phase > 0 else 1,
            phase_name=data.get("phase_name") or None,
            position=_coerce_int(data.get("position"), 0),
            status=_coerce_enum(WorkItemStatus, data.get("status"), WorkItemStatus.TODO),
            priority=str(data.get("priority") or "medium"),
            assigned_agent=data.get("assigned_agent") or None,
            notes=str(data.get("notes") or ""),
            error=data.get("error") or None,
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


@dataclass
class AgentRecord:
    """An executor identity; its ``type`` selects the persona prompt."""

    id: str = field(default_factory=lambda: _id("agent"))
    name: str = ""
    type: str = ""
    description: str = ""
    status: AgentStatus = AgentStatus.IDLE
    current_task_id: Optional[str] = None
    last_active: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    def transition(self, target: AgentStatus) -> None:
        if target not in AGENT_TRANSITIONS[self.status]:
            raise InvalidTransitionError("agent", self.status.value, target.value)
        self.status = target
        self.last_active = now_iso()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentRecord":
        return cls(
            id=str(data.get("id") or _id("agent")),
            name=str(data.get("name") or ""),
            type=str(data.get("type") or ""),
            description=str(data.get("description") or ""),
            status=_coerce_enum(AgentStatus, data.get("status"), AgentStatus.IDLE),
            current_task_id=data.get("current_task_id") or None,
            last_active=data.get("last_active") or None,
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class AgentLogEntry:
    id: str = field(default_factory=lambda: _id("log"))
    agent_id: Optional[str] = None
    agent_type: str = ""
    action: str = "task_executed"
    details: str = ""
    project_id: str = ""
    task_id: str = ""
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentLogEntry":
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__ if k in data})
