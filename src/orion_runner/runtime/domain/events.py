"""Progress events published while a run executes.

Events are never persisted. ``to_wire()`` renders the JSON shape the
dashboard consumes, which uses camelCase for task identifiers.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ExecutionStart(_Event):
    type: Literal["execution_start"] = "execution_start"
    project_id: str
    project_name: str
    total_phases: int


class PhaseStart(_Event):
    type: Literal["phase_start"] = "phase_start"
    phase: int
    phase_name: str
    task_count: int


class PhaseSkip(_Event):
    type: Literal["phase_skip"] = "phase_skip"
    phase: int
    phase_name: str
    reason: str = "already complete"


class TaskStart(_Event):
    type: Literal["task_start"] = "task_start"
    task_id: str = Field(alias="taskId")
    agent: Optional[str] = None
    title: str


class TaskUpdate(_Event):
    type: Literal["task_update"] = "task_update"
    task_id: str = Field(alias="taskId")
    status: str
    notes: str = ""
    updated_at: str = Field(alias="updatedAt")


class RateLimit(_Event):
    type: Literal["rate_limit"] = "rate_limit"
    task_id: str = Field(alias="taskId")
    retry: int
    wait_ms: int


class TaskDone(_Event):
    type: Literal["task_done"] = "task_done"
    task_id: str = Field(alias="taskId")
    agent: Optional[str] = None
    title: str
    output_preview: str
    ok: bool = True


class PhaseDone(_Event):
    type: Literal["phase_done"] = "phase_done"
    phase: int
    phase_name: str


class ExecutionDone(_Event):
    type: Literal["execution_done"] = "execution_done"
    project_id: str
    project_name: str
    awaiting_approval: bool


class ExecutionError(_Event):
    type: Literal["execution_error"] = "execution_error"
    project_id: str
    error: str


class AgentUpdate(_Event):
    type: Literal["agent_update"] = "agent_update"
    agents: list[dict[str, Any]] = Field(default_factory=list)


ProgressEvent = Annotated[
    Union[
        ExecutionStart,
        PhaseStart,
        PhaseSkip,
        TaskStart,
        TaskUpdate,
        RateLimit,
        TaskDone,
        PhaseDone,
        ExecutionDone,
        ExecutionError,
        AgentUpdate,
    ],
    Field(discriminator="type"),
]
