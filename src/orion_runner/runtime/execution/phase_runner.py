"""Drive one project's backlog through its phases in order."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from loguru import logger

from ...config import RunnerSettings
from ...constants import DEFAULT_MIN_PHASE
from ..domain.events import (
    ExecutionDone,
    ExecutionError,
    ExecutionStart,
    PhaseDone,
    PhaseSkip,
    PhaseStart,
    TaskUpdate,
)
from ..domain.models import AgentStatus, ProjectRecord, ProjectStatus, WorkItem
from ..errors import (
    EmptyBacklogError,
    InvalidPhaseRangeError,
    ProjectNotFoundError,
    ProviderNotConfiguredError,
    RunInterruptedError,
)
from ..events.broadcaster import ProgressBroadcaster
from ..storage.container import OrionContainer
from .task_executor import TaskExecutor


@dataclass
class ExecutionRun:
    """A validated request to run ``phases`` of one project."""

    project: ProjectRecord
    min_phase: int
    max_phase: int
    phases: list[int]
    task_count: int
    final_phase: int
    run_id: str = field(default_factory=lambda: f"run-{uuid.uuid4().hex[:10]}")

    @property
    def awaiting_approval(self) -> bool:
        return self.max_phase < self.final_phase

    @property
    def reaches_final_phase(self) -> bool:
        return not self.awaiting_approval

    def ack(self) -> dict[str, Any]:
        return {
            "message": (
                f'Execution started for "{self.project.name}". '
                f"{self.task_count} tasks across {len(self.phases)} phases."
            ),
            "project_id": self.project.id,
            "run_id": self.run_id,
            "tasks": self.task_count,
            "phases": len(self.phases),
            "awaiting_approval": self.awaiting_approval,
        }


@dataclass
class RunSummary:
    run_id: str
    project_id: str
    phases_run: list[int] = field(default_factory=list)
    phases_skipped: list[int] = field(default_factory=list)
    items_executed: int = 0
    items_failed: int = 0
    project_completed: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "project_id": self.project_id,
            "phases_run": list(self.phases_run),
            "phases_skipped": list(self.phases_skipped),
            "items_executed": self.items_executed,
            "items_failed": self.items_failed,
            "project_completed": self.project_completed,
            "error": self.error,
        }


def group_by_phase(items: list[WorkItem]) -> dict[int, list[WorkItem]]:
    grouped: dict[int, list[WorkItem]] = {}
    for item in sorted(items, key=lambda i: i.order_key):
        grouped.setdefault(item.phase, []).append(item)
    return grouped


class PhaseRunner:
    def __init__(
        self,
        container: OrionContainer,
        broadcaster: ProgressBroadcaster,
        executor: TaskExecutor,
        settings: RunnerSettings,
        *,
        provider_ready: Callable[[], bool],
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.container = container
        self.broadcaster = broadcaster
        self.executor = executor
        self.settings = settings
        self._provider_ready = provider_ready
        self._stop = stop_event or threading.Event()

    def prepare(
        self,
        project_id: str,
        min_phase: Optional[int] = None,
        max_phase: Optional[int] = None,
    ) -> ExecutionRun:
        """Validate a run request without touching any persisted state.

        Raises:
            InvalidPhaseRangeError: The phase bounds are below 1 or inverted.
            ProjectNotFoundError: No project has this id.
            ProviderNotConfiguredError: No completion provider credentials exist.
            EmptyBacklogError: The project has no work items.
        """
        low = DEFAULT_MIN_PHASE if min_phase is None else min_phase
        high = self.settings.execution.default_max_phase if max_phase is None else max_phase
        if low < 1 or high < 1:
            raise InvalidPhaseRangeError("min_phase and max_phase must be positive integers")
        if low > high:
            raise InvalidPhaseRangeError(f"min_phase ({low}) must not exceed max_phase ({high})")

        project = self.container.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        if not self._provider_ready():
            raise ProviderNotConfiguredError()

        items = self.container.work_items.for_project(project_id)
        if not items:
            raise EmptyBacklogError(project_id)

        phases = sorted(phase for phase in group_by_phase(items) if low <= phase <= high)
        return ExecutionRun(
            project=project,
            min_phase=low,
            max_phase=high,
            phases=phases,
            task_count=len(items),
            final_phase=self.settings.execution.final_phase,
        )

    def _check_stop(self) -> None:
        if self._stop.is_set():
            raise RunInterruptedError()

    def recover(self, project_id: str) -> list[WorkItem]:
        """Reset items left in progress by an earlier run and free their agents."""
        moved = self.container.work_items.reset_in_progress(project_id)
        if not moved:
            return moved
        moved_ids = {item.id for item in moved}
        for agent in self.container.agents.list():
            if agent.current_task_id in moved_ids:
                agent.transition(AgentStatus.IDLE)
                agent.current_task_id = None
                self.container.agents.upsert(agent)
        for item in moved:
            self.broadcaster.publish(
                TaskUpdate(task_id=item.id, status=item.status.value, notes=item.notes, updated_at=item.updated_at)
            )
        logger.info("Recovered {} in-progress item(s) for project {}", len(moved), project_id)
        return moved

    def _mark_completed(self, project_id: str) -> bool:
        project = self.container.projects.get(project_id)
        if project is None:
            return False
        project.status = ProjectStatus.COMPLETED
        self.container.projects.upsert(project)
        return True

    def execute(self, run: ExecutionRun) -> RunSummary:
        project = run.project
        summary = RunSummary(run_id=run.run_id, project_id=project.id)
        logger.info(
            "Run {} starting for {} (phases {}-{}: {})",
            run.run_id,
            project.id,
            run.min_phase,
            run.max_phase,
            run.phases,
        )
        try:
            self.recover(project.id)
            self.broadcaster.publish(
                ExecutionStart(project_id=project.id, project_name=project.name, total_phases=len(run.phases))
            )

            for phase in run.phases:
                self._check_stop()
                items = [item for item in self.container.work_items.for_project(project.id) if item.phase == phase]
                phase_name = items[0].display_phase_name if items else f"Phase {phase}"
                pending = [item for item in items if item.status.is_pending]

                if not pending:
                    self.broadcaster.publish(PhaseSkip(phase=phase, phase_name=phase_name))
                    summary.phases_skipped.append(phase)
                    continue

                self.broadcaster.publish(PhaseStart(phase=phase, phase_name=phase_name, task_count=len(pending)))
                for item in pending:
                    self._check_stop()
                    outcome = self.executor.execute(project, item)
                    summary.items_executed += 1
                    if not outcome.ok:
                        summary.items_failed += 1
                self.broadcaster.publish(PhaseDone(phase=phase, phase_name=phase_name))
                summary.phases_run.append(phase)

            if run.reaches_final_phase:
                summary.project_completed = self._mark_completed(project.id)

            self.broadcaster.publish(
                ExecutionDone(
                    project_id=project.id,
                    project_name=project.name,
                    awaiting_approval=run.awaiting_approval,
                )
            )
        except Exception as exc:
            if isinstance(exc, RunInterruptedError):
                logger.warning("Run {} for project {} interrupted", run.run_id, project.id)
            else:
                logger.exception("Run {} for project {} failed", run.run_id, project.id)
            summary.error = str(exc) or exc.__class__.__name__
            self.broadcaster.publish(ExecutionError(project_id=project.id, error=summary.error))
        else:
            logger.info(
                "Run {} finished: {} item(s), {} failed, skipped phases {}",
                run.run_id,
                summary.items_executed,
                summary.items_failed,
                summary.phases_skipped,
            )
        return summary
