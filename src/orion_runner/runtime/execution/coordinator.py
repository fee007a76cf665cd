from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from loguru import logger

from ...config import RunnerSettings
from ..domain.models import now_iso
from ..errors import RunAlreadyActiveError
from ..events.broadcaster import ProgressBroadcaster
from ..llm.provider import CompletionProvider, build_provider, is_configured
from ..storage.container import OrionContainer
from .phase_runner import ExecutionRun, PhaseRunner, RunSummary
from .retry import RetryPolicy
from .task_executor import AgentLeases, TaskExecutor


@dataclass
class _ActiveRun:
    run: ExecutionRun
    thread: threading.Thread
    started_at: str = field(default_factory=now_iso)


class ExecutionCoordinator:
    """Validates run requests and executes accepted runs on background threads.

    At most one run per project is active at a time. All runs share a stop
    event; ``shutdown`` sets it, which cuts retry waits and pauses short and
    stops each run before its next item.
    """

    def __init__(
        self,
        container: OrionContainer,
        broadcaster: ProgressBroadcaster,
        settings: RunnerSettings,
        *,
        provider: Optional[CompletionProvider] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.container = container
        self.broadcaster = broadcaster
        self.settings = settings
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._active: dict[str, _ActiveRun] = {}
        self._finished: dict[str, RunSummary] = {}

        if provider is None:
            provider = build_provider(settings.llm)
            provider_ready: Callable[[], bool] = lambda: is_configured(settings.llm)
        else:
            provider_ready = lambda: True

        execution = settings.execution
        self.executor = TaskExecutor(
            container,
            broadcaster,
            provider,
            policy=RetryPolicy(
                max_attempts=execution.max_attempts,
                base_delay=execution.base_delay_seconds,
                multiplier=execution.backoff_multiplier,
            ),
            max_tokens=execution.max_tokens,
            pause_seconds=execution.inter_task_pause_seconds,
            stop_event=self._stop,
            leases=AgentLeases(),
            sleep=sleep,
        )
        self.runner = PhaseRunner(
            container,
            broadcaster,
            self.executor,
            settings,
            provider_ready=provider_ready,
            stop_event=self._stop,
        )

    def trigger(
        self,
        project_id: str,
        min_phase: Optional[int] = None,
        max_phase: Optional[int] = None,
    ) -> ExecutionRun:
        """Validate and start a run; returns before any item executes."""
        with self._lock:
            active = self._active.get(project_id)
            if active is not None and active.thread.is_alive():
                raise RunAlreadyActiveError(project_id)
            run = self.runner.prepare(project_id, min_phase, max_phase)
            thread = threading.Thread(
                target=self._run,
                args=(run,),
                daemon=True,
                name=f"orion-run-{project_id}",
            )
            self._active[project_id] = _ActiveRun(run=run, thread=thread)
            thread.start()
        logger.info("Accepted run {} for project {}", run.run_id, project_id)
        return run

    def _run(self, run: ExecutionRun) -> None:
        summary: Optional[RunSummary] = None
        try:
            summary = self.runner.execute(run)
        finally:
            with self._lock:
                current = self._active.get(run.project.id)
                if current is not None and current.run.run_id == run.run_id:
                    del self._active[run.project.id]
                if summary is not None:
                    self._finished[run.project.id] = summary

    def run_foreground(
        self,
        project_id: str,
        min_phase: Optional[int] = None,
        max_phase: Optional[int] = None,
    ) -> RunSummary:
        """Validate and execute a run on the calling thread."""
        with self._lock:
            active = self._active.get(project_id)
            if active is not None and active.thread.is_alive():
                raise RunAlreadyActiveError(project_id)
            run = self.runner.prepare(project_id, min_phase, max_phase)
        summary = self.runner.execute(run)
        with self._lock:
            self._finished[project_id] = summary
        return summary

    def wait(self, project_id: str, timeout: Optional[float] = None) -> Optional[RunSummary]:
        with self._lock:
            active = self._active.get(project_id)
        if active is not None:
            active.thread.join(timeout=timeout)
            if active.thread.is_alive():
                return None
        with self._lock:
            return self._finished.get(project_id)

    def is_active(self, project_id: str) -> bool:
        with self._lock:
            active = self._active.get(project_id)
            return active is not None and active.thread.is_alive()

    def active_runs(self) -> list[dict[str, Any]]:
        with self._lock:
            runs = list(self._active.values())
        return [
            {
                "run_id": active.run.run_id,
                "project_id": active.run.project.id,
                "phases": list(active.run.phases),
                "awaiting_approval": active.run.awaiting_approval,
                "started_at": active.started_at,
            }
            for active in runs
            if active.thread.is_alive()
        ]

    def last_summary(self, project_id: str) -> Optional[RunSummary]:
        with self._lock:
            return self._finished.get(project_id)

    def shutdown(self, *, timeout: float = 10.0) -> None:
        self._stop.set()
        with self._lock:
            threads = [active.thread for active in self._active.values()]
        for thread in threads:
            if thread.is_alive():
                thread.join(timeout=max(timeout, 0.0))
        logger.info("Execution coordinator stopped ({} run(s) signalled)", len(threads))
