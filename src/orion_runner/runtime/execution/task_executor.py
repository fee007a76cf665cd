from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from loguru import logger

from ...constants import AUDIT_DETAILS_CHARS, OUTPUT_PREVIEW_CHARS, WORKING_NOTES
from ...logging_utils import preview
from ..domain.events import RateLimit, TaskDone, TaskStart, TaskUpdate
from ..domain.models import AgentLogEntry, AgentRecord, AgentStatus, ProjectRecord, WorkItem, WorkItemStatus
from ..errors import RunInterruptedError
from ..events.broadcaster import ProgressBroadcaster
from ..llm.errors import CompletionError
from ..llm.provider import CompletionProvider
from ..storage.container import OrionContainer
from .prompts import build_prompts
from .retry import RetryPolicy


@dataclass
class TaskOutcome:
    item_id: str
    ok: bool
    output: str
    attempts: int


class AgentLeases:
    """One lock per executor identity, shared by every run in the process."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, agent_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(agent_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[agent_id] = lock
            return lock

    @contextmanager
    def hold(self, agent_id: Optional[str], stop_event: threading.Event) -> Iterator[None]:
        if not agent_id:
            yield
            return
        lock = self._lock_for(agent_id)
        while not lock.acquire(timeout=0.25):
            if stop_event.is_set():
                raise RunInterruptedError()
        try:
            yield
        finally:
            lock.release()


class TaskExecutor:
    """Runs a single work item: todo -> in_progress -> done.

    Provider failures never escape; they end the item as done with an
    ``Error: ...`` result. Only shutdown interruption propagates.
    """

    def __init__(
        self,
        container: OrionContainer,
        broadcaster: ProgressBroadcaster,
        provider: CompletionProvider,
        *,
        policy: Optional[RetryPolicy] = None,
        max_tokens: int = 1024,
        pause_seconds: float = 0.8,
        stop_event: Optional[threading.Event] = None,
        leases: Optional[AgentLeases] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.container = container
        self.broadcaster = broadcaster
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self.max_tokens = max_tokens
        self.pause_seconds = pause_seconds
        self._stop = stop_event or threading.Event()
        self.leases = leases or AgentLeases()
        self._sleep = sleep or self._wait

    def _wait(self, seconds: float) -> None:
        if self._stop.wait(seconds):
            raise RunInterruptedError()

    def _save_item(self, item: WorkItem, status: WorkItemStatus, notes: str) -> None:
        item.transition(status)
        item.notes = notes
        self.container.work_items.upsert(item)
        self.broadcaster.publish(
            TaskUpdate(task_id=item.id, status=item.status.value, notes=notes, updated_at=item.updated_at)
        )

    def _set_agent(self, agent: Optional[AgentRecord], status: AgentStatus, task_id: Optional[str]) -> None:
        if agent is None:
            return
        agent.transition(status)
        agent.current_task_id = task_id
        self.container.agents.upsert(agent)

    def execute(self, project: ProjectRecord, item: WorkItem) -> TaskOutcome:
        with self.leases.hold(item.assigned_agent, self._stop):
            # Read under the lease; a previous holder may have just written the record.
            agent = self.container.agents.get(item.assigned_agent) if item.assigned_agent else None
            outcome = self._execute_held(project, item, agent)
        if self.pause_seconds > 0:
            self._sleep(self.pause_seconds)
        return outcome

    def _execute_held(self, project: ProjectRecord, item: WorkItem, agent: Optional[AgentRecord]) -> TaskOutcome:
        item.error = None
        self._save_item(item, WorkItemStatus.IN_PROGRESS, WORKING_NOTES)
        self._set_agent(agent, AgentStatus.WORKING, item.id)
        agent_name = agent.name if agent else None
        self.broadcaster.publish(TaskStart(task_id=item.id, agent=agent_name, title=item.title))
        logger.info("Executing {} ({}) as {}", item.id, item.title, agent_name or "unassigned")

        role_prompt, context_prompt = build_prompts(agent.type if agent else None, project, item)
        attempts = 0

        def _call() -> str:
            nonlocal attempts
            attempts += 1
            result = self.provider.complete(role_prompt, context_prompt, max_tokens=self.max_tokens)
            return result.text

        def _on_retry(attempt: int, delay: float, exc: BaseException) -> None:
            logger.warning("Rate limited on {} (attempt {}/{}): {}", item.id, attempt, self.policy.max_attempts, exc)
            self.broadcaster.publish(RateLimit(task_id=item.id, retry=attempt, wait_ms=int(delay * 1000)))
            self._save_item(
                item,
                WorkItemStatus.IN_PROGRESS,
                f"Rate limited. Retrying in {delay:g}s (attempt {attempt}/{self.policy.max_attempts})...",
            )

        ok = True
        try:
            output = self.policy.run(_call, sleep=self._sleep, on_retry=_on_retry)
        except RunInterruptedError:
            raise
        except CompletionError as exc:
            ok = False
            output = f"Error: {exc.message}"
        except Exception as exc:
            logger.exception("Unexpected provider failure on {}", item.id)
            ok = False
            output = f"Error: {exc}"

        if not ok:
            item.error = output
            logger.error("Work item {} failed after {} attempt(s): {}", item.id, attempts, output)
        self._save_item(item, WorkItemStatus.DONE, output)
        self._set_agent(agent, AgentStatus.IDLE if ok else AgentStatus.ERROR, None)

        self.container.agent_logs.append(
            AgentLogEntry(
                agent_id=agent.id if agent else None,
                agent_type=agent.type if agent else "unknown",
                action="task_executed" if ok else "task_failed",
                details=preview(output, AUDIT_DETAILS_CHARS),
                project_id=project.id,
                task_id=item.id,
            )
        )
        self.broadcaster.publish(
            TaskDone(
                task_id=item.id,
                agent=agent_name,
                title=item.title,
                output_preview=preview(output, OUTPUT_PREVIEW_CHARS),
                ok=ok,
            )
        )
        return TaskOutcome(item_id=item.id, ok=ok, output=output, attempts=attempts)
