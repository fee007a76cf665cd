from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Union

import pytest

from orion_runner.config import RunnerSettings
from orion_runner.runtime.domain.models import ProjectRecord, WorkItem
from orion_runner.runtime.events.broadcaster import ProgressBroadcaster
from orion_runner.runtime.execution.coordinator import ExecutionCoordinator
from orion_runner.runtime.llm.provider import CompletionProvider, CompletionResult
from orion_runner.runtime.storage.container import OrionContainer

# Events emitted on every store write; sequence assertions ignore them.
NOISE_EVENTS = ("task_update", "agent_update")


class ScriptedProvider(CompletionProvider):
    """Returns scripted outputs (or raises scripted exceptions) in call order."""

    name = "scripted"

    def __init__(self, script: Optional[list[Union[str, BaseException]]] = None, *, default: Optional[Union[str, BaseException]] = None) -> None:
        self.script = list(script or [])
        self.default = default
        self.calls: list[tuple[str, str, int]] = []
        self._lock = threading.Lock()

    @property
    def model(self) -> str:
        return "scripted-model"

    def complete(self, role_prompt: str, context_prompt: str, *, max_tokens: int) -> CompletionResult:
        with self._lock:
            self.calls.append((role_prompt, context_prompt, max_tokens))
            step = self.script.pop(0) if self.script else self.default
            count = len(self.calls)
        if isinstance(step, BaseException):
            raise step
        text = step if step is not None else f"Work output #{count}"
        return CompletionResult(text=text, provider=self.name, model=self.model)


class EventRecorder:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def __call__(self, payload: dict[str, Any]) -> None:
        with self._lock:
            self.events.append(payload)

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [event for event in self.events if event["type"] == event_type]

    def sequence(self) -> list[str]:
        return [event["type"] for event in self.events if event["type"] not in NOISE_EVENTS]


def quiet_settings(**execution: Any) -> RunnerSettings:
    config = {"execution": {"inter_task_pause_seconds": 0, **execution}}
    return RunnerSettings.from_config(config, env={})


def seed_project(
    container: OrionContainer,
    phases: dict[int, int],
    *,
    name: str = "Demo App",
    description: str = "A demo mobile app",
    agent_type: str = "business_analyst",
) -> tuple[ProjectRecord, list[WorkItem]]:
    project = container.projects.upsert(ProjectRecord(name=name, description=description))
    items: list[WorkItem] = []
    for phase, count in sorted(phases.items()):
        for position in range(count):
            item = WorkItem(
                project_id=project.id,
                title=f"P{phase} task {position + 1}",
                description=f"Do step {position + 1} of phase {phase}",
                phase=phase,
                position=position,
                assigned_agent=f"agent-{agent_type}",
            )
            items.append(container.work_items.upsert(item))
    return project, items


@pytest.fixture
def container(tmp_path: Path) -> OrionContainer:
    return OrionContainer(tmp_path)


@pytest.fixture
def make_coordinator(container: OrionContainer) -> Iterator[Callable[..., tuple[ExecutionCoordinator, EventRecorder, list[float]]]]:
    """Build a coordinator wired to a recorder and a non-blocking sleep."""
    built: list[ExecutionCoordinator] = []

    def _make(
        provider: CompletionProvider,
        settings: Optional[RunnerSettings] = None,
        *,
        real_sleep: bool = False,
    ) -> tuple[ExecutionCoordinator, EventRecorder, list[float]]:
        broadcaster = ProgressBroadcaster()
        recorder = EventRecorder()
        broadcaster.subscribe(recorder, label="recorder")
        sleeps: list[float] = []
        coordinator = ExecutionCoordinator(
            container,
            broadcaster,
            settings or quiet_settings(),
            provider=provider,
            sleep=None if real_sleep else sleeps.append,
        )
        built.append(coordinator)
        return coordinator, recorder, sleeps

    yield _make
    for coordinator in built:
        coordinator.shutdown(timeout=2.0)
