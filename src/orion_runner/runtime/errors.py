"""Exceptions raised by the phase execution runtime."""

from __future__ import annotations


class OrionRunnerError(Exception):
    """Base class for runtime errors."""


class InvalidTransitionError(OrionRunnerError):
    def __init__(self, kind: str, current: str, target: str) -> None:
        super().__init__(f"Invalid {kind} transition: {current} -> {target}")
        self.kind = kind
        self.current = current
        self.target = target


class RunPreconditionError(OrionRunnerError):
    """A run was rejected before any background work started.

    ``status_code`` is the HTTP status the trigger surface answers with.
    """

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidPhaseRangeError(RunPreconditionError):
    status_code = 400


class ProjectNotFoundError(RunPreconditionError):
    status_code = 404

    def __init__(self, project_id: str) -> None:
        super().__init__("Project not found")
        self.project_id = project_id


class EmptyBacklogError(RunPreconditionError):
    status_code = 400

    def __init__(self, project_id: str) -> None:
        super().__init__("No tasks found for this project. Run ingest first.")
        self.project_id = project_id


class ProviderNotConfiguredError(RunPreconditionError):
    status_code = 500

    def __init__(self) -> None:
        super().__init__("No LLM key configured. Set ANTHROPIC_API_KEY or OPENAI_API_KEY.")


class RunAlreadyActiveError(RunPreconditionError):
    status_code = 409

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Execution already running for project {project_id}")
        self.project_id = project_id


class RunInterruptedError(OrionRunnerError):
    """The shared stop event fired while a run was in flight."""

    def __init__(self, message: str = "Execution interrupted by shutdown") -> None:
        super().__init__(message)
