from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..domain.models import AgentLogEntry, AgentRecord, ProjectRecord, WorkItem


class ProjectRepository(ABC):
    @abstractmethod
    def list(self) -> list[ProjectRecord]:
        raise NotImplementedError

    @abstractmethod
    def get(self, project_id: str) -> Optional[ProjectRecord]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, project: ProjectRecord) -> ProjectRecord:
        raise NotImplementedError


class WorkItemRepository(ABC):
    @abstractmethod
    def list(self) -> list[WorkItem]:
        raise NotImplementedError

    @abstractmethod
    def get(self, item_id: str) -> Optional[WorkItem]:
        raise NotImplementedError

    @abstractmethod
    def for_project(self, project_id: str) -> list[WorkItem]:
        """Return the project's items ordered by phase then position."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, item: WorkItem) -> WorkItem:
        raise NotImplementedError

    @abstractmethod
    def reset_in_progress(self, project_id: str) -> list[WorkItem]:
        """Move every in-progress item of the project back to todo; return the moved items."""
        raise NotImplementedError


class AgentRepository(ABC):
    @abstractmethod
    def list(self) -> list[AgentRecord]:
        raise NotImplementedError

    @abstractmethod
    def get(self, agent_id: str) -> Optional[AgentRecord]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, agent: AgentRecord) -> AgentRecord:
        raise NotImplementedError


class AgentLogRepository(ABC):
    @abstractmethod
    def append(self, entry: AgentLogEntry) -> AgentLogEntry:
        raise NotImplementedError

    @abstractmethod
    def list_recent(self, limit: int = 100) -> list[AgentLogEntry]:
        raise NotImplementedError
