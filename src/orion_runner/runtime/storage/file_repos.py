from __future__ import annotations

import json
import os
import threading
from collections import deque
from pathlib import Path
from typing import Any, Callable, Generic, Optional, TypeVar

import yaml
from filelock import FileLock

from ...constants import SCHEMA_VERSION
from ..domain.models import (
    AgentLogEntry,
    AgentRecord,
    ProjectRecord,
    WorkItem,
    WorkItemStatus,
    now_iso,
)
from .interfaces import (
    AgentLogRepository,
    AgentRepository,
    ProjectRepository,
    WorkItemRepository,
)


T = TypeVar("T")


class _YamlCollectionRepo(Generic[T]):
    def __init__(
        self,
        path: Path,
        lock_path: Path,
        key: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        self._path = path
        self._lock = FileLock(str(lock_path))
        self._thread_lock = threading.RLock()
        self._key = key
        self._loader = loader
        self._dumper = dumper

    def _load(self) -> list[T]:
        if not self._path.exists():
            return []
        raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            return []
        items = raw.get(self._key, [])
        if not isinstance(items, list):
            return []
        return [self._loader(item) for item in items if isinstance(item, dict)]

    def _save(self, items: list[T]) -> None:
        payload = {"version": SCHEMA_VERSION, self._key: [self._dumper(item) for item in items]}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(payload, handle, sort_keys=False)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, self._path)

    def list(self) -> list[T]:
        with self._thread_lock:
            with self._lock:
                return self._load()

    def replace(self, item_id: str, item: T, *, stamp: Optional[Callable[[T, bool], None]] = None) -> T:
        with self._thread_lock:
            with self._lock:
                items = self._load()
                for idx, existing in enumerate(items):
                    if getattr(existing, "id") == item_id:
                        if stamp:
                            stamp(item, False)
                        items[idx] = item
                        break
                else:
                    if stamp:
                        stamp(item, True)
                    items.append(item)
                self._save(items)
        return item


def _stamp_updated(record: Any, created: bool) -> None:
    record.updated_at = now_iso()
    if created:
        record.created_at = record.created_at or now_iso()


class FileProjectRepository(ProjectRepository):
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[ProjectRecord](
            path,
            lock_path,
            "projects",
            loader=ProjectRecord.from_dict,
            dumper=lambda p: p.to_dict(),
        )

    def list(self) -> list[ProjectRecord]:
        return self._repo.list()

    def get(self, project_id: str) -> Optional[ProjectRecord]:
        for project in self.list():
            if project.id == project_id:
                return project
        return None

    def upsert(self, project: ProjectRecord) -> ProjectRecord:
        return self._repo.replace(project.id, project, stamp=_stamp_updated)


class FileWorkItemRepository(WorkItemRepository):
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[WorkItem](
            path,
            lock_path,
            "work_items",
            loader=WorkItem.from_dict,
            dumper=lambda w: w.to_dict(),
        )

    def list(self) -> list[WorkItem]:
        return self._repo.list()

    def get(self, item_id: str) -> Optional[WorkItem]:
        for item in self.list():
            if item.id == item_id:
                return item
        return None

    def for_project(self, project_id: str) -> list[WorkItem]:
        items = [item for item in self.list() if item.project_id == project_id]
        items.sort(key=lambda item: item.order_key)
        return items

    def upsert(self, item: WorkItem) -> WorkItem:
        return self._repo.replace(item.id, item, stamp=_stamp_updated)

    def reset_in_progress(self, project_id: str) -> list[WorkItem]:
        moved: list[WorkItem] = []
        with self._repo._thread_lock:
            with self._repo._lock:
                items = self._repo._load()
                for item in items:
                    if item.project_id == project_id and item.status == WorkItemStatus.IN_PROGRESS:
                        item.transition(WorkItemStatus.TODO)
                        moved.append(item)
                if moved:
                    self._repo._save(items)
        return moved


class FileAgentRepository(AgentRepository):
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[AgentRecord](
            path,
            lock_path,
            "agents",
            loader=AgentRecord.from_dict,
            dumper=lambda a: a.to_dict(),
        )

    def list(self) -> list[AgentRecord]:
        return self._repo.list()

    def get(self, agent_id: str) -> Optional[AgentRecord]:
        for agent in self.list():
            if agent.id == agent_id:
                return agent
        return None

    def upsert(self, agent: AgentRecord) -> AgentRecord:
        return self._repo.replace(agent.id, agent)


class FileAgentLogRepository(AgentLogRepository):
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._path = path
        self._lock = FileLock(str(lock_path))
        self._thread_lock = threading.RLock()

    def append(self, entry: AgentLogEntry) -> AgentLogEntry:
        with self._thread_lock:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(json.dumps(entry.to_dict()) + "\n")
                    handle.flush()
                    os.fsync(handle.fileno())
        return entry

    def list_recent(self, limit: int = 100) -> list[AgentLogEntry]:
        if limit <= 0 or not self._path.exists():
            return []
        with self._thread_lock:
            with self._lock:
                with self._path.open("r", encoding="utf-8") as handle:
                    selected = list(deque(handle, maxlen=limit))
        entries: list[AgentLogEntry] = []
        for line in selected:
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                entries.append(AgentLogEntry.from_dict(parsed))
        return entries


class FileConfigRepository:
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._path = path
        self._lock = FileLock(str(lock_path))
        self._thread_lock = threading.RLock()

    def load(self) -> dict[str, Any]:
        with self._thread_lock:
            with self._lock:
                if not self._path.exists():
                    return {}
                raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
                return raw if isinstance(raw, dict) else {}

    def save(self, config: dict[str, Any]) -> dict[str, Any]:
        with self._thread_lock:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
                with tmp_path.open("w", encoding="utf-8") as handle:
                    yaml.safe_dump(config, handle, sort_keys=False)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_path, self._path)
        return config
