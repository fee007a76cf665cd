from __future__ import annotations

from pathlib import Path

from .bootstrap import STATE_FILES, ensure_state_root
from .file_repos import (
    FileAgentLogRepository,
    FileAgentRepository,
    FileConfigRepository,
    FileProjectRepository,
    FileWorkItemRepository,
)


class OrionContainer:
    """Wires the file-backed repositories rooted at ``<data_dir>/.orion``."""

    def __init__(self, data_dir: Path, *, seed_agents: bool = True) -> None:
        self.data_dir = data_dir.resolve()
        self.state_root = ensure_state_root(self.data_dir, seed_agents=seed_agents)

        root = self.state_root
        self.projects = FileProjectRepository(root / STATE_FILES["projects"], root / "projects.lock")
        self.work_items = FileWorkItemRepository(root / STATE_FILES["work_items"], root / "work_items.lock")
        self.agents = FileAgentRepository(root / STATE_FILES["agents"], root / "agents.lock")
        self.agent_logs = FileAgentLogRepository(root / STATE_FILES["agent_logs"], root / "agent_logs.lock")
        self.config = FileConfigRepository(root / STATE_FILES["config"], root / "config.lock")
