from .models import (
    AgentLogEntry,
    AgentRecord,
    AgentStatus,
    ProjectRecord,
    ProjectStatus,
    WorkItem,
    WorkItemStatus,
    now_iso,
)

__all__ = [
    "AgentLogEntry",
    "AgentRecord",
    "AgentStatus",
    "ProjectRecord",
    "ProjectStatus",
    "WorkItem",
    "WorkItemStatus",
    "now_iso",
]
