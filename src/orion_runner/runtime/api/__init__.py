from .router import agent_snapshot, create_pm_agent_router, progress_stream

__all__ = ["agent_snapshot", "create_pm_agent_router", "progress_stream"]
