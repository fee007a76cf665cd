from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Callable, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger

from ..domain.events import AgentUpdate
from ..errors import InvalidPhaseRangeError, RunPreconditionError
from ..events.broadcaster import ProgressBroadcaster, QueueSubscriber
from ..execution.coordinator import ExecutionCoordinator
from ..llm.provider import check_health
from ..storage.container import OrionContainer

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def agent_snapshot(container: OrionContainer) -> dict[str, Any]:
    """Build an ``agent_update`` event listing every agent and its current task title."""
    titles = {item.id: item.title for item in container.work_items.list()}
    agents = []
    for agent in container.agents.list():
        row = agent.to_dict()
        row["current_task_title"] = titles.get(agent.current_task_id or "")
        agents.append(row)
    return AgentUpdate(agents=agents).to_wire()


def parse_phase_bound(name: str, raw: Optional[str]) -> Optional[int]:
    """Parse an optional phase bound from the query string; blank means unset."""
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise InvalidPhaseRangeError(f"{name} must be an integer, got {raw!r}") from None


def sse_frame(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def progress_stream(
    request: Any,
    broadcaster: ProgressBroadcaster,
    snapshot: Callable[[], dict[str, Any]],
    heartbeat_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE frames: published events as they arrive plus a periodic agent snapshot."""
    loop = asyncio.get_running_loop()
    subscriber = QueueSubscriber(loop).attach(broadcaster, label="live-progress")
    try:
        yield sse_frame(await asyncio.to_thread(snapshot))
        next_heartbeat = loop.time() + heartbeat_seconds
        while True:
            if await request.is_disconnected():
                break
            remaining = max(next_heartbeat - loop.time(), 0.0)
            try:
                payload = await asyncio.wait_for(subscriber.queue.get(), timeout=remaining)
            except asyncio.TimeoutError:
                payload = await asyncio.to_thread(snapshot)
                next_heartbeat = loop.time() + heartbeat_seconds
            yield sse_frame(payload)
    finally:
        subscriber.detach(broadcaster)
        if subscriber.dropped:
            logger.warning("Live-progress client fell behind; {} event(s) dropped", subscriber.dropped)


def create_pm_agent_router(
    container: OrionContainer,
    coordinator: ExecutionCoordinator,
    broadcaster: ProgressBroadcaster,
) -> APIRouter:
    router = APIRouter(tags=["pm-agent"])
    settings = coordinator.settings

    @router.post("/pm-agent/execute/{project_id}", status_code=202)
    async def execute_project(
        project_id: str,
        min_phase: Optional[str] = Query(None),
        max_phase: Optional[str] = Query(None),
    ) -> Any:
        project_id = project_id.strip()
        if not project_id:
            return JSONResponse(status_code=400, content={"success": False, "message": "project_id required"})
        try:
            low = parse_phase_bound("min_phase", min_phase)
            high = parse_phase_bound("max_phase", max_phase)
            run = coordinator.trigger(project_id, low, high)
        except RunPreconditionError as exc:
            return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})
        return {"success": True, **run.ack()}

    @router.get("/pm-agent/runs")
    async def list_runs() -> dict[str, Any]:
        return {"runs": coordinator.active_runs()}

    @router.get("/pm-agent/runs/{project_id}")
    async def get_run(project_id: str) -> dict[str, Any]:
        summary = coordinator.last_summary(project_id)
        return {
            "project_id": project_id,
            "active": coordinator.is_active(project_id),
            "last_run": summary.to_dict() if summary else None,
        }

    @router.get("/pm-agent/llm/health")
    async def llm_health() -> dict[str, Any]:
        return await asyncio.to_thread(check_health, settings.llm)

    @router.get("/live-progress")
    async def live_progress(request: Request) -> StreamingResponse:
        return StreamingResponse(
            progress_stream(
                request,
                broadcaster,
                lambda: agent_snapshot(container),
                settings.heartbeat_seconds,
            ),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return router
