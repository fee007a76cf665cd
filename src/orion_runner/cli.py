from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

import yaml

from .config import load_settings
from .logging_utils import configure_logging
from .runtime.domain.models import ProjectRecord, WorkItem
from .runtime.errors import RunPreconditionError
from .runtime.events.broadcaster import ProgressBroadcaster
from .runtime.execution.coordinator import ExecutionCoordinator
from .runtime.execution.phase_runner import group_by_phase
from .runtime.llm.provider import check_health
from .runtime.storage.container import OrionContainer
from .server import create_app


def _resolve_data_dir(data_dir: Optional[str]) -> Path:
    return Path(data_dir).expanduser().resolve() if data_dir else Path.cwd().resolve()


def _write(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")


def _load(args: argparse.Namespace) -> int:
    container = OrionContainer(_resolve_data_dir(args.data_dir))
    path = Path(args.file).expanduser()
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        sys.stderr.write(f"Cannot read {path}: {exc}\n")
        return 1
    if not isinstance(raw, dict) or not isinstance(raw.get("project"), dict):
        sys.stderr.write("Backlog file must contain a `project` mapping\n")
        return 1

    project = ProjectRecord.from_dict(raw["project"])
    container.projects.upsert(project)
    loaded = 0
    for position, entry in enumerate(raw.get("work_items") or []):
        if not isinstance(entry, dict):
            continue
        data = {"position": position, **entry, "project_id": project.id}
        container.work_items.upsert(WorkItem.from_dict(data))
        loaded += 1
    _write({"project_id": project.id, "work_items": loaded})
    return 0


def _execute(args: argparse.Namespace) -> int:
    data_dir = _resolve_data_dir(args.data_dir)
    container = OrionContainer(data_dir)
    broadcaster = ProgressBroadcaster()
    broadcaster.subscribe(lambda event: sys.stdout.write(json.dumps(event) + "\n"), label="cli")
    coordinator = ExecutionCoordinator(container, broadcaster, load_settings(data_dir))
    try:
        summary = coordinator.run_foreground(args.project_id, args.min_phase, args.max_phase)
    except RunPreconditionError as exc:
        sys.stderr.write(exc.message + "\n")
        return 1
    return 0 if summary.ok else 1


def _status(args: argparse.Namespace) -> int:
    container = OrionContainer(_resolve_data_dir(args.data_dir))
    project = container.projects.get(args.project_id)
    if project is None:
        sys.stderr.write("Project not found\n")
        return 1
    phases = []
    for phase, items in group_by_phase(container.work_items.for_project(project.id)).items():
        done = len([item for item in items if not item.status.is_pending])
        phases.append(
            {
                "phase": phase,
                "phase_name": items[0].display_phase_name,
                "total": len(items),
                "done": done,
                "pending": len(items) - done,
            }
        )
    _write({"project": project.to_dict(), "phases": phases})
    return 0


def _health(args: argparse.Namespace) -> int:
    settings = load_settings(_resolve_data_dir(args.data_dir))
    report = check_health(settings.llm)
    _write(report)
    return 0 if any(entry.get("ok") for entry in report.values()) else 1


def _server(args: argparse.Namespace) -> int:
    import uvicorn

    app = create_app(data_dir=_resolve_data_dir(args.data_dir))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Orion phase runner CLI")
    parser.add_argument("--data-dir", default=None, help="Directory holding .orion state (default: current working directory)")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: ORION_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("server", help="Start the web server")
    server.add_argument("--host", default="127.0.0.1")
    server.add_argument("--port", default=8000, type=int)
    server.set_defaults(func=_server)

    load = subparsers.add_parser("load", help="Load a project and its backlog from a YAML file")
    load.add_argument("file")
    load.set_defaults(func=_load)

    execute = subparsers.add_parser("execute", help="Run a project's phases in the foreground")
    execute.add_argument("project_id")
    execute.add_argument("--min-phase", type=int, default=None)
    execute.add_argument("--max-phase", type=int, default=None)
    execute.set_defaults(func=_execute)

    status = subparsers.add_parser("status", help="Show per-phase progress for a project")
    status.add_argument("project_id")
    status.set_defaults(func=_status)

    health = subparsers.add_parser("health", help="Probe the configured completion providers")
    health.set_defaults(func=_health)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = args.log_level or load_settings(_resolve_data_dir(args.data_dir)).log_level
    configure_logging(level)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
