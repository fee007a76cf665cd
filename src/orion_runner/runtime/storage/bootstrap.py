from __future__ import annotations

from pathlib import Path

from ...constants import (
    CONFIG_FILE,
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_FINAL_PHASE,
    DEFAULT_HEARTBEAT_SECONDS,
    DEFAULT_INTER_TASK_PAUSE_SECONDS,
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_TOKENS,
    SCHEMA_VERSION,
    STATE_DIR_NAME,
)
from ..domain.models import AgentRecord
from .file_repos import FileAgentRepository, FileConfigRepository


STATE_FILES = {
    "projects": "projects.yaml",
    "work_items": "work_items.yaml",
    "agents": "agents.yaml",
    "agent_logs": "agent_logs.jsonl",
    "config": CONFIG_FILE,
}

# (type, name, description) for the identities seeded into an empty store.
DEFAULT_AGENT_ROSTER: tuple[tuple[str, str, str], ...] = (
    ("business_analyst", "Business Analyst Agent", "Gathers requirements, analyzes business processes, and creates specifications"),
    ("uiux_designer", "UI/UX Designer Agent", "Creates wireframes, prototypes, and design systems for user interfaces"),
    ("system_integrator", "System Integrator Agent", "Manages system integrations, APIs, and data flow between services"),
    ("database_admin", "Database Administrator Agent", "Manages database schemas, optimizes queries, and handles data migrations"),
    ("mobile_developer", "Mobile Developer Agent", "Develops mobile applications for iOS and Android platforms"),
    ("web_developer", "Web Developer Agent", "Builds and maintains web applications, frontend and backend components"),
    ("qa_engineer", "QA Engineer Agent", "Designs test plans, executes automated tests, and tracks quality metrics"),
    ("security_specialist", "Security Specialist Agent", "Performs security audits, vulnerability assessments, and compliance checks"),
    ("performance_optimizer", "Performance Optimization Agent", "Analyzes and improves application performance, load times, and resource usage"),
    ("devops_engineer", "DevOps Engineer Agent", "Manages CI/CD pipelines, infrastructure, and deployment automation"),
    ("training_docs", "Training & Documentation Agent", "Creates training materials, user guides, and technical documentation"),
    ("content_copywriting", "Content & Copywriting Agent", "Generates marketing copy, documentation content, and user-facing text"),
    ("project_manager", "Project Manager Agent", "Orchestrates project planning, monitors progress, and coordinates between teams"),
)


def _seed_agents(state_root: Path) -> None:
    repo = FileAgentRepository(state_root / STATE_FILES["agents"], state_root / "agents.lock")
    if repo.list():
        return
    for agent_type, name, description in DEFAULT_AGENT_ROSTER:
        repo.upsert(AgentRecord(id=f"agent-{agent_type}", name=name, type=agent_type, description=description))


def ensure_state_root(data_dir: Path, *, seed_agents: bool = True) -> Path:
    state_root = data_dir / STATE_DIR_NAME
    fresh = not state_root.exists()
    state_root.mkdir(parents=True, exist_ok=True)

    for file_name in STATE_FILES.values():
        target = state_root / file_name
        if file_name.endswith(".yaml") and not target.exists():
            target.write_text(f"version: {SCHEMA_VERSION}\n", encoding="utf-8")
        if file_name.endswith(".jsonl") and not target.exists():
            target.touch()

    config_repo = FileConfigRepository(state_root / CONFIG_FILE, state_root / "config.lock")
    config = config_repo.load()
    config.pop("version", None)
    config["schema_version"] = SCHEMA_VERSION
    config.setdefault(
        "execution",
        {
            "final_phase": DEFAULT_FINAL_PHASE,
            "max_attempts": DEFAULT_MAX_ATTEMPTS,
            "base_delay_seconds": DEFAULT_BASE_DELAY_SECONDS,
            "backoff_multiplier": DEFAULT_BACKOFF_MULTIPLIER,
            "inter_task_pause_seconds": DEFAULT_INTER_TASK_PAUSE_SECONDS,
            "max_tokens": DEFAULT_MAX_TOKENS,
        },
    )
    config.setdefault(
        "llm",
        {
            "preferred": "auto",
            "anthropic_model": DEFAULT_ANTHROPIC_MODEL,
            "timeout_seconds": DEFAULT_LLM_TIMEOUT_SECONDS,
        },
    )
    config.setdefault("server", {"heartbeat_seconds": DEFAULT_HEARTBEAT_SECONDS})
    config_repo.save(config)

    if fresh and seed_agents:
        _seed_agents(state_root)

    return state_root
