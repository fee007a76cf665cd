"""Load runner settings from `.orion/config.yaml` and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from loguru import logger

from .constants import (
    CONFIG_FILE,
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_FINAL_PHASE,
    DEFAULT_HEARTBEAT_SECONDS,
    DEFAULT_INTER_TASK_PAUSE_SECONDS,
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_PHASE,
    DEFAULT_MAX_TOKENS,
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_OPENAI_MODEL,
    STATE_DIR_NAME,
)

VALID_PREFERENCES = {"auto", "anthropic", "openai"}


def _load_yaml_with_error(path: Path) -> tuple[dict[str, Any], str | None]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        return {}, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except yaml.YAMLError as exc:
        return {}, f"{path.name}: YAMLError: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None


def load_runner_config(data_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional runner config file.

    Args:
        data_dir: Directory that holds the `.orion` state folder.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = data_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    if not path.exists():
        return {}, None
    return _load_yaml_with_error(path)


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _block(config: dict[str, Any], name: str) -> dict[str, Any]:
    raw = _get_nested(config, name)
    return raw if isinstance(raw, dict) else {}


def _as_float(value: Any, default: float, *, minimum: float = 0.0) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= minimum else default


def _as_int(value: Any, default: int, *, minimum: int = 1) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= minimum else default


@dataclass
class LLMSettings:
    preferred: str = "auto"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    openai_api_key: Optional[str] = None
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    openai_model: str = DEFAULT_OPENAI_MODEL
    timeout_seconds: float = DEFAULT_LLM_TIMEOUT_SECONDS

    @property
    def has_anthropic(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def has_openai(self) -> bool:
        return bool(self.openai_api_key)


@dataclass
class ExecutionSettings:
    final_phase: int = DEFAULT_FINAL_PHASE
    default_max_phase: int = DEFAULT_MAX_PHASE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    inter_task_pause_seconds: float = DEFAULT_INTER_TASK_PAUSE_SECONDS
    max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass
class RunnerSettings:
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    llm: LLMSettings = field(default_factory=LLMSettings)
    heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        env: Optional[Mapping[str, str]] = None,
    ) -> "RunnerSettings":
        """Resolve settings from a parsed config mapping plus environment overrides."""
        env = os.environ if env is None else env
        execution_cfg = _block(config, "execution")
        llm_cfg = _block(config, "llm")
        server_cfg = _block(config, "server")

        execution = ExecutionSettings(
            final_phase=_as_int(execution_cfg.get("final_phase"), DEFAULT_FINAL_PHASE),
            default_max_phase=_as_int(execution_cfg.get("default_max_phase"), DEFAULT_MAX_PHASE),
            max_attempts=_as_int(execution_cfg.get("max_attempts"), DEFAULT_MAX_ATTEMPTS),
            base_delay_seconds=_as_float(execution_cfg.get("base_delay_seconds"), DEFAULT_BASE_DELAY_SECONDS),
            backoff_multiplier=_as_float(execution_cfg.get("backoff_multiplier"), DEFAULT_BACKOFF_MULTIPLIER, minimum=1.0),
            inter_task_pause_seconds=_as_float(
                execution_cfg.get("inter_task_pause_seconds"), DEFAULT_INTER_TASK_PAUSE_SECONDS
            ),
            max_tokens=_as_int(execution_cfg.get("max_tokens"), DEFAULT_MAX_TOKENS),
        )

        preferred = str(llm_cfg.get("preferred") or "auto").strip().lower()
        if preferred not in VALID_PREFERENCES:
            preferred = "auto"
        llm = LLMSettings(
            preferred=preferred,
            anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
            anthropic_model=str(llm_cfg.get("anthropic_model") or DEFAULT_ANTHROPIC_MODEL),
            openai_api_key=env.get("OPENAI_API_KEY") or env.get("OPENROUTER_API_KEY") or None,
            openai_base_url=str(
                env.get("OPENAI_BASE_URL") or llm_cfg.get("openai_base_url") or DEFAULT_OPENAI_BASE_URL
            ).rstrip("/"),
            openai_model=str(env.get("OPENAI_MODEL") or llm_cfg.get("openai_model") or DEFAULT_OPENAI_MODEL),
            timeout_seconds=_as_float(llm_cfg.get("timeout_seconds"), DEFAULT_LLM_TIMEOUT_SECONDS, minimum=1.0),
        )

        return cls(
            execution=execution,
            llm=llm,
            heartbeat_seconds=_as_float(server_cfg.get("heartbeat_seconds"), DEFAULT_HEARTBEAT_SECONDS, minimum=0.01),
            log_level=str(env.get("ORION_LOG_LEVEL") or config.get("log_level") or "INFO").upper(),
        )


def load_settings(data_dir: Path, env: Optional[Mapping[str, str]] = None) -> RunnerSettings:
    """Load `RunnerSettings` for a data directory.

    A config file that fails to parse is reported and ignored; defaults and
    environment overrides still apply.
    """
    config, err = load_runner_config(data_dir)
    if err:
        logger.warning("Ignoring unreadable runner config: {}", err)
    return RunnerSettings.from_config(config, env)
