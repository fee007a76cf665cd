"""Shared constants for the phase runner."""

STATE_DIR_NAME = ".orion"
CONFIG_FILE = "config.yaml"
SCHEMA_VERSION = 1

DEFAULT_MIN_PHASE = 1
DEFAULT_MAX_PHASE = 99
DEFAULT_FINAL_PHASE = 7

DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BASE_DELAY_SECONDS = 5.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_INTER_TASK_PAUSE_SECONDS = 0.8
DEFAULT_MAX_TOKENS = 1024

DEFAULT_ANTHROPIC_MODEL = "claude-haiku-4-5"
DEFAULT_OPENAI_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OPENAI_MODEL = "openai-codex/gpt-5.3-codex"
DEFAULT_LLM_TIMEOUT_SECONDS = 120.0
OPENAI_TEMPERATURE = 0.4

DEFAULT_HEARTBEAT_SECONDS = 3.0

WORKING_NOTES = "Agent is working on this task..."
OUTPUT_PREVIEW_CHARS = 150
AUDIT_DETAILS_CHARS = 500
