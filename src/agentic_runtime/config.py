# config.py
# Runtime settings, read once from the environment (and a .env file if present).
# Only run.py reads Settings; the engine takes plain constructor arguments.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()

_TRUE = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    parse_failure_limit: int = Field(default=2, ge=1)
    attempt_timeout: float | None = Field(default=None, gt=0, description="Seconds per attempt.")
    model: str = "qwen3:8b"
    base_url: str = "http://localhost:11434/v1"
    api_key: str = "ollama"
    command_timeout: float = Field(default=60, gt=0)
    workspace: str = "."
    dry_run: bool = False
    confirm_steps: bool = False
    analyze_errors: bool = False


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE


def load_settings() -> Settings:
    """Build Settings from AGENT_* environment variables; unset ones keep their defaults."""
    values: dict = {
        "max_attempts": os.getenv("AGENT_MAX_ATTEMPTS"),
        "parse_failure_limit": os.getenv("AGENT_PARSE_FAILURE_LIMIT"),
        "attempt_timeout": os.getenv("AGENT_ATTEMPT_TIMEOUT"),
        "model": os.getenv("AGENT_MODEL"),
        "base_url": os.getenv("AGENT_BASE_URL"),
        "api_key": os.getenv("AGENT_API_KEY") or os.getenv("OPENAI_API_KEY"),
        "command_timeout": os.getenv("AGENT_COMMAND_TIMEOUT"),
        "workspace": os.getenv("AGENT_WORKSPACE"),
    }
    values = {key: value for key, value in values.items() if value}
    return Settings(
        **values,
        dry_run=_flag("AGENT_DRY_RUN"),
        confirm_steps=_flag("AGENT_CONFIRM_STEPS"),
        analyze_errors=_flag("AGENT_ANALYZE_ERRORS"),
    )
