"""
src/config.py
==============
Runtime Settings — Audit Agent

Responsibility:
    - Read every runtime identifier from the environment (.env is loaded
      by main.py before this module is used)
    - Apply defaults for optional values
    - FAIL FAST with ConfigError when a required identifier is missing

This module does NOT:
    - Build Google credentials or API clients
    - Validate that remote ids actually exist
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger("auditagent.config")


class ConfigError(RuntimeError):
    """Raised when required startup configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_SHEET_NAME = "Crio_AI_Audit_Log"
DEFAULT_PROMPT_PARENT_DIR = "Prompt/General"
DEFAULT_KNOWLEDGE_BASE_ROOT = "Knowledge_Base"
DEFAULT_POLICY_FILE_PATH = "SHAPE_Policy/SHAPE_Policy_2025_Sheet_Link.txt"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_PROMPT_TEMPLATE = "config/audit_agent_prompt.json"

_REQUIRED_VARS: tuple[str, ...] = (
    "GOOGLE_SERVICE_KEY_PATH",
    "GOOGLE_SHEETS_ID",
    "DRIVE_ROOT_FOLDER_ID",
)


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_number(name: str, default: float, cast=float):
    raw = _env(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of the process configuration."""

    service_key_path: str
    sheets_id: str
    drive_root_folder_id: str
    sheet_name: str = DEFAULT_SHEET_NAME
    prompt_parent_dir: str = DEFAULT_PROMPT_PARENT_DIR
    knowledge_base_root: str = DEFAULT_KNOWLEDGE_BASE_ROOT
    policy_file_path: str = DEFAULT_POLICY_FILE_PATH
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_GEMINI_MODEL
    bland_api_key: str = ""
    audit_api_key: str | None = None
    prompt_template_path: str = DEFAULT_PROMPT_TEMPLATE
    cache_dir: str = ".cache"
    refresh_period_seconds: float = 24 * 60 * 60
    refresh_backoff_seconds: float = 5 * 60
    max_tool_iterations: int = 25
    rate_limit_per_minute: int = 30
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build Settings from environment variables.

        Raises:
            ConfigError: If a required variable is missing, the service
                key file does not exist, or a numeric value is malformed.
        """
        missing = [name for name in _REQUIRED_VARS if not _env(name)]
        if missing:
            raise ConfigError(
                "Missing required environment variable(s): " + ", ".join(missing)
            )

        key_path = _env("GOOGLE_SERVICE_KEY_PATH")
        if not os.path.isfile(key_path):
            raise ConfigError(f"Service account key missing: {key_path}")

        settings = cls(
            service_key_path=key_path,
            sheets_id=_env("GOOGLE_SHEETS_ID"),
            drive_root_folder_id=_env("DRIVE_ROOT_FOLDER_ID"),
            sheet_name=_env("AUDIT_SHEET_NAME", DEFAULT_SHEET_NAME),
            prompt_parent_dir=_env("PROMPT_PARENT_DIR", DEFAULT_PROMPT_PARENT_DIR),
            knowledge_base_root=_env("KNOWLEDGE_BASE_ROOT", DEFAULT_KNOWLEDGE_BASE_ROOT),
            policy_file_path=_env("POLICY_FILE_PATH", DEFAULT_POLICY_FILE_PATH),
            gemini_api_key=_env("GEMINI_API_KEY"),
            gemini_model=_env("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            bland_api_key=_env("BLAND_API_KEY"),
            audit_api_key=_env("AUDIT_API_KEY") or None,
            prompt_template_path=_env("AUDIT_PROMPT_TEMPLATE", DEFAULT_PROMPT_TEMPLATE),
            cache_dir=_env("CACHE_DIR", ".cache"),
            refresh_period_seconds=_env_number("CACHE_REFRESH_HOURS", 24.0) * 3600,
            refresh_backoff_seconds=_env_number("CACHE_REFRESH_BACKOFF_MINUTES", 5.0) * 60,
            max_tool_iterations=_env_number("MAX_TOOL_ITERATIONS", 25, int),
            rate_limit_per_minute=_env_number("RATE_LIMIT_PER_MINUTE", 30, int),
            port=_env_number("PORT", 3000, int),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )

        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY is not set — audits will fail.")
        if not settings.bland_api_key:
            logger.warning("BLAND_API_KEY is not set — transcript fetches will fail.")

        return settings
