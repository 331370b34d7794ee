"""Environment-driven settings shared by the API and CLI entry points."""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv  # type: ignore

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    llm_api_url: str = "https://api.openai.com/v1"
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0
    db_path: str | None = None
    read_only_mode: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load ``.env`` (if present) and read settings from the environment."""
        load_dotenv()
        return cls(
            llm_api_url=os.environ.get("LLM_API_URL", cls.llm_api_url),
            llm_api_key=os.environ.get("LLM_API_KEY") or os.environ.get("OPENAI_API_KEY", ""),
            llm_model=os.environ.get("LLM_MODEL", cls.llm_model),
            llm_timeout_seconds=float(os.environ.get("LLM_TIMEOUT_SECONDS", cls.llm_timeout_seconds)),
            db_path=os.environ.get("DB_PATH") or None,
            read_only_mode=_env_bool("READ_ONLY_MODE", cls.read_only_mode),
            api_host=os.environ.get("API_HOST", cls.api_host),
            api_port=int(os.environ.get("API_PORT", cls.api_port)),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
