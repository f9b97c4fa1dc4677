import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    time_limit: float = 2.0
    memory_limit: int = 64 * 1024 * 1024
    max_stack: int = 1024 * 1024
    max_events: int = 10000
    cors_origins: list = ["*"]
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    log_level: str = "INFO"


def _env_number(name, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %r", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r, using %r", name, raw, default)
        return default
    return value


def load_settings() -> Settings:
    """Read the tracer configuration from the environment (and .env)."""
    origins = os.getenv("TRACER_CORS_ORIGINS", "*")
    return Settings(
        time_limit=_env_number("TRACER_TIME_LIMIT", 2.0, float),
        memory_limit=_env_number("TRACER_MEMORY_LIMIT", 64 * 1024 * 1024, int),
        max_stack=_env_number("TRACER_MAX_STACK", 1024 * 1024, int),
        max_events=_env_number("TRACER_MAX_EVENTS", 10000, int),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()] or ["*"],
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
