import os
import logging
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5001
DEFAULT_HOST = "0.0.0.0"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _split_env_list(name: str) -> List[str]:
    values = os.getenv(name, "").split(",")
    return [value.strip() for value in values if value.strip()]


def get_port() -> int:
    """Listening port, defaults to 5001 when PORT is unset or empty"""
    raw = os.getenv("PORT", "").strip()
    if not raw:
        return DEFAULT_PORT
    return int(raw)


def get_host() -> str:
    return os.getenv("HOST", "").strip() or DEFAULT_HOST


def get_environment() -> str:
    return os.getenv("ENVIRONMENT", "development")


def is_production() -> bool:
    return get_environment() == "production"


def get_allowed_origins() -> List[str]:
    """Get allowed CORS origins, any origin when ALLOWED_ORIGINS is unset"""
    return _split_env_list("ALLOWED_ORIGINS") or ["*"]


def get_trusted_hosts() -> List[str]:
    return _split_env_list("TRUSTED_HOSTS")


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def validate_environment():
    """Validate that the configured values are usable"""
    problems = []

    try:
        port = get_port()
        if not 0 < port < 65536:
            problems.append(f"PORT out of range: {port}")
    except ValueError:
        problems.append(f"PORT is not an integer: {os.getenv('PORT')!r}")

    if get_log_level() not in LOG_LEVELS:
        problems.append(f"Unknown LOG_LEVEL: {os.getenv('LOG_LEVEL')!r}")

    if problems:
        raise RuntimeError(f"Invalid environment configuration: {'; '.join(problems)}")


def configure_logging():
    level = get_log_level()
    if level not in LOG_LEVELS:
        logger.warning(f"Unknown LOG_LEVEL {level!r}, falling back to INFO")
        level = "INFO"
    logging.basicConfig(level=level, format=LOG_FORMAT)
