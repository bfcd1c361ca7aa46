import os
import logging
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_BASE_URL = "https://api.customer.io/v1"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the proxy process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class ProxyConfig:
    """Settings for the segment members proxy, built once at startup"""
    customer_io_api_key: Optional[str] = None
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 30.0  # per upstream call, not per aggregation
    aggregate_page_delay: float = 1.0  # seconds
    cursor_walk_delay: float = 0.5  # seconds
    default_limit: int = 100
    default_per_page: int = 50
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ProxyConfig":
        """
        Build the configuration from the process environment.

        A .env file is loaded first (without overriding variables that are
        already set), then every setting is read with os.getenv.

        Raises:
            ValueError: if a numeric variable cannot be parsed
        """
        load_dotenv(dotenv_path)

        return cls(
            customer_io_api_key=os.getenv("CUSTOMER_IO_API_KEY") or None,
            api_key=os.getenv("API_KEY") or None,
            base_url=os.getenv("CUSTOMER_IO_BASE_URL", DEFAULT_BASE_URL).rstrip('/'),
            request_timeout=_get_float("CUSTOMER_IO_TIMEOUT", 30.0),
            aggregate_page_delay=_get_float("AGGREGATE_PAGE_DELAY", 1.0),
            cursor_walk_delay=_get_float("CURSOR_WALK_DELAY", 0.5),
            default_limit=_get_int("DEFAULT_LIMIT", 100),
            default_per_page=_get_int("DEFAULT_PER_PAGE", 50),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            host=os.getenv("APP_HOST", "0.0.0.0"),
            port=_get_int("APP_PORT", 5000),
        )
