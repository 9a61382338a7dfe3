"""
Runtime settings read from the environment (and ``.env``)
"""
import logging
import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Process-wide configuration"""
    heartbeat_seconds: float = 5.0
    service_timeout: float = 30.0
    conditional_branching: bool = True
    database_url: str = "sqlite+aiosqlite:///./autoflow.db"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        return cls(
            heartbeat_seconds=float(os.getenv("AUTOFLOW_HEARTBEAT_SECONDS", "5")),
            service_timeout=float(os.getenv("AUTOFLOW_SERVICE_TIMEOUT", "30")),
            conditional_branching=_flag("AUTOFLOW_CONDITIONAL_BRANCHING", "true"),
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            api_host=os.getenv("API_HOST", cls.api_host),
            api_port=int(os.getenv("API_PORT", "8000")),
            api_reload=_flag("API_RELOAD", "false"),
            log_level=os.getenv("AUTOFLOW_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
