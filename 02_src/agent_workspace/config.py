"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "agent_workspace.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_AGENTS_PATH = PROJECT_ROOT / "agents.config.json"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]

BROADCAST = "all"


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_agents_path(env_value: PathLike | None = None) -> Path:
    """Resolve AGENTS_CONFIG to an absolute path."""
    if not env_value:
        return DEFAULT_AGENTS_PATH

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class RelaySettings:
    """Tunables for the chat relay and the bridge queue."""

    bridge_poll_interval: float = 0.5
    bridge_timeout: float = 120.0
    bridge_replay_delay: float = 0.02
    bridge_secret: str = ""
    overview_agent_id: str = "overview"
    default_user_id: str = "local"
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:5174"]
    )

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """Build settings from environment variables."""
        origins = os.getenv("CORS_ORIGINS")
        kwargs = {}
        if origins:
            kwargs["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        return cls(
            bridge_poll_interval=_env_float("BRIDGE_POLL_INTERVAL", 0.5),
            bridge_timeout=_env_float("BRIDGE_TIMEOUT", 120.0),
            bridge_replay_delay=_env_float("BRIDGE_REPLAY_DELAY", 0.02),
            bridge_secret=os.getenv("BRIDGE_SECRET", ""),
            overview_agent_id=os.getenv("OVERVIEW_AGENT_ID", "overview"),
            default_user_id=os.getenv("DEFAULT_USER_ID", "local"),
            **kwargs,
        )
