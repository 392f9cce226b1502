"""Shared agentgraph configuration utilities.

Centralises reading of ~/.agentgraph/configuration.json so that executors,
checkpoint stores and logging setup share one implementation. The file is
optional; every helper falls back to a built-in default.

Example file:

    {
      "execution": {"max_steps": 50, "node_timeout_seconds": 30,
                    "cancellation_policy": "abandon", "retry_backoff_seconds": 0.5},
      "checkpoints": {"storage_path": "/var/lib/agentgraph/checkpoints"},
      "logging": {"level": "DEBUG", "format": "json"}
    }
"""

import json
import logging
import os
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

CONFIG_ENV_VAR = "AGENTGRAPH_CONFIG"
DEFAULT_CONFIG_FILE = Path.home() / ".agentgraph" / "configuration.json"

DEFAULT_MAX_STEPS = 100
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0


class CancellationPolicy(StrEnum):
    """What happens to in-flight node invocations when a run is cancelled."""

    FINISH = "finish"  # Let them complete and merge their step
    ABANDON = "abandon"  # Cancel the tasks immediately


def get_config_path() -> Path:
    """Return the configuration file path, honouring AGENTGRAPH_CONFIG."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_FILE


def get_agentgraph_config() -> dict[str, Any]:
    """Load configuration from the config file, or {} if missing or invalid."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _section(name: str) -> dict[str, Any]:
    section = get_agentgraph_config().get(name, {})
    return section if isinstance(section, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_max_steps() -> int:
    """Return the configured step ceiling, falling back to DEFAULT_MAX_STEPS."""
    return int(_section("execution").get("max_steps", DEFAULT_MAX_STEPS))


def get_node_timeout() -> float | None:
    """Return the default per-node timeout in seconds, or None for no timeout."""
    value = _section("execution").get("node_timeout_seconds")
    return float(value) if value is not None else None


def get_cancellation_policy() -> CancellationPolicy:
    """Return the configured cancellation policy (default: finish)."""
    value = _section("execution").get("cancellation_policy", CancellationPolicy.FINISH)
    try:
        return CancellationPolicy(value)
    except ValueError:
        logger.warning(f"Unknown cancellation_policy {value!r}, using 'finish'")
        return CancellationPolicy.FINISH


def get_retry_backoff() -> float:
    """Return the base retry backoff in seconds."""
    return float(_section("execution").get("retry_backoff_seconds", DEFAULT_RETRY_BACKOFF_SECONDS))


def get_checkpoint_storage_path() -> Path:
    """Return the default directory for file checkpoints."""
    value = _section("checkpoints").get("storage_path")
    if value:
        return Path(value).expanduser()
    return Path.home() / ".agentgraph" / "checkpoints"


def get_log_level() -> str:
    return str(_section("logging").get("level", "INFO"))


def get_log_format() -> str:
    return str(_section("logging").get("format", "auto"))


# ---------------------------------------------------------------------------
# ExecutorConfig
# ---------------------------------------------------------------------------


@dataclass
class ExecutorConfig:
    """Executor limits and policies loaded from the configuration file."""

    max_steps: int = field(default_factory=get_max_steps)
    node_timeout_seconds: float | None = field(default_factory=get_node_timeout)
    cancellation_policy: CancellationPolicy = field(default_factory=get_cancellation_policy)
    retry_backoff_seconds: float = field(default_factory=get_retry_backoff)

    def __post_init__(self) -> None:
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {self.max_steps}")
        self.cancellation_policy = CancellationPolicy(self.cancellation_policy)
