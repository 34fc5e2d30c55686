"""
bootstrap/config.py - Orchestrator configuration

Provides configuration loading from files, environment variables, and defaults.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Optional
from pathlib import Path
import os
import json
import logging

logger = logging.getLogger("bootstrap.config")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OrchestratorConfig:
    """Orchestrator behaviour."""

    # Livelock guard for a single drain of the update queue
    max_updates_per_drain: int = 10000
    # Drop store slots of released definitions (unless shared)
    purge_store_on_release: bool = False
    # Pass fetch failures to the event loop's exception handler
    surface_failures_to_loop: bool = True
    event_history: int = 100
    max_failures: int = 1000

    def __post_init__(self) -> None:
        if self.max_updates_per_drain < 1:
            raise ValueError(
                f"max_updates_per_drain must be positive, got {self.max_updates_per_drain}"
            )

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        return cls(
            max_updates_per_drain=_env_int("FETCHGRAPH_MAX_UPDATES", 10000),
            purge_store_on_release=_env_bool("FETCHGRAPH_PURGE_STORE", False),
            surface_failures_to_loop=_env_bool("FETCHGRAPH_SURFACE_FAILURES", True),
            event_history=_env_int("FETCHGRAPH_EVENT_HISTORY", 100),
            max_failures=_env_int("FETCHGRAPH_MAX_FAILURES", 1000),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            level=os.getenv("FETCHGRAPH_LOG_LEVEL", "INFO"),
            format=os.getenv("FETCHGRAPH_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=os.getenv("FETCHGRAPH_LOG_FILE"),
            json_logs=_env_bool("FETCHGRAPH_JSON_LOGS", False),
        )


@dataclass
class FetchGraphConfig:
    """Root configuration."""

    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "FetchGraphConfig":
        """Create configuration from environment variables."""
        return cls(
            orchestrator=OrchestratorConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, filepath: str) -> "FetchGraphConfig":
        """Load configuration from JSON file."""
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Config file not found: {filepath}, using environment")
            return cls.from_env()

        with open(path) as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "FetchGraphConfig":
        """Environment first, file values override."""
        config = cls.from_env()

        for section in ("orchestrator", "logging"):
            target = getattr(config, section)
            known = {f.name for f in fields(target)}
            overrides = {}
            for key, value in data.get(section, {}).items():
                if key in known:
                    overrides[key] = value
                else:
                    logger.warning(f"Ignoring unknown config key {section}.{key}")
            # replace() reruns __post_init__ validation
            setattr(config, section, replace(target, **overrides))

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Serialize config to dictionary."""
        return {
            "orchestrator": asdict(self.orchestrator),
            "logging": asdict(self.logging),
        }


# Global config instance
_config: Optional[FetchGraphConfig] = None


def load_config(filepath: Optional[str] = None) -> FetchGraphConfig:
    """
    Load configuration from a file or the environment.

    Without a filepath, ./fetchgraph.json is used when present.
    """
    global _config

    if filepath:
        _config = FetchGraphConfig.from_file(filepath)
    elif Path("./fetchgraph.json").exists():
        _config = FetchGraphConfig.from_file("./fetchgraph.json")
    else:
        _config = FetchGraphConfig.from_env()

    return _config


def get_config() -> FetchGraphConfig:
    """Get the loaded configuration, loading it on first use."""
    if _config is None:
        return load_config()
    return _config
