"""
bootstrap/ - Configuration & Logging Setup
"""

from .config import (
    OrchestratorConfig,
    LoggingConfig,
    FetchGraphConfig,
    load_config,
    get_config,
)
from .log_setup import (
    JSONFormatter,
    setup_logging,
    setup_logging_from_config,
)

__all__ = [
    "OrchestratorConfig",
    "LoggingConfig",
    "FetchGraphConfig",
    "load_config",
    "get_config",
    "JSONFormatter",
    "setup_logging",
    "setup_logging_from_config",
]
