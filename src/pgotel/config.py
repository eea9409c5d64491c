"""
Query hook configuration.

Options can be set in code or read from environment variables:
    PGOTEL_CALLER: Attach the calling frame to spans (default: false)
    PGOTEL_ALLOW_METRIC: Record latency even without an active trace (default: false)
    PGOTEL_CALLER_PACKAGE: Module path treated as library code (default: pgotel)
"""

import os
from dataclasses import dataclass

DEFAULT_CALLER_PACKAGE = "pgotel"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class HookConfig:
    """
    Options recognised by QueryTelemetryHook.

    Attributes:
        caller: Resolve the application frame that issued each query
        allow_metric: Record query latency even when no span is recording
        caller_package: Module path fragment skipped when resolving the caller
    """

    caller: bool = False
    allow_metric: bool = False
    caller_package: str = DEFAULT_CALLER_PACKAGE

    @classmethod
    def from_env(cls) -> "HookConfig":
        """Build a configuration from PGOTEL_* environment variables."""
        return cls(
            caller=_env_flag("PGOTEL_CALLER"),
            allow_metric=_env_flag("PGOTEL_ALLOW_METRIC"),
            caller_package=os.getenv("PGOTEL_CALLER_PACKAGE") or DEFAULT_CALLER_PACKAGE,
        )
