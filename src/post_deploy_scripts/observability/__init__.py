"""
Observability Module.

Structured logging for the post deploy script engine.
"""

from post_deploy_scripts.observability.logging import (
    censor_sensitive_data,
    configure_logging,
    resolve_level,
)

__all__ = [
    "censor_sensitive_data",
    "configure_logging",
    "resolve_level",
]
