"""
CacheBox — Observability

Structured logging setup for the cachebox logger hierarchy.
"""

from .logs import JSONFormatter, configure_logging, setup_logging

__all__ = [
    "JSONFormatter",
    "configure_logging",
    "setup_logging",
]
