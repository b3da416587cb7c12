"""Curator observability package.

Structured logging and Prometheus metrics for the operator and curator Jobs.
"""

from curator.observability._logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
