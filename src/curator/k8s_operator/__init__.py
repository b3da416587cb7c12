"""Curator Kubernetes operator.

Watches ClusterCurator resources and runs curator Jobs for them.
"""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    """Lazy-load handler modules so importing the package does not register them."""
    if name == "handlers":
        return import_module("curator.k8s_operator.handlers")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["handlers"]
