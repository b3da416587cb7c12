"""Kubernetes API client bootstrap.

Loads in-cluster configuration when available and falls back to the
local kubeconfig, then hands out one shared set of API clients.
"""

from dataclasses import dataclass
from functools import lru_cache

from kubernetes import client
from kubernetes import config as k8s_config

from curator.config.settings import settings
from curator.observability._logging import get_logger


log = get_logger(__name__)

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


@dataclass(frozen=True)
class KubeClients:
    """API clients used by handlers and curation steps."""

    batch: client.BatchV1Api
    custom: client.CustomObjectsApi


def load_kube_config() -> None:
    """Load in-cluster config, falling back to kubeconfig.

    With CURATOR_K8S_IN_CLUSTER set there is no fallback.
    """
    try:
        k8s_config.load_incluster_config()
        log.debug("kube_config_loaded", source="in_cluster")
    except k8s_config.ConfigException:
        if settings.kubernetes.in_cluster:
            raise
        k8s_config.load_kube_config(
            config_file=settings.kubernetes.kubeconfig,
            context=settings.kubernetes.context,
        )
        log.debug("kube_config_loaded", source="kubeconfig")


@lru_cache
def get_kube_clients() -> KubeClients:
    """Get the shared Kubernetes API clients."""
    load_kube_config()
    return KubeClients(
        batch=client.BatchV1Api(),
        custom=client.CustomObjectsApi(),
    )


def is_not_found(error: client.ApiException) -> bool:
    """Whether an API error is a 404."""
    return error.status == HTTP_NOT_FOUND


__all__ = [
    "HTTP_CONFLICT",
    "HTTP_NOT_FOUND",
    "KubeClients",
    "get_kube_clients",
    "is_not_found",
    "load_kube_config",
]
