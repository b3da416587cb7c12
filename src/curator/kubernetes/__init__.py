"""Kubernetes client access for the curator."""

from curator.kubernetes.clients import KubeClients, get_kube_clients, is_not_found

__all__ = ["KubeClients", "get_kube_clients", "is_not_found"]
