"""Cluster type detection.

A curator's name and namespace point at the cluster it curates. A
HostedCluster with that name wins, then a Hive ClusterDeployment; a
cluster with neither is treated as an imported cluster, which only
supports upgrade and hook-only curations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kubernetes import client

from curator.crd.external import CLUSTER_DEPLOYMENT, HOSTED_CLUSTER, NODE_POOL, ResourceRef
from curator.kubernetes.clients import is_not_found
from curator.observability._logging import get_logger


log = get_logger(__name__)


class ClusterType(str, Enum):
    """How the curated cluster is managed."""

    HYPERSHIFT = "hypershift"
    HIVE = "hive"
    IMPORTED = "imported"


@dataclass
class ClusterTarget:
    """The resolved cluster a curation acts on."""

    cluster_type: ClusterType
    name: str
    namespace: str
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def resource(self) -> ResourceRef | None:
        """API coordinates of the cluster's backing resource."""
        if self.cluster_type == ClusterType.HYPERSHIFT:
            return HOSTED_CLUSTER
        if self.cluster_type == ClusterType.HIVE:
            return CLUSTER_DEPLOYMENT
        return None

    def hook_vars(self) -> dict[str, Any]:
        """Cluster description passed to Ansible hooks as extra_vars."""
        if self.cluster_type == ClusterType.IMPORTED:
            return {}
        key = "hosted_cluster" if self.cluster_type == ClusterType.HYPERSHIFT else "cluster_deployment"
        return {
            key: {
                "name": self.name,
                "namespace": self.namespace,
                "spec": self.body.get("spec") or {},
            }
        }


def _get_or_none(
    custom_api: client.CustomObjectsApi, ref: ResourceRef, name: str, namespace: str
) -> dict[str, Any] | None:
    try:
        return custom_api.get_namespaced_custom_object(
            group=ref.group,
            version=ref.version,
            namespace=namespace,
            plural=ref.plural,
            name=name,
        )
    except client.ApiException as e:
        if is_not_found(e):
            return None
        raise


def resolve_cluster(
    custom_api: client.CustomObjectsApi, name: str, namespace: str
) -> ClusterTarget:
    """Detect which kind of cluster a curator points at."""
    hosted = _get_or_none(custom_api, HOSTED_CLUSTER, name, namespace)
    if hosted is not None:
        target = ClusterTarget(ClusterType.HYPERSHIFT, name, namespace, hosted)
    else:
        deployment = _get_or_none(custom_api, CLUSTER_DEPLOYMENT, name, namespace)
        if deployment is not None:
            target = ClusterTarget(ClusterType.HIVE, name, namespace, deployment)
        else:
            target = ClusterTarget(ClusterType.IMPORTED, name, namespace)

    log.info(
        "cluster_resolved",
        cluster=name,
        namespace=namespace,
        cluster_type=target.cluster_type.value,
    )
    return target


def list_node_pools(
    custom_api: client.CustomObjectsApi, cluster_name: str, namespace: str
) -> list[dict[str, Any]]:
    """NodePools that belong to a hosted cluster."""
    result = custom_api.list_namespaced_custom_object(
        group=NODE_POOL.group,
        version=NODE_POOL.version,
        namespace=namespace,
        plural=NODE_POOL.plural,
    )
    return [
        item
        for item in result.get("items", [])
        if (item.get("spec") or {}).get("clusterName") == cluster_name
    ]


__all__ = [
    "ClusterTarget",
    "ClusterType",
    "list_node_pools",
    "resolve_cluster",
]
