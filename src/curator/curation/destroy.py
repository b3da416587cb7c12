"""Cluster destroy.

Deleting the ClusterDeployment makes Hive deprovision the cluster;
deleting the NodePools and then the HostedCluster makes HyperShift tear
down the hosted control plane and its workers.
"""

from kubernetes import client

from curator.config.settings import settings
from curator.crd.external import NODE_POOL, ResourceRef
from curator.curation.clusters import ClusterTarget, ClusterType, list_node_pools
from curator.curation.plan import CurationStep
from curator.curation.polling import poll_until
from curator.errors import CurationError
from curator.kubernetes.clients import is_not_found
from curator.observability._logging import get_logger


log = get_logger(__name__)


class Destroyer:
    """Deletes cluster resources and waits until they are gone."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        poll_interval_seconds: float | None = None,
    ) -> None:
        self.custom_api = custom_api
        self.poll_interval_seconds = (
            settings.curator.poll_interval_seconds
            if poll_interval_seconds is None
            else poll_interval_seconds
        )

    def _delete(self, ref: ResourceRef, name: str, namespace: str) -> bool:
        """Delete a custom object; False when it was already gone."""
        try:
            self.custom_api.delete_namespaced_custom_object(
                group=ref.group,
                version=ref.version,
                namespace=namespace,
                plural=ref.plural,
                name=name,
            )
        except client.ApiException as e:
            if is_not_found(e):
                return False
            raise
        return True

    def _require_resource(self, target: ClusterTarget, step: str) -> ResourceRef:
        ref = target.resource
        if ref is None or target.cluster_type == ClusterType.IMPORTED:
            raise CurationError(
                code="unsupported_cluster",
                step=step,
                message=f"Cluster {target.name} was not provisioned by Hive or HyperShift",
            )
        return ref

    async def destroy(self, target: ClusterTarget) -> list[str]:
        """Request deletion of the cluster resources.

        Returns:
            Resources deleted (kind/name)
        """
        ref = self._require_resource(target, CurationStep.DESTROY_CLUSTER.value)
        deleted: list[str] = []

        if target.cluster_type == ClusterType.HYPERSHIFT:
            for pool in list_node_pools(self.custom_api, target.name, target.namespace):
                pool_name = pool["metadata"]["name"]
                if self._delete(NODE_POOL, pool_name, target.namespace):
                    deleted.append(f"NodePool/{pool_name}")

        kind = "HostedCluster" if target.cluster_type == ClusterType.HYPERSHIFT else "ClusterDeployment"
        if self._delete(ref, target.name, target.namespace):
            deleted.append(f"{kind}/{target.name}")

        log.info("cluster_destroy_requested", cluster=target.name, deleted=deleted)
        return deleted

    async def monitor(self, target: ClusterTarget, timeout_seconds: float | None = None) -> None:
        """Wait until the cluster resource no longer exists."""
        step = CurationStep.MONITOR_DESTROY.value
        ref = self._require_resource(target, step)
        if timeout_seconds is None:
            timeout_seconds = settings.curator.destroy_timeout_minutes * 60

        async def check() -> bool | None:
            try:
                self.custom_api.get_namespaced_custom_object(
                    group=ref.group,
                    version=ref.version,
                    namespace=target.namespace,
                    plural=ref.plural,
                    name=target.name,
                )
            except client.ApiException as e:
                if is_not_found(e):
                    return True
                raise
            return None

        await poll_until(
            check,
            timeout_seconds=timeout_seconds,
            interval_seconds=self.poll_interval_seconds,
            step=step,
            description=f"cluster {target.name} to be removed",
        )
        log.info("cluster_destroyed", cluster=target.name)


__all__ = ["Destroyer"]
