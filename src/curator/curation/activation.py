"""Cluster activation and provisioning/import monitoring.

A Hive ClusterDeployment created with installAttemptsLimit 0 sits idle
until activated; a HostedCluster and its NodePools wait while
spec.pausedUntil is set. Activation releases whichever hold applies, then
the install is watched until the cluster is up and imported.
"""

from typing import Any

from kubernetes import client

from curator.config.settings import settings
from curator.crd.external import (
    CLUSTER_DEPLOYMENT,
    HIVE_PROVISION_STOPPED,
    HOSTED_CLUSTER,
    HOSTED_CLUSTER_AVAILABLE,
    MANAGED_CLUSTER,
    MANAGED_CLUSTER_AVAILABLE,
    NODE_POOL,
)
from curator.curation.clusters import ClusterTarget, ClusterType, list_node_pools
from curator.curation.plan import CurationStep
from curator.curation.polling import poll_until
from curator.errors import CurationError
from curator.kubernetes.clients import is_not_found
from curator.observability._logging import get_logger


log = get_logger(__name__)

STEP = CurationStep.ACTIVATE_AND_MONITOR.value


def condition_is_true(obj: dict[str, Any], condition_type: str) -> tuple[bool, str | None]:
    """Whether a status condition is True, plus its message."""
    for condition in (obj.get("status") or {}).get("conditions") or []:
        if condition.get("type") == condition_type:
            return str(condition.get("status")) == "True", condition.get("message")
    return False, None


class Activator:
    """Activates paused clusters and waits for provisioning and import."""

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

    async def activate(self, target: ClusterTarget) -> list[str]:
        """Release the install hold on a cluster.

        Returns:
            Resources that were patched (kind/name)
        """
        if target.cluster_type == ClusterType.HIVE:
            return self._activate_cluster_deployment(target)
        if target.cluster_type == ClusterType.HYPERSHIFT:
            return self._unpause_hosted_cluster(target)
        raise CurationError(
            code="unsupported_cluster",
            step=STEP,
            message=(
                f"No HostedCluster or ClusterDeployment named {target.name} "
                f"in namespace {target.namespace}"
            ),
        )

    def _activate_cluster_deployment(self, target: ClusterTarget) -> list[str]:
        spec = target.body.get("spec") or {}
        if spec.get("installAttemptsLimit") != 0:
            log.info(
                "cluster_deployment_already_active",
                cluster=target.name,
                install_attempts_limit=spec.get("installAttemptsLimit"),
            )
            return []

        self.custom_api.patch_namespaced_custom_object(
            group=CLUSTER_DEPLOYMENT.group,
            version=CLUSTER_DEPLOYMENT.version,
            namespace=target.namespace,
            plural=CLUSTER_DEPLOYMENT.plural,
            name=target.name,
            body={"spec": {"installAttemptsLimit": 1}},
        )
        log.info("cluster_deployment_activated", cluster=target.name)
        return [f"ClusterDeployment/{target.name}"]

    def _unpause_hosted_cluster(self, target: ClusterTarget) -> list[str]:
        unpause = {"spec": {"pausedUntil": None}}
        patched: list[str] = []

        if "pausedUntil" in (target.body.get("spec") or {}):
            self.custom_api.patch_namespaced_custom_object(
                group=HOSTED_CLUSTER.group,
                version=HOSTED_CLUSTER.version,
                namespace=target.namespace,
                plural=HOSTED_CLUSTER.plural,
                name=target.name,
                body=unpause,
            )
            patched.append(f"HostedCluster/{target.name}")

        for pool in list_node_pools(self.custom_api, target.name, target.namespace):
            if "pausedUntil" not in (pool.get("spec") or {}):
                continue
            pool_name = pool["metadata"]["name"]
            self.custom_api.patch_namespaced_custom_object(
                group=NODE_POOL.group,
                version=NODE_POOL.version,
                namespace=target.namespace,
                plural=NODE_POOL.plural,
                name=pool_name,
                body=unpause,
            )
            patched.append(f"NodePool/{pool_name}")

        log.info("hosted_cluster_unpaused", cluster=target.name, patched=patched)
        return patched

    async def monitor_provision(
        self, target: ClusterTarget, timeout_seconds: float | None = None
    ) -> None:
        """Wait for the cluster install to complete."""
        if timeout_seconds is None:
            timeout_seconds = settings.curator.provision_timeout_minutes * 60
        ref = target.resource
        if ref is None:
            raise CurationError(
                code="unsupported_cluster",
                step=STEP,
                message=f"Cluster {target.name} has no provisioning resource to monitor",
            )

        async def check() -> bool | None:
            obj = self.custom_api.get_namespaced_custom_object(
                group=ref.group,
                version=ref.version,
                namespace=target.namespace,
                plural=ref.plural,
                name=target.name,
            )
            if target.cluster_type == ClusterType.HIVE:
                if (obj.get("spec") or {}).get("installed") is True:
                    return True
                stopped, message = condition_is_true(obj, HIVE_PROVISION_STOPPED)
                if stopped:
                    raise CurationError(
                        code="provision_failed",
                        step=STEP,
                        message=f"Provisioning stopped: {message or 'no reason given'}",
                        details={"clusterDeployment": target.name},
                    )
                return None

            available, _ = condition_is_true(obj, HOSTED_CLUSTER_AVAILABLE)
            return True if available else None

        await poll_until(
            check,
            timeout_seconds=timeout_seconds,
            interval_seconds=self.poll_interval_seconds,
            step=STEP,
            description=f"cluster {target.name} to finish provisioning",
        )
        log.info("cluster_provisioned", cluster=target.name, cluster_type=target.cluster_type.value)

    async def monitor_import(self, cluster_name: str, timeout_seconds: float | None = None) -> None:
        """Wait for the ManagedCluster to report available."""
        if timeout_seconds is None:
            timeout_seconds = settings.curator.import_timeout_minutes * 60
        step = CurationStep.MONITOR_IMPORT.value

        async def check() -> bool | None:
            try:
                managed = self.custom_api.get_cluster_custom_object(
                    group=MANAGED_CLUSTER.group,
                    version=MANAGED_CLUSTER.version,
                    plural=MANAGED_CLUSTER.plural,
                    name=cluster_name,
                )
            except client.ApiException as e:
                if is_not_found(e):
                    log.debug("managed_cluster_not_created_yet", cluster=cluster_name)
                    return None
                raise
            available, _ = condition_is_true(managed, MANAGED_CLUSTER_AVAILABLE)
            return True if available else None

        await poll_until(
            check,
            timeout_seconds=timeout_seconds,
            interval_seconds=self.poll_interval_seconds,
            step=step,
            description=f"ManagedCluster {cluster_name} to become available",
        )
        log.info("cluster_imported", cluster=cluster_name)


__all__ = ["Activator", "condition_is_true"]
