"""Cluster upgrades.

OpenShift clusters (Hive-provisioned or imported) are read through a
ManagedClusterView of their ClusterVersion and updated through a
ManagedClusterAction. Hosted clusters carry the same version status on the
HostedCluster itself and are upgraded by moving the release image of the
HostedCluster and its NodePools.

A requested version must be one of the cluster's recommended
availableUpdates. Versions that are only offered as conditionalUpdates are
accepted when the curator carries the allow-not-recommended annotation.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

from kubernetes import client

from curator.config.settings import settings
from curator.crd import ClusterCurator
from curator.crd.external import (
    HOSTED_CLUSTER,
    MANAGED_CLUSTER_ACTION,
    MANAGED_CLUSTER_VIEW,
    NODE_POOL,
)
from curator.curation.clusters import ClusterTarget, ClusterType, list_node_pools
from curator.curation.plan import CurationStep
from curator.curation.polling import poll_until
from curator.errors import CurationError
from curator.kubernetes.clients import HTTP_CONFLICT, is_not_found
from curator.observability._logging import get_logger


log = get_logger(__name__)

UPGRADE_STEP = CurationStep.UPGRADE_CLUSTER.value
MONITOR_STEP = CurationStep.MONITOR_UPGRADE.value

HISTORY_COMPLETED = "Completed"
ACTION_COMPLETED = "Completed"
ACTION_FAILED = "ActionFailed"
FORCE_UPGRADE_ANNOTATION = "hypershift.openshift.io/force-upgrade-to"

VIEW_UPDATE_INTERVAL_SECONDS = 10
VIEW_TIMEOUT_SECONDS = 300
ACTION_TIMEOUT_SECONDS = 300
CHANNEL_SETTLE_SECONDS = 300


@dataclass
class ReleaseTarget:
    """A validated upgrade target."""

    version: str
    image: str | None = None
    recommended: bool = True
    risks: list[str] = field(default_factory=list)


def select_update(
    version_status: dict[str, Any],
    version: str,
    allow_not_recommended: bool,
    step: str = UPGRADE_STEP,
) -> ReleaseTarget:
    """Validate a requested version against a cluster's update graph.

    Raises:
        CurationError: code "invalid_upgrade_version" if the version is not offered
    """
    for update in version_status.get("availableUpdates") or []:
        if update.get("version") == version:
            return ReleaseTarget(version=version, image=update.get("image"))

    if allow_not_recommended:
        for conditional in version_status.get("conditionalUpdates") or []:
            release = conditional.get("release") or {}
            if release.get("version") == version:
                risks = [r["name"] for r in conditional.get("risks") or [] if r.get("name")]
                return ReleaseTarget(
                    version=version,
                    image=release.get("image"),
                    recommended=False,
                    risks=risks,
                )

    raise CurationError(
        code="invalid_upgrade_version",
        step=step,
        message=f"Provided cluster version {version} is not a valid upgrade",
        details={
            "allowNotRecommended": allow_not_recommended,
            "availableUpdates": [
                u.get("version") for u in version_status.get("availableUpdates") or []
            ],
        },
    )


def current_version(version_status: dict[str, Any]) -> str | None:
    """Most recent version the cluster completed an update to."""
    for entry in version_status.get("history") or []:
        if entry.get("state") == HISTORY_COMPLETED:
            return entry.get("version")
    return None


def history_head(version_status: dict[str, Any]) -> dict[str, Any]:
    """The newest history entry (the update in flight, if any)."""
    history = version_status.get("history") or []
    return history[0] if history else {}


def upgrade_completed(version_status: dict[str, Any], version: str) -> bool:
    """Whether the newest history entry is a completed update to `version`."""
    head = history_head(version_status)
    return head.get("version") == version and head.get("state") == HISTORY_COMPLETED


class Upgrader:
    """Validates, applies and monitors cluster upgrades."""

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

    # ------------------------------------------------------------------
    # Reading cluster version status
    # ------------------------------------------------------------------

    def _ensure_view(self, target: ClusterTarget) -> None:
        body = {
            "apiVersion": f"{MANAGED_CLUSTER_VIEW.group}/{MANAGED_CLUSTER_VIEW.version}",
            "kind": "ManagedClusterView",
            "metadata": {"name": target.name, "namespace": target.namespace},
            "spec": {
                "scope": {
                    "resource": "clusterversion",
                    "name": "version",
                    "updateIntervalSeconds": VIEW_UPDATE_INTERVAL_SECONDS,
                }
            },
        }
        try:
            self.custom_api.create_namespaced_custom_object(
                group=MANAGED_CLUSTER_VIEW.group,
                version=MANAGED_CLUSTER_VIEW.version,
                namespace=target.namespace,
                plural=MANAGED_CLUSTER_VIEW.plural,
                body=body,
            )
            log.info("cluster_version_view_created", cluster=target.name)
        except client.ApiException as e:
            if e.status != HTTP_CONFLICT:
                raise

    def _fetch_version_status(
        self, target: ClusterTarget
    ) -> tuple[dict[str, Any], dict[str, Any]] | None:
        """(object, version status) or None while the view has no result."""
        if target.cluster_type == ClusterType.HYPERSHIFT:
            hosted = self.custom_api.get_namespaced_custom_object(
                group=HOSTED_CLUSTER.group,
                version=HOSTED_CLUSTER.version,
                namespace=target.namespace,
                plural=HOSTED_CLUSTER.plural,
                name=target.name,
            )
            return hosted, (hosted.get("status") or {}).get("version") or {}

        view = self.custom_api.get_namespaced_custom_object(
            group=MANAGED_CLUSTER_VIEW.group,
            version=MANAGED_CLUSTER_VIEW.version,
            namespace=target.namespace,
            plural=MANAGED_CLUSTER_VIEW.plural,
            name=target.name,
        )
        cluster_version = (view.get("status") or {}).get("result")
        if not cluster_version:
            return None
        return cluster_version, cluster_version.get("status") or {}

    async def read_version_status(
        self, target: ClusterTarget, step: str = UPGRADE_STEP
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Read a cluster's version object and its version status."""
        if target.cluster_type != ClusterType.HYPERSHIFT:
            self._ensure_view(target)

        async def check() -> tuple[dict[str, Any], dict[str, Any]] | None:
            return self._fetch_version_status(target)

        return await poll_until(
            check,
            timeout_seconds=VIEW_TIMEOUT_SECONDS,
            interval_seconds=self.poll_interval_seconds,
            step=step,
            description=f"ClusterVersion of {target.name}",
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def upgrade(self, curator: ClusterCurator, target: ClusterTarget) -> ReleaseTarget | None:
        """Start the upgrade (the intermediate hop first, when one is set).

        Returns:
            The release being rolled out, or None for channel-only changes
            and clusters already at the requested version
        """
        upgrade = curator.spec.upgrade
        if not (upgrade.desired_update or upgrade.channel or upgrade.upstream):
            raise CurationError(
                code="missing_upgrade_target",
                step=UPGRADE_STEP,
                message="upgrade requires desiredUpdate, channel or upstream",
            )

        obj, version_status = await self.read_version_status(target)
        version = upgrade.intermediate_update or upgrade.desired_update

        log.info(
            "upgrade_requested",
            cluster=target.name,
            cluster_type=target.cluster_type.value,
            from_version=current_version(version_status),
            to_version=version,
            channel=upgrade.channel,
        )

        current_channel = (obj.get("spec") or {}).get("channel")
        channel_changed = bool(upgrade.channel) and upgrade.channel != current_channel
        if channel_changed or upgrade.upstream:
            await self._apply(target, obj, None, upgrade.channel, upgrade.upstream, UPGRADE_STEP)
            obj, version_status = await self.read_version_status(target)

        if not version:
            log.info("channel_only_upgrade", cluster=target.name, channel=upgrade.channel)
            return None

        if history_head(version_status).get("version") == version:
            log.info("cluster_already_at_version", cluster=target.name, version=version)
            return None

        obj, release = await self._resolve_release(
            curator,
            target,
            version,
            UPGRADE_STEP,
            settle_seconds=CHANNEL_SETTLE_SECONDS if channel_changed else 0,
        )
        await self._apply(target, obj, release, upgrade.channel, upgrade.upstream, UPGRADE_STEP)
        return release

    async def monitor(self, curator: ClusterCurator, target: ClusterTarget) -> None:
        """Wait for the upgrade (and the hop after an intermediate update)."""
        upgrade = curator.spec.upgrade
        timeout_seconds = upgrade.monitor_timeout * 60

        if upgrade.intermediate_update:
            await self._wait_for_version(target, upgrade.intermediate_update, timeout_seconds)
            desired = upgrade.desired_update
            if desired and desired != upgrade.intermediate_update:
                obj, version_status = await self.read_version_status(target, MONITOR_STEP)
                if history_head(version_status).get("version") != desired:
                    obj, release = await self._resolve_release(
                        curator, target, desired, MONITOR_STEP, settle_seconds=0
                    )
                    await self._apply(target, obj, release, None, None, MONITOR_STEP)
                await self._wait_for_version(target, desired, timeout_seconds)
            return

        if upgrade.desired_update:
            await self._wait_for_version(target, upgrade.desired_update, timeout_seconds)
        else:
            log.info("no_version_to_monitor", cluster=target.name)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _resolve_release(
        self,
        curator: ClusterCurator,
        target: ClusterTarget,
        version: str,
        step: str,
        settle_seconds: float,
    ) -> tuple[dict[str, Any], ReleaseTarget]:
        """Validate a version, waiting up to settle_seconds for it to be offered."""
        last_error: list[CurationError] = []

        async def check() -> tuple[dict[str, Any], ReleaseTarget] | None:
            fetched = self._fetch_version_status(target)
            if fetched is None:
                return None
            obj, version_status = fetched
            try:
                release = select_update(
                    version_status, version, curator.allows_not_recommended_versions(), step
                )
            except CurationError as e:
                last_error[:] = [e]
                return None
            return obj, release

        try:
            obj, release = await poll_until(
                check,
                timeout_seconds=settle_seconds,
                interval_seconds=self.poll_interval_seconds,
                step=step,
                description=f"version {version} to be offered to {target.name}",
            )
        except CurationError as e:
            if e.code == "timeout" and last_error:
                raise last_error[0] from e
            raise

        if not release.recommended:
            log.warning(
                "upgrading_to_not_recommended_version",
                cluster=target.name,
                version=version,
                risks=release.risks,
            )
        return obj, release

    async def _apply(
        self,
        target: ClusterTarget,
        obj: dict[str, Any],
        release: ReleaseTarget | None,
        channel: str | None,
        upstream: str | None,
        step: str,
    ) -> None:
        if target.cluster_type == ClusterType.HYPERSHIFT:
            self._apply_hosted(target, release, channel)
        else:
            await self._apply_cluster_version(target, obj, release, channel, upstream, step)

    async def _apply_cluster_version(
        self,
        target: ClusterTarget,
        cluster_version: dict[str, Any],
        release: ReleaseTarget | None,
        channel: str | None,
        upstream: str | None,
        step: str,
    ) -> None:
        template = deepcopy(cluster_version)
        template.pop("status", None)
        template["metadata"] = {"name": "version"}
        spec = template.setdefault("spec", {})
        if channel:
            spec["channel"] = channel
        if upstream:
            spec["upstream"] = upstream
        if release is not None:
            desired: dict[str, Any] = {"version": release.version, "force": False}
            if release.image:
                desired["image"] = release.image
            spec["desiredUpdate"] = desired

        action_name = f"{target.name}-upgrade"
        try:
            self.custom_api.delete_namespaced_custom_object(
                group=MANAGED_CLUSTER_ACTION.group,
                version=MANAGED_CLUSTER_ACTION.version,
                namespace=target.namespace,
                plural=MANAGED_CLUSTER_ACTION.plural,
                name=action_name,
            )
        except client.ApiException as e:
            if not is_not_found(e):
                raise

        self.custom_api.create_namespaced_custom_object(
            group=MANAGED_CLUSTER_ACTION.group,
            version=MANAGED_CLUSTER_ACTION.version,
            namespace=target.namespace,
            plural=MANAGED_CLUSTER_ACTION.plural,
            body={
                "apiVersion": f"{MANAGED_CLUSTER_ACTION.group}/{MANAGED_CLUSTER_ACTION.version}",
                "kind": "ManagedClusterAction",
                "metadata": {"name": action_name, "namespace": target.namespace},
                "spec": {
                    "actionType": "Update",
                    "kube": {
                        "resource": "clusterversion",
                        "name": "version",
                        "template": template,
                    },
                },
            },
        )
        log.info(
            "cluster_version_update_requested",
            cluster=target.name,
            action=action_name,
            version=release.version if release else None,
            channel=channel,
        )
        await self._wait_for_action(target, action_name, step)

    async def _wait_for_action(self, target: ClusterTarget, action_name: str, step: str) -> None:
        """Wait for the managed cluster to acknowledge a ManagedClusterAction."""

        async def check() -> bool | None:
            action = self.custom_api.get_namespaced_custom_object(
                group=MANAGED_CLUSTER_ACTION.group,
                version=MANAGED_CLUSTER_ACTION.version,
                namespace=target.namespace,
                plural=MANAGED_CLUSTER_ACTION.plural,
                name=action_name,
            )
            for condition in (action.get("status") or {}).get("conditions") or []:
                if condition.get("type") != ACTION_COMPLETED:
                    continue
                if condition.get("reason") == ACTION_FAILED:
                    raise CurationError(
                        code="action_failed",
                        step=step,
                        message=(
                            f"ClusterVersion update on {target.name} failed: "
                            f"{condition.get('message') or 'no message'}"
                        ),
                        details={"managedClusterAction": action_name},
                    )
                if str(condition.get("status")) == "True":
                    return True
            return None

        await poll_until(
            check,
            timeout_seconds=ACTION_TIMEOUT_SECONDS,
            interval_seconds=self.poll_interval_seconds,
            step=step,
            description=f"ManagedClusterAction {action_name}",
        )

    def _apply_hosted(
        self,
        target: ClusterTarget,
        release: ReleaseTarget | None,
        channel: str | None,
    ) -> None:
        patch: dict[str, Any] = {"spec": {}}
        if channel:
            patch["spec"]["channel"] = channel

        image = None
        if release is not None:
            image = release.image or settings.curator.release_image_template.format(
                version=release.version
            )
            patch["spec"]["release"] = {"image": image}
            if not release.recommended:
                patch["metadata"] = {"annotations": {FORCE_UPGRADE_ANNOTATION: image}}

        if not patch["spec"]:
            return

        self.custom_api.patch_namespaced_custom_object(
            group=HOSTED_CLUSTER.group,
            version=HOSTED_CLUSTER.version,
            namespace=target.namespace,
            plural=HOSTED_CLUSTER.plural,
            name=target.name,
            body=patch,
        )

        if image is not None:
            for pool in list_node_pools(self.custom_api, target.name, target.namespace):
                self.custom_api.patch_namespaced_custom_object(
                    group=NODE_POOL.group,
                    version=NODE_POOL.version,
                    namespace=target.namespace,
                    plural=NODE_POOL.plural,
                    name=pool["metadata"]["name"],
                    body={"spec": {"release": {"image": image}}},
                )

        log.info("hosted_cluster_release_updated", cluster=target.name, image=image, channel=channel)

    async def _wait_for_version(
        self, target: ClusterTarget, version: str, timeout_seconds: float
    ) -> None:
        async def check() -> bool | None:
            fetched = self._fetch_version_status(target)
            if fetched is None:
                return None
            _, version_status = fetched
            if not upgrade_completed(version_status, version):
                log.debug(
                    "upgrade_in_progress",
                    cluster=target.name,
                    version=version,
                    state=history_head(version_status).get("state"),
                )
                return None
            if target.cluster_type == ClusterType.HYPERSHIFT:
                pools = list_node_pools(self.custom_api, target.name, target.namespace)
                if any((p.get("status") or {}).get("version") != version for p in pools):
                    return None
            return True

        await poll_until(
            check,
            timeout_seconds=timeout_seconds,
            interval_seconds=self.poll_interval_seconds,
            step=MONITOR_STEP,
            description=f"cluster {target.name} to reach version {version}",
        )
        log.info("cluster_upgraded", cluster=target.name, version=version)


__all__ = [
    "FORCE_UPGRADE_ANNOTATION",
    "ReleaseTarget",
    "Upgrader",
    "current_version",
    "history_head",
    "select_update",
    "upgrade_completed",
]
