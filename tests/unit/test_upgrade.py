"""Unit tests for cluster upgrades."""

from copy import deepcopy
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from curator.crd import ALLOW_NOT_RECOMMENDED_ANNOTATION, ClusterCurator
from curator.curation.clusters import ClusterTarget, ClusterType
from curator.curation.upgrade import (
    FORCE_UPGRADE_ANNOTATION,
    Upgrader,
    current_version,
    select_update,
    upgrade_completed,
)
from curator.errors import CurationError


ACTION_DONE = {"status": {"conditions": [{"type": "Completed", "status": "True"}]}}


def _dispatch(responses: dict[str, Any]):
    """side_effect returning a response per plural (callables are invoked)."""

    def get(**kwargs: Any) -> Any:
        response = responses[kwargs["plural"]]
        if isinstance(response, Exception):
            raise response
        return response() if callable(response) else response

    return get


def _hive_target() -> ClusterTarget:
    return ClusterTarget(ClusterType.HIVE, "sno-1", "sno-1", {"spec": {}})


def _created(custom_api: MagicMock, plural: str) -> list[dict[str, Any]]:
    return [
        c.kwargs["body"]
        for c in custom_api.create_namespaced_custom_object.call_args_list
        if c.kwargs["plural"] == plural
    ]


class TestSelectUpdate:
    """Test version validation against the update graph."""

    def test_recommended(self, sample_cluster_version: dict[str, Any]) -> None:
        """Test an available update is accepted."""
        release = select_update(sample_cluster_version["status"], "4.14.11", False)

        assert release.version == "4.14.11"
        assert release.image == "quay.io/ocp-release@sha256:bbb"
        assert release.recommended is True

    def test_conditional_needs_annotation(self, sample_cluster_version: dict[str, Any]) -> None:
        """Test a conditional update is refused without the annotation."""
        with pytest.raises(CurationError) as exc_info:
            select_update(sample_cluster_version["status"], "4.14.12", False)

        assert exc_info.value.code == "invalid_upgrade_version"
        assert exc_info.value.message == "Provided cluster version 4.14.12 is not a valid upgrade"

    def test_conditional_allowed(self, sample_cluster_version: dict[str, Any]) -> None:
        """Test a conditional update is accepted when allowed."""
        release = select_update(sample_cluster_version["status"], "4.14.12", True)

        assert release.recommended is False
        assert release.risks == ["AzureRegistryImagePreservation"]

    def test_unknown_version(self, sample_cluster_version: dict[str, Any]) -> None:
        """Test a version not offered at all is refused even when allowed."""
        with pytest.raises(CurationError):
            select_update(sample_cluster_version["status"], "4.15.0", True)


class TestVersionHistory:
    """Test ClusterVersion history helpers."""

    def test_current_version_skips_partial(self) -> None:
        """Test the newest completed entry is the current version."""
        status = {
            "history": [
                {"state": "Partial", "version": "4.14.10"},
                {"state": "Completed", "version": "4.14.8"},
            ]
        }
        assert current_version(status) == "4.14.8"
        assert upgrade_completed(status, "4.14.10") is False

    def test_upgrade_completed(self) -> None:
        """Test a completed head entry."""
        status = {"history": [{"state": "Completed", "version": "4.14.10"}]}
        assert upgrade_completed(status, "4.14.10") is True
        assert current_version({}) is None


class TestUpgradeClusterVersion:
    """Test upgrades through ManagedClusterView and ManagedClusterAction."""

    @pytest.mark.asyncio
    async def test_upgrade_requests_update(
        self,
        custom_api: MagicMock,
        api_not_found,
        sample_curator: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test a valid version becomes a ClusterVersion update action."""
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {
                "managedclusterviews": {"status": {"result": sample_cluster_version}},
                "managedclusteractions": ACTION_DONE,
            }
        )
        custom_api.delete_namespaced_custom_object.side_effect = api_not_found()
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        release = await Upgrader(custom_api, 0).upgrade(curator, _hive_target())

        assert release.version == "4.14.10"
        view = _created(custom_api, "managedclusterviews")[0]
        assert view["spec"]["scope"] == {
            "resource": "clusterversion",
            "name": "version",
            "updateIntervalSeconds": 10,
        }
        action = _created(custom_api, "managedclusteractions")[0]
        assert action["metadata"]["name"] == "sno-1-upgrade"
        assert action["spec"]["actionType"] == "Update"
        template = action["spec"]["kube"]["template"]
        assert "status" not in template
        assert template["metadata"] == {"name": "version"}
        assert template["spec"]["desiredUpdate"] == {
            "version": "4.14.10",
            "force": False,
            "image": "quay.io/ocp-release@sha256:aaa",
        }
        assert template["spec"]["channel"] == "stable-4.14"

    @pytest.mark.asyncio
    async def test_invalid_version_rejected(
        self,
        custom_api: MagicMock,
        sample_curator: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test a conditional version is refused without the annotation."""
        sample_curator["spec"]["upgrade"]["desiredUpdate"] = "4.14.12"
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {"managedclusterviews": {"status": {"result": sample_cluster_version}}}
        )
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        with pytest.raises(CurationError) as exc_info:
            await Upgrader(custom_api, 0).upgrade(curator, _hive_target())

        assert exc_info.value.code == "invalid_upgrade_version"
        assert _created(custom_api, "managedclusteractions") == []

    @pytest.mark.asyncio
    async def test_not_recommended_version_allowed(
        self,
        custom_api: MagicMock,
        api_not_found,
        sample_curator: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test the annotation allows a conditional version."""
        sample_curator["spec"]["upgrade"]["desiredUpdate"] = "4.14.12"
        sample_curator["metadata"]["annotations"] = {ALLOW_NOT_RECOMMENDED_ANNOTATION: "true"}
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {
                "managedclusterviews": {"status": {"result": sample_cluster_version}},
                "managedclusteractions": ACTION_DONE,
            }
        )
        custom_api.delete_namespaced_custom_object.side_effect = api_not_found()
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        release = await Upgrader(custom_api, 0).upgrade(curator, _hive_target())

        assert release.recommended is False
        template = _created(custom_api, "managedclusteractions")[0]["spec"]["kube"]["template"]
        assert template["spec"]["desiredUpdate"]["version"] == "4.14.12"

    @pytest.mark.asyncio
    async def test_missing_target(self, custom_api: MagicMock, sample_curator: dict[str, Any]) -> None:
        """Test an upgrade with nothing to do is refused."""
        sample_curator["spec"]["upgrade"] = {}
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        with pytest.raises(CurationError) as exc_info:
            await Upgrader(custom_api, 0).upgrade(curator, _hive_target())

        assert exc_info.value.code == "missing_upgrade_target"
        custom_api.create_namespaced_custom_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_at_version(
        self,
        custom_api: MagicMock,
        sample_curator: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test no action is created when the cluster is already there."""
        sample_cluster_version["status"]["history"].insert(
            0, {"state": "Completed", "version": "4.14.10"}
        )
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {"managedclusterviews": {"status": {"result": sample_cluster_version}}}
        )
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        assert await Upgrader(custom_api, 0).upgrade(curator, _hive_target()) is None
        assert _created(custom_api, "managedclusteractions") == []

    @pytest.mark.asyncio
    async def test_action_failed(
        self,
        custom_api: MagicMock,
        api_not_found,
        sample_curator: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test a failed ManagedClusterAction fails the step."""
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {
                "managedclusterviews": {"status": {"result": sample_cluster_version}},
                "managedclusteractions": {
                    "status": {
                        "conditions": [
                            {
                                "type": "Completed",
                                "status": "False",
                                "reason": "ActionFailed",
                                "message": "forbidden",
                            }
                        ]
                    }
                },
            }
        )
        custom_api.delete_namespaced_custom_object.side_effect = api_not_found()
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        with pytest.raises(CurationError) as exc_info:
            await Upgrader(custom_api, 0).upgrade(curator, _hive_target())

        assert exc_info.value.code == "action_failed"
        assert "forbidden" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_monitor_completed(
        self,
        custom_api: MagicMock,
        sample_curator: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test monitoring ends once history shows the desired version."""
        in_progress = deepcopy(sample_cluster_version)
        in_progress["status"]["history"].insert(0, {"state": "Partial", "version": "4.14.10"})
        done = deepcopy(sample_cluster_version)
        done["status"]["history"].insert(0, {"state": "Completed", "version": "4.14.10"})
        views = iter([{"status": {"result": in_progress}}, {"status": {"result": done}}])
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {"managedclusterviews": lambda: next(views)}
        )
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        await Upgrader(custom_api, 0).monitor(curator, _hive_target())

        assert custom_api.get_namespaced_custom_object.call_count == 2


    @pytest.mark.asyncio
    async def test_monitor_applies_second_hop(
        self,
        custom_api: MagicMock,
        api_not_found,
        sample_curator: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test monitoring an intermediate update applies and awaits desiredUpdate."""
        sample_curator["spec"]["upgrade"]["intermediateUpdate"] = "4.14.10"
        sample_curator["spec"]["upgrade"]["desiredUpdate"] = "4.14.11"
        at_intermediate = deepcopy(sample_cluster_version)
        at_intermediate["status"]["history"].insert(0, {"state": "Completed", "version": "4.14.10"})
        at_intermediate["status"]["availableUpdates"] = [
            {"version": "4.14.11", "image": "quay.io/ocp-release@sha256:bbb"}
        ]
        at_desired = deepcopy(at_intermediate)
        at_desired["status"]["history"].insert(0, {"state": "Completed", "version": "4.14.11"})

        def view() -> dict[str, Any]:
            hop_requested = bool(_created(custom_api, "managedclusteractions"))
            return {"status": {"result": at_desired if hop_requested else at_intermediate}}

        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {"managedclusterviews": view, "managedclusteractions": ACTION_DONE}
        )
        custom_api.delete_namespaced_custom_object.side_effect = api_not_found()
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        await Upgrader(custom_api, 0).monitor(curator, _hive_target())

        actions = _created(custom_api, "managedclusteractions")
        assert len(actions) == 1
        desired = actions[0]["spec"]["kube"]["template"]["spec"]["desiredUpdate"]
        assert desired == {
            "version": "4.14.11",
            "force": False,
            "image": "quay.io/ocp-release@sha256:bbb",
        }

    @pytest.mark.asyncio
    async def test_version_missing_after_channel_change(
        self,
        custom_api: MagicMock,
        api_not_found,
        sample_curator: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test a version never offered on the new channel fails validation, not with a timeout."""
        sample_curator["spec"]["upgrade"]["channel"] = "stable-4.15"
        sample_curator["spec"]["upgrade"]["desiredUpdate"] = "4.15.2"
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {
                "managedclusterviews": {"status": {"result": sample_cluster_version}},
                "managedclusteractions": ACTION_DONE,
            }
        )
        custom_api.delete_namespaced_custom_object.side_effect = api_not_found()
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        with (
            patch("curator.curation.upgrade.CHANNEL_SETTLE_SECONDS", 0),
            pytest.raises(CurationError) as exc_info,
        ):
            await Upgrader(custom_api, 0).upgrade(curator, _hive_target())

        assert exc_info.value.code == "invalid_upgrade_version"
        assert "4.15.2" in exc_info.value.message
        actions = _created(custom_api, "managedclusteractions")
        assert len(actions) == 1
        template = actions[0]["spec"]["kube"]["template"]
        assert template["spec"]["channel"] == "stable-4.15"
        assert "desiredUpdate" not in template["spec"]


class TestUpgradeHostedCluster:
    """Test upgrades of hosted clusters."""

    @pytest.mark.asyncio
    async def test_release_image_and_channel(
        self,
        custom_api: MagicMock,
        sample_curator: dict[str, Any],
        sample_hosted_cluster: dict[str, Any],
        sample_cluster_version: dict[str, Any],
    ) -> None:
        """Test the HostedCluster and NodePools move to the new release."""
        sample_curator["metadata"]["annotations"] = {ALLOW_NOT_RECOMMENDED_ANNOTATION: "true"}
        sample_curator["spec"]["upgrade"]["desiredUpdate"] = "4.14.12"
        sample_hosted_cluster["status"]["version"] = sample_cluster_version["status"]
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {"hostedclusters": sample_hosted_cluster}
        )
        custom_api.list_namespaced_custom_object.return_value = {
            "items": [{"metadata": {"name": "pool-a"}, "spec": {"clusterName": "hosted-1"}}]
        }
        curator = ClusterCurator.from_kubernetes_object(sample_curator)
        target = ClusterTarget(ClusterType.HYPERSHIFT, "hosted-1", "clusters", sample_hosted_cluster)

        release = await Upgrader(custom_api, 0).upgrade(curator, target)

        assert release.version == "4.14.12"
        patches = [
            (c.kwargs["plural"], c.kwargs["body"])
            for c in custom_api.patch_namespaced_custom_object.call_args_list
        ]
        assert patches[0] == ("hostedclusters", {"spec": {"channel": "stable-4.14"}})
        assert patches[1] == (
            "hostedclusters",
            {
                "spec": {
                    "channel": "stable-4.14",
                    "release": {"image": "quay.io/ocp-release@sha256:ccc"},
                },
                "metadata": {
                    "annotations": {FORCE_UPGRADE_ANNOTATION: "quay.io/ocp-release@sha256:ccc"}
                },
            },
        )
        assert patches[2] == (
            "nodepools",
            {"spec": {"release": {"image": "quay.io/ocp-release@sha256:ccc"}}},
        )
        custom_api.create_namespaced_custom_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_waits_for_node_pools(
        self,
        custom_api: MagicMock,
        sample_hosted_cluster: dict[str, Any],
    ) -> None:
        """Test a hosted upgrade is not complete until every NodePool is."""
        sample_hosted_cluster["status"]["version"] = {
            "history": [{"state": "Completed", "version": "4.14.10"}]
        }
        custom_api.get_namespaced_custom_object.side_effect = _dispatch(
            {"hostedclusters": sample_hosted_cluster}
        )
        custom_api.list_namespaced_custom_object.return_value = {
            "items": [
                {
                    "metadata": {"name": "pool-a"},
                    "spec": {"clusterName": "hosted-1"},
                    "status": {"version": "4.14.8"},
                }
            ]
        }
        target = ClusterTarget(ClusterType.HYPERSHIFT, "hosted-1", "clusters", sample_hosted_cluster)

        with pytest.raises(CurationError) as exc_info:
            await Upgrader(custom_api, 0)._wait_for_version(target, "4.14.10", 0)

        assert exc_info.value.code == "timeout"
        assert exc_info.value.step == "monitor-upgrade"
