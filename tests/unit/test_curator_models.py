"""Unit tests for ClusterCurator CRD models."""

from typing import Any

import pytest
from pydantic import ValidationError

from curator.crd import (
    ALLOW_NOT_RECOMMENDED_ANNOTATION,
    ClusterCurator,
    CurationType,
    Hook,
    HookType,
    Hooks,
)


class TestHooks:
    """Test hook models."""

    def test_hook_defaults_to_job(self) -> None:
        """Test hooks default to job templates with no extra vars."""
        hook = Hook(name="Demo Job Template")
        assert hook.type == HookType.JOB
        assert hook.extra_vars == {}

    def test_hook_requires_name(self) -> None:
        """Test empty template names are rejected."""
        with pytest.raises(ValidationError):
            Hook(name="")

    def test_hooks_defaults(self) -> None:
        """Test hooks block defaults."""
        hooks = Hooks()
        assert hooks.prehook == []
        assert hooks.posthook == []
        assert hooks.job_monitor_timeout == 5
        assert hooks.tower_auth_secret is None

    def test_hooks_by_phase(self) -> None:
        """Test selecting hooks by phase."""
        hooks = Hooks(prehook=[Hook(name="pre")], posthook=[Hook(name="post")])
        assert hooks.hooks("prehook")[0].name == "pre"
        assert hooks.hooks("posthook")[0].name == "post"
        with pytest.raises(ValueError, match="Unknown hook phase"):
            hooks.hooks("midhook")

    def test_job_monitor_timeout_must_be_positive(self) -> None:
        """Test jobMonitorTimeout bounds validation."""
        with pytest.raises(ValidationError):
            Hooks(jobMonitorTimeout=0)


class TestClusterCurator:
    """Test ClusterCurator parsing and helpers."""

    def test_from_kubernetes_object(self, sample_curator: dict[str, Any]) -> None:
        """Test parsing a full curator."""
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        assert curator.cluster_name == "sno-1"
        assert curator.metadata.namespace == "sno-1"
        assert curator.spec.desired_curation == "install"
        assert curator.spec.install.tower_auth_secret == "toweraccess"
        assert curator.spec.install.job_monitor_timeout == 10
        assert curator.spec.install.prehook[0].extra_vars == {
            "variable1": "something-interesting"
        }
        assert curator.spec.install.posthook[0].type == HookType.WORKFLOW
        assert curator.spec.upgrade.desired_update == "4.14.10"
        assert curator.spec.upgrade.monitor_timeout == 150

    def test_minimal_object_gets_defaults(self) -> None:
        """Test a curator with no spec or status."""
        curator = ClusterCurator.from_kubernetes_object(
            {"metadata": {"name": "c1", "namespace": "c1"}}
        )

        assert curator.spec.desired_curation is None
        assert curator.spec.upgrade.monitor_timeout == 120
        assert curator.status.conditions == []
        assert curator.status.curating_job is None

    def test_unknown_fields_ignored(self) -> None:
        """Test fields the curator does not know are ignored."""
        curator = ClusterCurator.from_kubernetes_object(
            {
                "metadata": {"name": "c1", "namespace": "c1"},
                "spec": {"desiredCuration": "scale", "providerCredentialPath": "x/y"},
            }
        )
        assert curator.spec.desired_curation == "scale"

    def test_hooks_for(self, sample_curator: dict[str, Any]) -> None:
        """Test selecting the hooks block for a curation."""
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        assert curator.hooks_for(CurationType.INSTALL) is curator.spec.install
        assert curator.hooks_for(CurationType.UPGRADE) is curator.spec.upgrade
        assert curator.hooks_for(CurationType.DESTROY).prehook == []

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("true", True), ("True", True), (" TRUE ", True), ("false", False), ("", False)],
    )
    def test_allows_not_recommended_versions(
        self, sample_curator: dict[str, Any], value: str, expected: bool
    ) -> None:
        """Test the not-recommended-versions annotation."""
        sample_curator["metadata"]["annotations"] = {ALLOW_NOT_RECOMMENDED_ANNOTATION: value}
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        assert curator.allows_not_recommended_versions() is expected

    def test_condition_lookup(self, sample_curator: dict[str, Any]) -> None:
        """Test finding a condition by type."""
        sample_curator["status"] = {
            "curatingJob": "curator-job-abcde",
            "conditions": [
                {"type": "clustercurator-job", "status": "False", "reason": "Job_has_started"}
            ],
        }
        curator = ClusterCurator.from_kubernetes_object(sample_curator)

        assert curator.status.curating_job == "curator-job-abcde"
        assert curator.condition("clustercurator-job").reason == "Job_has_started"
        assert curator.condition("monitor-import") is None

    def test_owner_reference(self, sample_curator: dict[str, Any]) -> None:
        """Test the owner reference points at the curator."""
        ref = ClusterCurator.from_kubernetes_object(sample_curator).owner_reference()

        assert ref["kind"] == "ClusterCurator"
        assert ref["name"] == "sno-1"
        assert ref["uid"] == "curator-uid-12345"
        assert ref["controller"] is True

    def test_to_dict_uses_aliases(self, sample_curator: dict[str, Any]) -> None:
        """Test serialization back to Kubernetes field names."""
        data = ClusterCurator.from_kubernetes_object(sample_curator).to_dict()

        assert data["spec"]["desiredCuration"] == "install"
        assert data["spec"]["install"]["towerAuthSecret"] == "toweraccess"
        assert data["spec"]["install"]["posthook"][0]["type"] == "Workflow"
