"""Pydantic models for the ClusterCurator Custom Resource.

A ClusterCurator names a cluster (its own name and namespace), the curation
that should run against it, and the Ansible hooks that wrap each curation.

API Group: cluster.open-cluster-management.io
API Version: v1beta1
Kind: ClusterCurator
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ClusterCurator CRD Constants
CURATOR_API_GROUP = "cluster.open-cluster-management.io"
CURATOR_API_VERSION = "v1beta1"
CURATOR_PLURAL = "clustercurators"
CURATOR_KIND = "ClusterCurator"

# Annotation that opts a curator into conditional (not recommended) updates
ALLOW_NOT_RECOMMENDED_ANNOTATION = (
    "cluster.open-cluster-management.io/upgrade-allow-not-recommended-versions"
)

DEFAULT_JOB_MONITOR_TIMEOUT_MINUTES = 5
DEFAULT_UPGRADE_MONITOR_TIMEOUT_MINUTES = 120


class CurationType(str, Enum):
    """Curation requested through spec.desiredCuration."""

    INSTALL = "install"
    UPGRADE = "upgrade"
    DESTROY = "destroy"
    SCALE = "scale"


class HookType(str, Enum):
    """Kind of Tower/AAP template a hook launches."""

    JOB = "Job"
    WORKFLOW = "Workflow"


class Hook(BaseModel):
    """A single Ansible job or workflow template run."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(min_length=1, description="Template name")
    type: HookType = Field(default=HookType.JOB)
    extra_vars: dict[str, Any] = Field(default_factory=dict)


class Hooks(BaseModel):
    """Hooks and Job options for one curation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tower_auth_secret: str | None = Field(default=None, alias="towerAuthSecret")
    prehook: list[Hook] = Field(default_factory=list)
    posthook: list[Hook] = Field(default_factory=list)
    job_monitor_timeout: int = Field(
        default=DEFAULT_JOB_MONITOR_TIMEOUT_MINUTES,
        ge=1,
        alias="jobMonitorTimeout",
        description="Minutes to wait for each AnsibleJob",
    )
    inventory: str | None = Field(default=None)
    override_job: dict[str, Any] | None = Field(default=None, alias="overrideJob")

    def hooks(self, phase: str) -> list[Hook]:
        """Hooks for 'prehook' or 'posthook'."""
        if phase == "prehook":
            return self.prehook
        if phase == "posthook":
            return self.posthook
        raise ValueError(f"Unknown hook phase: {phase}")


class UpgradeHooks(Hooks):
    """Upgrade curation options."""

    desired_update: str | None = Field(default=None, alias="desiredUpdate")
    channel: str | None = Field(default=None)
    upstream: str | None = Field(default=None)
    intermediate_update: str | None = Field(default=None, alias="intermediateUpdate")
    monitor_timeout: int = Field(
        default=DEFAULT_UPGRADE_MONITOR_TIMEOUT_MINUTES,
        ge=1,
        alias="monitorTimeout",
        description="Minutes to wait for the cluster version to settle",
    )


class CuratorCondition(BaseModel):
    """Condition reported in ClusterCurator status."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    status: str  # "True", "False"
    reason: str | None = Field(default=None)
    message: str | None = Field(default=None)
    last_transition_time: str | None = Field(default=None, alias="lastTransitionTime")


class ClusterCuratorSpec(BaseModel):
    """Specification of a ClusterCurator."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    desired_curation: str | None = Field(default=None, alias="desiredCuration")
    install: Hooks = Field(default_factory=Hooks)
    upgrade: UpgradeHooks = Field(default_factory=UpgradeHooks)
    destroy: Hooks = Field(default_factory=Hooks)
    scale: Hooks = Field(default_factory=Hooks)


class ClusterCuratorStatus(BaseModel):
    """Status of a ClusterCurator."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    curating_job: str | None = Field(default=None, alias="curatingJob")
    conditions: list[CuratorCondition] = Field(default_factory=list)


class CuratorMetadata(BaseModel):
    """Metadata subset the curator relies on."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    namespace: str = Field(default="default")
    uid: str | None = Field(default=None)
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class ClusterCurator(BaseModel):
    """ClusterCurator custom resource."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_version: str = Field(
        default=f"{CURATOR_API_GROUP}/{CURATOR_API_VERSION}", alias="apiVersion"
    )
    kind: str = Field(default=CURATOR_KIND)
    metadata: CuratorMetadata
    spec: ClusterCuratorSpec = Field(default_factory=ClusterCuratorSpec)
    status: ClusterCuratorStatus = Field(default_factory=ClusterCuratorStatus)

    @property
    def cluster_name(self) -> str:
        """The curated cluster carries the curator's name."""
        return self.metadata.name

    def hooks_for(self, curation: CurationType) -> Hooks:
        """Hooks block for a curation type."""
        return getattr(self.spec, curation.value)

    def allows_not_recommended_versions(self) -> bool:
        """Whether the curator opted into conditional updates."""
        value = self.metadata.annotations.get(ALLOW_NOT_RECOMMENDED_ANNOTATION, "")
        return value.strip().lower() == "true"

    def condition(self, condition_type: str) -> CuratorCondition | None:
        """Find a status condition by type."""
        for condition in self.status.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def owner_reference(self) -> dict[str, Any]:
        """ownerReference pointing at this curator, for Jobs and AnsibleJobs."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.metadata.name,
            "uid": self.metadata.uid or "",
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to Kubernetes API dict format."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_kubernetes_object(cls, obj: dict[str, Any]) -> "ClusterCurator":
        """Create a ClusterCurator from a raw Kubernetes API object."""
        metadata = obj.get("metadata") or {}
        return cls.model_validate(
            {
                "apiVersion": obj.get("apiVersion", f"{CURATOR_API_GROUP}/{CURATOR_API_VERSION}"),
                "kind": obj.get("kind", CURATOR_KIND),
                "metadata": {
                    "name": metadata.get("name", ""),
                    "namespace": metadata.get("namespace", "default"),
                    "uid": metadata.get("uid"),
                    "labels": metadata.get("labels") or {},
                    "annotations": metadata.get("annotations") or {},
                },
                "spec": obj.get("spec") or {},
                "status": obj.get("status") or {},
            }
        )


__all__ = [
    "ALLOW_NOT_RECOMMENDED_ANNOTATION",
    "CURATOR_API_GROUP",
    "CURATOR_API_VERSION",
    "CURATOR_KIND",
    "CURATOR_PLURAL",
    "DEFAULT_JOB_MONITOR_TIMEOUT_MINUTES",
    "DEFAULT_UPGRADE_MONITOR_TIMEOUT_MINUTES",
    "ClusterCurator",
    "ClusterCuratorSpec",
    "ClusterCuratorStatus",
    "CuratorCondition",
    "CuratorMetadata",
    "CurationType",
    "Hook",
    "HookType",
    "Hooks",
    "UpgradeHooks",
]
