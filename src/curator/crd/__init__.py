"""Curator Custom Resource Definition Models.

Pydantic models for the ClusterCurator resource, plus API coordinates of
the Hive, HyperShift, OCM and Ansible resources that curation acts on.
"""

from curator.crd.curator_models import (
    ALLOW_NOT_RECOMMENDED_ANNOTATION,
    CURATOR_API_GROUP,
    CURATOR_API_VERSION,
    CURATOR_KIND,
    CURATOR_PLURAL,
    ClusterCurator,
    ClusterCuratorSpec,
    ClusterCuratorStatus,
    CurationType,
    CuratorCondition,
    CuratorMetadata,
    Hook,
    Hooks,
    HookType,
    UpgradeHooks,
)


__all__ = [
    "ALLOW_NOT_RECOMMENDED_ANNOTATION",
    "CURATOR_API_GROUP",
    "CURATOR_API_VERSION",
    "CURATOR_KIND",
    "CURATOR_PLURAL",
    "ClusterCurator",
    "ClusterCuratorSpec",
    "ClusterCuratorStatus",
    "CurationType",
    "CuratorCondition",
    "CuratorMetadata",
    "Hook",
    "HookType",
    "Hooks",
    "UpgradeHooks",
]
