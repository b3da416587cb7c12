"""API coordinates of the resources curation steps act on.

None of these CRDs are owned by the curator; they come from Hive,
HyperShift, Open Cluster Management and the Ansible Automation Platform
resource operator.
"""

from typing import NamedTuple


class ResourceRef(NamedTuple):
    """group/version/plural triple for CustomObjectsApi calls."""

    group: str
    version: str
    plural: str


# Hive
CLUSTER_DEPLOYMENT = ResourceRef("hive.openshift.io", "v1", "clusterdeployments")

# HyperShift
HOSTED_CLUSTER = ResourceRef("hypershift.openshift.io", "v1beta1", "hostedclusters")
NODE_POOL = ResourceRef("hypershift.openshift.io", "v1beta1", "nodepools")

# Open Cluster Management (ManagedCluster is cluster-scoped)
MANAGED_CLUSTER = ResourceRef("cluster.open-cluster-management.io", "v1", "managedclusters")
MANAGED_CLUSTER_VIEW = ResourceRef(
    "view.open-cluster-management.io", "v1beta1", "managedclusterviews"
)
MANAGED_CLUSTER_ACTION = ResourceRef(
    "action.open-cluster-management.io", "v1beta1", "managedclusteractions"
)

# Ansible Automation Platform resource operator
ANSIBLE_JOB = ResourceRef("tower.ansible.com", "v1alpha1", "ansiblejobs")
ANSIBLE_JOB_KIND = "AnsibleJob"

# Condition names read from external resources
HIVE_PROVISION_STOPPED = "ProvisionStopped"
HOSTED_CLUSTER_AVAILABLE = "Available"
MANAGED_CLUSTER_AVAILABLE = "ManagedClusterConditionAvailable"


__all__ = [
    "ANSIBLE_JOB",
    "ANSIBLE_JOB_KIND",
    "CLUSTER_DEPLOYMENT",
    "HIVE_PROVISION_STOPPED",
    "HOSTED_CLUSTER",
    "HOSTED_CLUSTER_AVAILABLE",
    "MANAGED_CLUSTER",
    "MANAGED_CLUSTER_ACTION",
    "MANAGED_CLUSTER_AVAILABLE",
    "MANAGED_CLUSTER_VIEW",
    "NODE_POOL",
    "ResourceRef",
]
