"""Cluster Curator - Kubernetes operator for cluster lifecycle curation.

Runs ordered curation Jobs (pre-hook automation, the core install, upgrade,
destroy or scale action, post-hook automation) for clusters described by
ClusterCurator custom resources.
"""

from curator.version import __version__


__all__ = ["__version__"]
