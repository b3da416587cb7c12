"""Curator operator handlers.

Kopf-based event handlers:
- curator.py: ClusterCurator curation requests (creates curator Jobs)
- jobs.py: curator Job completion (reconciles ClusterCurator status)

All handlers are registered when this module is imported; main.py then
calls kopf.run().
"""

from curator.k8s_operator.handlers import curator, jobs


__all__ = [
    "curator",
    "jobs",
]
