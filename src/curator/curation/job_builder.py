"""Curator Job manifest construction.

One Job per curation. Each planned step is an init container so the
kubelet runs them strictly in order and stops at the first failure; the
main container runs the closing `done` step.
"""

import uuid
from copy import deepcopy
from typing import Any

from curator.config.settings import Settings
from curator.crd import ClusterCurator, CurationType
from curator.curation.plan import CurationStep, plan_steps


CURATOR_JOB_LABEL = "open-cluster-management.io/curator-job"
CURATION_LABEL = "cluster.open-cluster-management.io/curation"
JOB_NAME_PREFIX = "curator-job-"


def generate_job_name() -> str:
    """Random curator Job name."""
    return f"{JOB_NAME_PREFIX}{uuid.uuid4().hex[:5]}"


def _step_container(
    step: CurationStep, env: list[dict[str, Any]], settings: Settings
) -> dict[str, Any]:
    return {
        "name": step.value,
        "image": settings.curator.image,
        "imagePullPolicy": settings.curator.image_pull_policy,
        "command": ["curator", "step", step.value],
        "env": deepcopy(env),
    }


def build_curator_job(
    curator: ClusterCurator,
    curation: CurationType,
    settings: Settings,
    job_name: str | None = None,
) -> dict[str, Any]:
    """Build the batch/v1 Job that runs a curation.

    Args:
        curator: The ClusterCurator being curated
        curation: Parsed spec.desiredCuration
        settings: Application settings (image, service account, limits)
        job_name: Explicit Job name (random when omitted)

    Returns:
        Job manifest dict ready for BatchV1Api.create_namespaced_job
    """
    job_name = job_name or generate_job_name()
    namespace = curator.metadata.namespace
    labels = {
        CURATOR_JOB_LABEL: curator.cluster_name,
        CURATION_LABEL: curation.value,
    }

    override = curator.hooks_for(curation).override_job
    if override:
        job = deepcopy(override)
        job.setdefault("apiVersion", "batch/v1")
        job.setdefault("kind", "Job")
    else:
        env = [
            {"name": "CLUSTER_NAME", "value": curator.cluster_name},
            {"name": "CURATOR_NAMESPACE", "value": namespace},
            {"name": "CURATION", "value": curation.value},
            {"name": "JOB_NAME", "value": job_name},
        ]
        job_spec: dict[str, Any] = {
            "backoffLimit": settings.curator.backoff_limit,
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "serviceAccountName": settings.curator.service_account,
                    "restartPolicy": "Never",
                    "initContainers": [
                        _step_container(step, env, settings) for step in plan_steps(curation)
                    ],
                    "containers": [_step_container(CurationStep.DONE, env, settings)],
                },
            },
        }
        if settings.curator.ttl_seconds_after_finished is not None:
            job_spec["ttlSecondsAfterFinished"] = settings.curator.ttl_seconds_after_finished
        job = {"apiVersion": "batch/v1", "kind": "Job", "spec": job_spec}

    metadata = job.setdefault("metadata", {})
    metadata.pop("generateName", None)
    metadata["name"] = job_name
    metadata["namespace"] = namespace
    metadata["labels"] = {**(metadata.get("labels") or {}), **labels}
    metadata["ownerReferences"] = [curator.owner_reference()]
    return job


__all__ = [
    "CURATION_LABEL",
    "CURATOR_JOB_LABEL",
    "JOB_NAME_PREFIX",
    "build_curator_job",
    "generate_job_name",
]
