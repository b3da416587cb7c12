"""Curator Job watcher.

Step containers report their own progress, but a container that is
killed (OOM, deadline, node loss) cannot. Watching the Job closes that
gap: once a curator Job finishes, the curator's status is reconciled
with the Job's outcome.
"""

from typing import Any

import kopf
from kubernetes import client

from curator.crd import (
    CURATOR_API_GROUP,
    CURATOR_API_VERSION,
    CURATOR_PLURAL,
)
from curator.curation.conditions import (
    CURATOR_JOB_CONDITION,
    REASON_FAILED,
    failed_condition,
    find_condition,
)
from curator.curation.job_builder import CURATION_LABEL, CURATOR_JOB_LABEL
from curator.kubernetes.clients import get_kube_clients, is_not_found
from curator.observability._logging import get_logger
from curator.observability._metrics import active_curations, curator_jobs_finished_total


log = get_logger(__name__)


def job_outcome(job_status: dict[str, Any] | None) -> tuple[str | None, str | None]:
    """('succeeded' | 'failed' | None, message) from a Job's status."""
    for condition in (job_status or {}).get("conditions") or []:
        if condition.get("status") != "True":
            continue
        if condition.get("type") == "Complete":
            return "succeeded", condition.get("message")
        if condition.get("type") == "Failed":
            return "failed", condition.get("message") or condition.get("reason")
    return None, None


def reconcile_finished_job(
    custom_api: client.CustomObjectsApi,
    job_name: str,
    namespace: str,
    cluster_name: str,
    curation: str,
    outcome: str,
    message: str | None,
) -> dict[str, Any] | None:
    """Align a curator's status with its finished Job.

    Returns:
        The status patch applied, or None if the curator is gone
    """
    try:
        curator = custom_api.get_namespaced_custom_object(
            group=CURATOR_API_GROUP,
            version=CURATOR_API_VERSION,
            namespace=namespace,
            plural=CURATOR_PLURAL,
            name=cluster_name,
        )
    except client.ApiException as e:
        if is_not_found(e):
            log.info("curator_gone_for_job", job=job_name, cluster=cluster_name)
            return None
        raise

    status = curator.get("status") or {}
    status_patch: dict[str, Any] = {}

    if status.get("curatingJob") == job_name:
        status_patch["curatingJob"] = None

    if outcome == "failed":
        overall = find_condition(status.get("conditions"), CURATOR_JOB_CONDITION) or {}
        if overall.get("reason") != REASON_FAILED:
            status_patch["conditions"] = failed_condition(
                status.get("conditions"),
                job_name,
                curation,
                message or "curator Job failed",
            )

    if status_patch:
        custom_api.patch_namespaced_custom_object_status(
            group=CURATOR_API_GROUP,
            version=CURATOR_API_VERSION,
            namespace=namespace,
            plural=CURATOR_PLURAL,
            name=cluster_name,
            body={"status": status_patch},
        )
    return status_patch


@kopf.on.update(  # type: ignore[misc]
    "batch",
    "v1",
    "jobs",
    field="status",
    labels={CURATOR_JOB_LABEL: kopf.PRESENT},
)
async def curator_job_status_changed(
    *,
    name: str | None,
    namespace: str | None,
    labels: kopf.Labels,
    new: Any | None,
    **_kwargs: Any,
) -> dict[str, Any] | None:
    """Reconcile the owning curator when a curator Job finishes."""
    if name is None or namespace is None:
        return None

    outcome, message = job_outcome(new if isinstance(new, dict) else None)
    if outcome is None:
        return None

    cluster_name = labels.get(CURATOR_JOB_LABEL, "")
    curation = labels.get(CURATION_LABEL, "unknown")
    log.info(
        "curator_job_finished",
        job=name,
        namespace=namespace,
        cluster=cluster_name,
        outcome=outcome,
    )

    applied = reconcile_finished_job(
        get_kube_clients().custom,
        name,
        namespace,
        cluster_name,
        curation,
        outcome,
        message,
    )
    curator_jobs_finished_total.labels(result=outcome).inc()
    if applied is not None and "curatingJob" in applied:
        active_curations.dec()
    return {"outcome": outcome}


__all__ = [
    "curator_job_status_changed",
    "job_outcome",
    "reconcile_finished_job",
]
