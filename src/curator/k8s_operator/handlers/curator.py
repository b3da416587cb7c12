"""ClusterCurator handlers.

Setting spec.desiredCuration starts a curation: the operator builds the
curator Job for it and records the Job in status. Only one curator Job
runs per ClusterCurator; a new request waits (kopf retries) until the
running Job has finished.
"""

from typing import Any

import kopf
from kubernetes import client

from curator.config.settings import settings
from curator.crd import (
    CURATOR_API_GROUP,
    CURATOR_API_VERSION,
    CURATOR_PLURAL,
    ClusterCurator,
)
from curator.curation.conditions import (
    CURATOR_JOB_CONDITION,
    REASON_FAILED,
    set_condition,
    started_condition,
)
from curator.curation.job_builder import build_curator_job
from curator.curation.plan import parse_curation
from curator.errors import CurationError
from curator.kubernetes.clients import get_kube_clients, is_not_found
from curator.observability._logging import get_logger
from curator.observability._metrics import active_curations, curations_started_total


log = get_logger(__name__)


def job_is_finished(job: Any) -> bool:
    """Whether a V1Job reached Complete or Failed."""
    status = getattr(job, "status", None)
    for condition in getattr(status, "conditions", None) or []:
        if condition.type in ("Complete", "Failed") and condition.status == "True":
            return True
    return False


def _curating_job_active(batch_api: client.BatchV1Api, job_name: str, namespace: str) -> bool:
    try:
        job = batch_api.read_namespaced_job(name=job_name, namespace=namespace)
    except client.ApiException as e:
        if is_not_found(e):
            return False
        raise
    return not job_is_finished(job)


def start_curation(
    body: dict[str, Any],
    patch: kopf.Patch,
    batch_api: client.BatchV1Api,
) -> dict[str, Any]:
    """Create the curator Job for the curator's desiredCuration.

    Raises:
        kopf.TemporaryError: A curator Job is still running
    """
    curator = ClusterCurator.from_kubernetes_object(body)
    name = curator.metadata.name
    namespace = curator.metadata.namespace
    desired = curator.spec.desired_curation

    if not desired:
        log.debug("no_curation_requested", curator=name, namespace=namespace)
        return {"curation": None}

    conditions = [c.model_dump(by_alias=True, exclude_none=True) for c in curator.status.conditions]

    try:
        curation = parse_curation(desired)
    except CurationError as e:
        log.warning("invalid_curation_requested", curator=name, namespace=namespace, value=desired)
        patch.status["conditions"] = set_condition(
            conditions,
            CURATOR_JOB_CONDITION,
            "True",
            REASON_FAILED,
            f"Invalid curation: {e.message}",
        )
        return {"curation": desired, "error": e.message}

    running = curator.status.curating_job
    if running and _curating_job_active(batch_api, running, namespace):
        raise kopf.TemporaryError(
            f"Curator Job {running} is still running for {namespace}/{name}",
            delay=settings.curator.active_job_retry_seconds,
        )

    job = build_curator_job(curator, curation, settings)
    job_name = job["metadata"]["name"]
    batch_api.create_namespaced_job(namespace=namespace, body=job)

    patch.status["curatingJob"] = job_name
    patch.status["conditions"] = started_condition(conditions, job_name, curation.value)

    curations_started_total.labels(curation=curation.value).inc()
    active_curations.inc()
    log.info(
        "curator_job_created",
        curator=name,
        namespace=namespace,
        curation=curation.value,
        job=job_name,
    )
    return {"curation": curation.value, "job": job_name}


@kopf.on.create(CURATOR_API_GROUP, CURATOR_API_VERSION, CURATOR_PLURAL)  # type: ignore[misc]
async def curator_created(
    *,
    body: kopf.Body,
    patch: kopf.Patch,
    **_kwargs: Any,
) -> dict[str, Any]:
    """Start a curation for curators created with desiredCuration set."""
    return start_curation(dict(body), patch, get_kube_clients().batch)


@kopf.on.update(  # type: ignore[misc]
    CURATOR_API_GROUP,
    CURATOR_API_VERSION,
    CURATOR_PLURAL,
    field="spec.desiredCuration",
)
async def desired_curation_changed(
    *,
    old: Any | None,
    new: Any | None,
    body: kopf.Body,
    patch: kopf.Patch,
    **_kwargs: Any,
) -> dict[str, Any]:
    """Start a curation when spec.desiredCuration changes to a value."""
    log.info(
        "desired_curation_changed",
        curator=body.get("metadata", {}).get("name"),
        old=old,
        new=new,
    )
    return start_curation(dict(body), patch, get_kube_clients().batch)


@kopf.on.delete(CURATOR_API_GROUP, CURATOR_API_VERSION, CURATOR_PLURAL, optional=True)  # type: ignore[misc]
async def curator_deleted(
    *,
    name: str | None,
    namespace: str | None,
    status: kopf.Status,
    **_kwargs: Any,
) -> None:
    """Log curator removal; its Jobs and AnsibleJobs go with it via ownerReferences."""
    if status.get("curatingJob"):
        active_curations.dec()
    log.info("curator_deleted", curator=name, namespace=namespace)


__all__ = [
    "curator_created",
    "curator_deleted",
    "desired_curation_changed",
    "job_is_finished",
    "start_curation",
]
