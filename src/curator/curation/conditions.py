"""ClusterCurator status conditions.

The overall `clustercurator-job` condition tracks the curator Job; each
step gets a condition named after the step. Status "False" means in
progress, "True" means the Job or step concluded, and the reason tells
success (`Job_has_finished`) from failure (`Job_failed`).
"""

from copy import deepcopy
from datetime import UTC, datetime
from typing import Any

from kubernetes import client

from curator.crd import (
    CURATOR_API_GROUP,
    CURATOR_API_VERSION,
    CURATOR_PLURAL,
)
from curator.observability._logging import get_logger


log = get_logger(__name__)

CURATOR_JOB_CONDITION = "clustercurator-job"

REASON_STARTED = "Job_has_started"
REASON_FINISHED = "Job_has_finished"
REASON_FAILED = "Job_failed"


def utc_timestamp(now: datetime | None = None) -> str:
    """RFC3339 UTC timestamp with a Z suffix."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def set_condition(
    conditions: list[dict[str, Any]] | None,
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Upsert a condition, returning a new list.

    lastTransitionTime only moves when the status changes.
    """
    updated = deepcopy(list(conditions or []))
    for condition in updated:
        if condition.get("type") != condition_type:
            continue
        if condition.get("status") != status or not condition.get("lastTransitionTime"):
            condition["lastTransitionTime"] = utc_timestamp(now)
        condition["status"] = status
        condition["reason"] = reason
        condition["message"] = message
        return updated

    updated.append(
        {
            "type": condition_type,
            "status": status,
            "reason": reason,
            "message": message,
            "lastTransitionTime": utc_timestamp(now),
        }
    )
    return updated


def find_condition(
    conditions: list[dict[str, Any]] | None, condition_type: str
) -> dict[str, Any] | None:
    """Find a condition dict by type."""
    for condition in conditions or []:
        if condition.get("type") == condition_type:
            return condition
    return None


def job_message(job_name: str, curation: str) -> str:
    """Message of the overall condition."""
    return f"{job_name} DesiredCuration: {curation}"


def started_condition(
    conditions: list[dict[str, Any]] | None, job_name: str, curation: str
) -> list[dict[str, Any]]:
    """Mark the overall condition as started."""
    return set_condition(
        conditions,
        CURATOR_JOB_CONDITION,
        "False",
        REASON_STARTED,
        job_message(job_name, curation),
    )


def failed_condition(
    conditions: list[dict[str, Any]] | None, job_name: str, curation: str, error: str
) -> list[dict[str, Any]]:
    """Mark the overall condition as failed."""
    return set_condition(
        conditions,
        CURATOR_JOB_CONDITION,
        "True",
        REASON_FAILED,
        f"{job_message(job_name, curation)} Failed - {error}",
    )


class ConditionReporter:
    """Writes curation progress into a ClusterCurator's status subresource.

    Every call re-reads the curator so concurrent writers (the operator's
    Job watcher, the step container) do not clobber each other's conditions.
    """

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        name: str,
        namespace: str,
    ) -> None:
        self.custom_api = custom_api
        self.name = name
        self.namespace = namespace

    def _read_conditions(self) -> list[dict[str, Any]]:
        obj = self.custom_api.get_namespaced_custom_object(
            group=CURATOR_API_GROUP,
            version=CURATOR_API_VERSION,
            namespace=self.namespace,
            plural=CURATOR_PLURAL,
            name=self.name,
        )
        return list((obj.get("status") or {}).get("conditions") or [])

    def _patch_status(self, status: dict[str, Any]) -> None:
        self.custom_api.patch_namespaced_custom_object_status(
            group=CURATOR_API_GROUP,
            version=CURATOR_API_VERSION,
            namespace=self.namespace,
            plural=CURATOR_PLURAL,
            name=self.name,
            body={"status": status},
        )

    def _update(self, condition_type: str, status: str, reason: str, message: str) -> None:
        conditions = set_condition(
            self._read_conditions(), condition_type, status, reason, message
        )
        self._patch_status({"conditions": conditions})
        log.debug(
            "condition_updated",
            curator=self.name,
            namespace=self.namespace,
            condition=condition_type,
            reason=reason,
        )

    def started(self, step: str) -> None:
        """Mark a step as running."""
        self._update(step, "False", REASON_STARTED, f"{step} is running")

    def finished(self, step: str, message: str | None = None) -> None:
        """Mark a step as completed."""
        self._update(step, "True", REASON_FINISHED, message or f"{step} completed")

    def failed(self, step: str, error: str) -> None:
        """Mark a step as failed."""
        self._update(step, "True", REASON_FAILED, f"{step} failed - {error}")

    def curation_finished(self, job_name: str, curation: str) -> None:
        """Mark the overall curation as completed."""
        self._update(
            CURATOR_JOB_CONDITION,
            "True",
            REASON_FINISHED,
            job_message(job_name, curation),
        )

    def curation_failed(self, job_name: str, curation: str, error: str) -> None:
        """Mark the overall curation as failed."""
        conditions = failed_condition(self._read_conditions(), job_name, curation, error)
        self._patch_status({"conditions": conditions})
        log.warning(
            "curation_marked_failed",
            curator=self.name,
            namespace=self.namespace,
            job=job_name,
            error=error,
        )


__all__ = [
    "CURATOR_JOB_CONDITION",
    "REASON_FAILED",
    "REASON_FINISHED",
    "REASON_STARTED",
    "ConditionReporter",
    "failed_condition",
    "find_condition",
    "job_message",
    "set_condition",
    "started_condition",
    "utc_timestamp",
]
