"""Curation step execution.

Each container of a curator Job runs exactly one step through
`StepRunner.run`. Progress and failures are written into the curator's
status conditions before the process exits, so the Job's outcome is
always visible on the ClusterCurator itself.

A Job works for the curation it was created for (its CURATION env). If
spec.desiredCuration moves on while the Job runs, the remaining steps fail
with `curation_changed` and the new request is left for the operator to
pick up once this Job is finished.
"""

import time
from typing import Any

from kubernetes import client

from curator.crd import (
    CURATOR_API_GROUP,
    CURATOR_API_VERSION,
    CURATOR_PLURAL,
    ClusterCurator,
    CurationType,
)
from curator.curation.activation import Activator
from curator.curation.clusters import ClusterTarget, ClusterType, resolve_cluster
from curator.curation.conditions import ConditionReporter
from curator.curation.destroy import Destroyer
from curator.curation.hooks import POSTHOOK, PREHOOK, HookRunner
from curator.curation.plan import CurationStep, parse_curation, plan_steps
from curator.curation.upgrade import Upgrader
from curator.errors import CurationError, api_error, ensure_curation_error
from curator.kubernetes.clients import KubeClients, is_not_found
from curator.observability._logging import bind_curation_context, get_logger
from curator.observability._metrics import curation_step_duration_seconds, curation_steps_total


log = get_logger(__name__)


def requested_curation(curator: ClusterCurator) -> str | None:
    """Normalized spec.desiredCuration, or None when unset."""
    value = (curator.spec.desired_curation or "").strip().lower()
    return value or None


class StepRunner:
    """Runs one curation step for one ClusterCurator."""

    def __init__(
        self,
        clients: KubeClients,
        cluster_name: str,
        namespace: str,
        job_name: str | None = None,
        poll_interval_seconds: float | None = None,
        curation: str | None = None,
    ) -> None:
        self.clients = clients
        self.cluster_name = cluster_name
        self.namespace = namespace
        self.job_name = job_name or "curator-job"
        self.curation = curation
        self.reporter = ConditionReporter(clients.custom, cluster_name, namespace)
        self.hooks = HookRunner(clients.custom, poll_interval_seconds)
        self.activator = Activator(clients.custom, poll_interval_seconds)
        self.upgrader = Upgrader(clients.custom, poll_interval_seconds)
        self.destroyer = Destroyer(clients.custom, poll_interval_seconds)

    def load_curator(self) -> ClusterCurator:
        """Read the ClusterCurator this runner works for."""
        try:
            obj = self.clients.custom.get_namespaced_custom_object(
                group=CURATOR_API_GROUP,
                version=CURATOR_API_VERSION,
                namespace=self.namespace,
                plural=CURATOR_PLURAL,
                name=self.cluster_name,
            )
        except client.ApiException as e:
            if is_not_found(e):
                raise CurationError(
                    code="curator_not_found",
                    step="load",
                    message=f"ClusterCurator {self.namespace}/{self.cluster_name} not found",
                ) from e
            raise api_error(e, "load") from e
        return ClusterCurator.from_kubernetes_object(obj)

    async def run(self, step: CurationStep) -> None:
        """Execute a step, reporting its outcome in the curator conditions.

        Raises:
            CurationError: The step failed (already reported in status)
        """
        curator = self.load_curator()
        curation = parse_curation(self.curation or curator.spec.desired_curation)
        bind_curation_context(
            cluster=self.cluster_name, curation=curation.value, step=step.value
        )

        if step not in plan_steps(curation) and step != CurationStep.DONE:
            log.warning("step_not_in_plan", planned=[s.value for s in plan_steps(curation)])

        started = time.monotonic()
        try:
            if step == CurationStep.DONE:
                self._complete(curator, curation)
                return

            self._check_requested(curator, curation, step)
            log.info("step_started")
            self.reporter.started(step.value)
            message = await self._dispatch(step, curator, curation)
            self.reporter.finished(step.value, message)
        except Exception as e:
            error = ensure_curation_error(e, step=step.value)
            curation_steps_total.labels(step=step.value, result="failed").inc()
            log.error("step_failed", **error.to_dict())
            self._report_failure(step, curation, error)
            if error is e:
                raise
            raise error from e
        finally:
            curation_step_duration_seconds.labels(step=step.value).observe(
                time.monotonic() - started
            )

        curation_steps_total.labels(step=step.value, result="succeeded").inc()
        log.info("step_finished", result=message)

    def _check_requested(
        self, curator: ClusterCurator, curation: CurationType, step: CurationStep
    ) -> None:
        """Fail when spec.desiredCuration no longer asks for this Job's curation."""
        requested = requested_curation(curator)
        if requested == curation.value:
            return
        raise CurationError(
            code="curation_changed",
            step=step.value,
            message=(
                f"desiredCuration changed to {requested or 'nothing'} "
                f"while the {curation.value} Job was running"
            ),
            details={"jobCuration": curation.value, "requested": requested},
        )

    def _report_failure(
        self, step: CurationStep, curation: CurationType, error: CurationError
    ) -> None:
        try:
            if step != CurationStep.DONE:
                self.reporter.failed(step.value, error.message)
            self.reporter.curation_failed(self.job_name, curation.value, error.message)
        except client.ApiException as e:
            log.exception("failure_report_failed", error=e.reason)

    def _complete(self, curator: ClusterCurator, curation: CurationType) -> None:
        """Close the curation, clearing spec.desiredCuration if it still asks for it."""
        self.reporter.curation_finished(self.job_name, curation.value)

        requested = requested_curation(curator)
        if requested == curation.value:
            self.clients.custom.patch_namespaced_custom_object(
                group=CURATOR_API_GROUP,
                version=CURATOR_API_VERSION,
                namespace=self.namespace,
                plural=CURATOR_PLURAL,
                name=self.cluster_name,
                body={"spec": {"desiredCuration": None}},
            )
        else:
            log.info("newer_curation_requested", requested=requested)

        curation_steps_total.labels(step=CurationStep.DONE.value, result="succeeded").inc()
        log.info("curation_completed", job=self.job_name)

    async def _dispatch(
        self, step: CurationStep, curator: ClusterCurator, curation: CurationType
    ) -> str:
        target = resolve_cluster(self.clients.custom, self.cluster_name, self.namespace)

        if step in (CurationStep.PREHOOK, CurationStep.POSTHOOK):
            phase = PREHOOK if step == CurationStep.PREHOOK else POSTHOOK
            jobs = await self.hooks.run_hooks(curator, curation, phase, target)
            return f"{len(jobs)} AnsibleJob(s) completed: {', '.join(jobs)}" if jobs else "No jobs to run"

        if step == CurationStep.ACTIVATE_AND_MONITOR:
            patched = await self.activator.activate(target)
            await self.activator.monitor_provision(target)
            return f"Cluster provisioned (activated: {', '.join(patched) or 'none needed'})"

        if step == CurationStep.MONITOR_IMPORT:
            await self.activator.monitor_import(self.cluster_name)
            return "ManagedCluster is available"

        if step == CurationStep.UPGRADE_CLUSTER:
            release = await self.upgrader.upgrade(curator, target)
            return f"Upgrade to {release.version} requested" if release else "No version change needed"

        if step == CurationStep.MONITOR_UPGRADE:
            await self.upgrader.monitor(curator, target)
            return "Upgrade completed"

        if step == CurationStep.DESTROY_CLUSTER:
            deleted = await self.destroyer.destroy(target)
            return f"Deleted: {', '.join(deleted) or 'nothing left to delete'}"

        if step == CurationStep.MONITOR_DESTROY:
            if target.cluster_type == ClusterType.IMPORTED:
                return "Cluster resources already removed"
            await self.destroyer.monitor(target)
            return "Cluster resources removed"

        raise CurationError(
            code="unknown_step",
            step=step.value,
            message=f"No handler for step {step.value}",
        )


async def run_step(
    step: CurationStep,
    cluster_name: str,
    namespace: str,
    clients: KubeClients,
    job_name: str | None = None,
    curation: str | None = None,
) -> None:
    """Convenience wrapper used by the CLI."""
    runner = StepRunner(clients, cluster_name, namespace, job_name, curation=curation)
    await runner.run(step)


def describe_target(target: ClusterTarget) -> dict[str, Any]:
    """Small summary of a resolved cluster, for diagnostics."""
    return {
        "name": target.name,
        "namespace": target.namespace,
        "type": target.cluster_type.value,
    }


__all__ = ["StepRunner", "describe_target", "run_step"]
