"""Ansible pre/post hooks.

Every hook of a phase becomes one AnsibleJob, created and awaited in
order. The Ansible Automation Platform resource operator launches the
Tower job or workflow template and reports back in
status.ansibleJobResult.
"""

from typing import Any

from kubernetes import client

from curator.config.settings import settings
from curator.crd import ClusterCurator, CurationType, Hook, HookType
from curator.crd.external import ANSIBLE_JOB, ANSIBLE_JOB_KIND
from curator.curation.clusters import ClusterTarget
from curator.curation.plan import CurationStep
from curator.curation.polling import poll_until
from curator.errors import CurationError
from curator.observability._logging import get_logger
from curator.observability._metrics import hook_jobs_total


log = get_logger(__name__)

PREHOOK = "prehook"
POSTHOOK = "posthook"

HOOK_PHASE_LABEL = "cluster.open-cluster-management.io/curator-hook"
HOOK_CLUSTER_LABEL = "cluster.open-cluster-management.io/cluster-name"

ANSIBLE_SUCCESS = "successful"
ANSIBLE_FAILURES = frozenset({"failed", "error", "canceled"})


def build_ansible_job(
    curator: ClusterCurator,
    curation: CurationType,
    phase: str,
    hook: Hook,
    target: ClusterTarget | None,
) -> dict[str, Any]:
    """Build an AnsibleJob for one hook.

    Cluster variables are merged under the user's extra_vars so a hook
    can override anything the curator fills in.
    """
    hooks = curator.hooks_for(curation)
    extra_vars: dict[str, Any] = {"cluster_name": curator.cluster_name}
    if target is not None:
        extra_vars.update(target.hook_vars())
    extra_vars.update(hook.extra_vars)

    spec: dict[str, Any] = {
        "tower_auth_secret": hooks.tower_auth_secret,
        "extra_vars": extra_vars,
    }
    if hook.type == HookType.WORKFLOW:
        spec["workflow_template_name"] = hook.name
    else:
        spec["job_template_name"] = hook.name
    if hooks.inventory:
        spec["inventory"] = hooks.inventory

    return {
        "apiVersion": f"{ANSIBLE_JOB.group}/{ANSIBLE_JOB.version}",
        "kind": ANSIBLE_JOB_KIND,
        "metadata": {
            "generateName": f"{phase}job-",
            "namespace": curator.metadata.namespace,
            "labels": {
                HOOK_PHASE_LABEL: phase,
                HOOK_CLUSTER_LABEL: curator.cluster_name,
            },
            "ownerReferences": [curator.owner_reference()],
        },
        "spec": spec,
    }


class HookRunner:
    """Creates AnsibleJobs for a hook phase and waits for each to finish."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        poll_interval_seconds: float | None = None,
    ) -> None:
        self.custom_api = custom_api
        self.poll_interval_seconds = (
            settings.curator.poll_interval_seconds
            if poll_interval_seconds is None
            else poll_interval_seconds
        )

    async def run_hooks(
        self,
        curator: ClusterCurator,
        curation: CurationType,
        phase: str,
        target: ClusterTarget | None = None,
    ) -> list[str]:
        """Run every hook of a phase in order.

        Returns:
            Names of the AnsibleJobs that ran

        Raises:
            CurationError: Missing secret, failed hook or timeout
        """
        step = CurationStep.PREHOOK.value if phase == PREHOOK else CurationStep.POSTHOOK.value
        hooks = curator.hooks_for(curation)
        hook_list = hooks.hooks(phase)

        if not hook_list:
            log.info("no_hooks_to_run", cluster=curator.cluster_name, phase=phase)
            return []

        if not hooks.tower_auth_secret:
            raise CurationError(
                code="missing_tower_secret",
                step=step,
                message=f"towerAuthSecret is required to run {curation.value} {phase} hooks",
            )

        timeout_seconds = hooks.job_monitor_timeout * 60
        job_names: list[str] = []

        for hook in hook_list:
            body = build_ansible_job(curator, curation, phase, hook, target)
            created = self.custom_api.create_namespaced_custom_object(
                group=ANSIBLE_JOB.group,
                version=ANSIBLE_JOB.version,
                namespace=curator.metadata.namespace,
                plural=ANSIBLE_JOB.plural,
                body=body,
            )
            job_name = created["metadata"]["name"]
            log.info(
                "ansible_job_created",
                cluster=curator.cluster_name,
                phase=phase,
                template=hook.name,
                template_type=hook.type.value,
                ansible_job=job_name,
            )

            try:
                await self.wait_for_ansible_job(
                    job_name, curator.metadata.namespace, step, timeout_seconds
                )
            except CurationError:
                hook_jobs_total.labels(phase=phase, result="failed").inc()
                raise

            hook_jobs_total.labels(phase=phase, result="successful").inc()
            job_names.append(job_name)

        return job_names

    async def wait_for_ansible_job(
        self, job_name: str, namespace: str, step: str, timeout_seconds: float
    ) -> str:
        """Wait until an AnsibleJob reports a final result."""

        async def check() -> str | None:
            job = self.custom_api.get_namespaced_custom_object(
                group=ANSIBLE_JOB.group,
                version=ANSIBLE_JOB.version,
                namespace=namespace,
                plural=ANSIBLE_JOB.plural,
                name=job_name,
            )
            result = (job.get("status") or {}).get("ansibleJobResult") or {}
            state = str(result.get("status") or "").lower()
            if state == ANSIBLE_SUCCESS:
                log.info("ansible_job_succeeded", ansible_job=job_name)
                return state
            if state in ANSIBLE_FAILURES:
                raise CurationError(
                    code="hook_failed",
                    step=step,
                    message=f"AnsibleJob {job_name} finished with status {state}",
                    details={"ansibleJob": job_name, "url": result.get("url")},
                )
            log.debug("ansible_job_waiting", ansible_job=job_name, status=state or "pending")
            return None

        return await poll_until(
            check,
            timeout_seconds=timeout_seconds,
            interval_seconds=self.poll_interval_seconds,
            step=step,
            description=f"AnsibleJob {job_name}",
        )


__all__ = [
    "POSTHOOK",
    "PREHOOK",
    "HookRunner",
    "build_ansible_job",
]
