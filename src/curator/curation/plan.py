"""Curation step planning.

Each curation runs as one Job whose init containers execute the steps in
order; the main container always runs the final `done` step.
"""

from enum import Enum

from curator.crd import CurationType
from curator.errors import CurationError


class CurationStep(str, Enum):
    """Curation step names, used both as container names and CLI commands."""

    PREHOOK = "prehook-ansiblejob"
    ACTIVATE_AND_MONITOR = "activate-and-monitor"
    MONITOR_IMPORT = "monitor-import"
    UPGRADE_CLUSTER = "upgrade-cluster"
    MONITOR_UPGRADE = "monitor-upgrade"
    DESTROY_CLUSTER = "destroy-cluster"
    MONITOR_DESTROY = "monitor-destroy"
    POSTHOOK = "posthook-ansiblejob"
    DONE = "done"


STEP_PLANS: dict[CurationType, tuple[CurationStep, ...]] = {
    CurationType.INSTALL: (
        CurationStep.PREHOOK,
        CurationStep.ACTIVATE_AND_MONITOR,
        CurationStep.MONITOR_IMPORT,
        CurationStep.POSTHOOK,
    ),
    CurationType.UPGRADE: (
        CurationStep.PREHOOK,
        CurationStep.UPGRADE_CLUSTER,
        CurationStep.MONITOR_UPGRADE,
        CurationStep.POSTHOOK,
    ),
    CurationType.DESTROY: (
        CurationStep.PREHOOK,
        CurationStep.DESTROY_CLUSTER,
        CurationStep.MONITOR_DESTROY,
        CurationStep.POSTHOOK,
    ),
    CurationType.SCALE: (
        CurationStep.PREHOOK,
        CurationStep.POSTHOOK,
    ),
}


def parse_curation(value: str | None) -> CurationType:
    """Parse spec.desiredCuration.

    Raises:
        CurationError: If the value is missing or not a known curation
    """
    if not value:
        raise CurationError(
            code="no_desired_curation",
            step="plan",
            message="spec.desiredCuration is not set",
        )
    try:
        return CurationType(value.strip().lower())
    except ValueError as e:
        allowed = ", ".join(c.value for c in CurationType)
        raise CurationError(
            code="invalid_curation",
            step="plan",
            message=f"Invalid curation '{value}', expected one of: {allowed}",
            details={"desiredCuration": value},
        ) from e


def plan_steps(curation: CurationType) -> list[CurationStep]:
    """Ordered init-container steps for a curation (excluding `done`)."""
    return list(STEP_PLANS[curation])


__all__ = [
    "STEP_PLANS",
    "CurationStep",
    "parse_curation",
    "plan_steps",
]
