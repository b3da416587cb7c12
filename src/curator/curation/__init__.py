"""Curation engine.

Step planning, the curator Job manifest, and the implementation of every
step a curator Job container can run.
"""

from curator.curation.plan import CurationStep, parse_curation, plan_steps
from curator.curation.runner import StepRunner, run_step

__all__ = ["CurationStep", "StepRunner", "parse_curation", "plan_steps", "run_step"]
