"""Curator Command Line Interface.

`curator step` is the entrypoint of every curator Job container;
`curator status` is a diagnostic view of a ClusterCurator; `curator run`
starts the operator.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import TYPE_CHECKING, Any

import yaml
from kubernetes import client

from curator.crd import (
    CURATOR_API_GROUP,
    CURATOR_API_VERSION,
    CURATOR_PLURAL,
    ClusterCurator,
)
from curator.curation.clusters import resolve_cluster
from curator.curation.plan import CurationStep
from curator.curation.runner import describe_target, run_step
from curator.errors import CurationError
from curator.kubernetes.clients import get_kube_clients, is_not_found
from curator.observability._logging import configure_logging, get_logger
from curator.version import __version__

if TYPE_CHECKING:
    from argparse import Namespace


log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="curator",
        description="Cluster curator - install, upgrade, destroy and scale curation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  curator run                              Start the operator
  curator step prehook-ansiblejob          Run one step (inside a curator Job)
  curator status my-cluster -n my-cluster  Show a ClusterCurator's progress
        """,
    )

    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Start the curator operator")
    run_parser.add_argument(
        "--namespace",
        type=str,
        default=None,
        help="Namespace to watch (default: all namespaces)",
    )
    run_parser.add_argument(
        "--dev",
        action="store_true",
        help="Run in development mode",
    )

    step_parser = subparsers.add_parser("step", help="Run one curation step")
    step_parser.add_argument(
        "step",
        choices=[s.value for s in CurationStep],
        help="Step to run",
    )
    step_parser.add_argument(
        "--cluster",
        type=str,
        default=None,
        help="Cluster (ClusterCurator) name (default: $CLUSTER_NAME)",
    )
    step_parser.add_argument(
        "--namespace",
        "-n",
        type=str,
        default=None,
        help="ClusterCurator namespace (default: $CURATOR_NAMESPACE, then the cluster name)",
    )

    status_parser = subparsers.add_parser("status", help="Show curation progress")
    status_parser.add_argument("cluster", type=str, help="Cluster (ClusterCurator) name")
    status_parser.add_argument(
        "--namespace",
        "-n",
        type=str,
        default=None,
        help="ClusterCurator namespace (default: the cluster name)",
    )
    status_parser.add_argument(
        "--output",
        "-o",
        choices=["yaml", "json"],
        default="yaml",
        help="Output format",
    )

    return parser


def cmd_run(args: Namespace) -> int:
    """Start the operator (does not return)."""
    from curator.k8s_operator.main import main as operator_main

    operator_main(namespace=args.namespace, dev_mode=args.dev)
    return EXIT_OK


def cmd_step(args: Namespace) -> int:
    """Run one curation step."""
    cluster = args.cluster or os.environ.get("CLUSTER_NAME")
    if not cluster:
        print("error: --cluster or CLUSTER_NAME is required", file=sys.stderr)
        return EXIT_USAGE
    namespace = args.namespace or os.environ.get("CURATOR_NAMESPACE") or cluster
    job_name = os.environ.get("JOB_NAME")
    curation = os.environ.get("CURATION")

    try:
        asyncio.run(
            run_step(
                CurationStep(args.step),
                cluster,
                namespace,
                get_kube_clients(),
                job_name=job_name,
                curation=curation,
            )
        )
    except CurationError as e:
        log.error("curation_step_failed", **e.to_dict())
        print(f"{e.step}: {e.message}", file=sys.stderr)
        return EXIT_FAILED

    return EXIT_OK


def curator_summary(curator: ClusterCurator) -> dict[str, Any]:
    """Status view printed by `curator status`."""
    return {
        "cluster": curator.cluster_name,
        "namespace": curator.metadata.namespace,
        "desiredCuration": curator.spec.desired_curation,
        "curatingJob": curator.status.curating_job,
        "conditions": [
            c.model_dump(by_alias=True, exclude_none=True) for c in curator.status.conditions
        ],
    }


def cmd_status(args: Namespace) -> int:
    """Print a ClusterCurator's curation status."""
    namespace = args.namespace or args.cluster
    clients = get_kube_clients()
    try:
        obj = clients.custom.get_namespaced_custom_object(
            group=CURATOR_API_GROUP,
            version=CURATOR_API_VERSION,
            namespace=namespace,
            plural=CURATOR_PLURAL,
            name=args.cluster,
        )
    except client.ApiException as e:
        if is_not_found(e):
            print(f"ClusterCurator {namespace}/{args.cluster} not found", file=sys.stderr)
            return EXIT_FAILED
        raise

    summary = curator_summary(ClusterCurator.from_kubernetes_object(obj))
    summary["target"] = describe_target(resolve_cluster(clients.custom, args.cluster, namespace))

    if args.output == "json":
        print(json.dumps(summary, indent=2))
    else:
        print(yaml.safe_dump(summary, sort_keys=False), end="")
    return EXIT_OK


COMMANDS = {
    "run": cmd_run,
    "step": cmd_step,
    "status": cmd_status,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        configure_logging("DEBUG")

    if not args.command:
        parser.print_help()
        return EXIT_OK

    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
