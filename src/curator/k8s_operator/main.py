"""Curator Kubernetes Operator.

Main entry point for the operator that watches ClusterCurator resources
and runs curator Jobs for them, using the Kopf framework.

Usage:
    # Run in development mode (verbose)
    python -m curator.k8s_operator.main --dev --verbose

    # Run against a single namespace
    python -m curator.k8s_operator.main --namespace=cluster-a

    # Run with peering for multi-instance deployment
    python -m curator.k8s_operator.main --peering=cluster-curator
"""

import argparse
import sys
from typing import NoReturn

import kopf
from prometheus_client import start_http_server

from curator.config.settings import settings

# Import handlers to register their decorators
# This must happen before kopf.run() is called
from curator.k8s_operator import handlers  # noqa: F401
from curator.observability._logging import configure_logging, get_logger
from curator.observability._metrics import registry


logger = get_logger(__name__)

DEV_MODE_PRIORITY = 666


def build_operator_settings(peering_name: str | None, priority: int) -> kopf.OperatorSettings:
    """Kopf settings derived from the application settings."""
    kopf_settings = kopf.OperatorSettings()

    if settings.is_production or settings.observability.log_format == "json":
        kopf_settings.posting.level = "INFO"
    else:
        kopf_settings.posting.level = "DEBUG" if settings.debug else "INFO"

    if peering_name:
        kopf_settings.peering.name = peering_name
        kopf_settings.peering.priority = priority

    kopf_settings.watching.server_timeout = settings.kubernetes.api_timeout
    kopf_settings.watching.client_timeout = settings.kubernetes.api_timeout + 10
    return kopf_settings


def main(
    namespace: str | None = None,
    peering_name: str | None = None,
    liveness_port: int | None = None,
    priority: int = 0,
    dev_mode: bool = False,
) -> NoReturn:
    """Run the curator operator until it is stopped.

    Args:
        namespace: Namespace to watch. If None, watches all namespaces.
        peering_name: Kopf peering name for multi-instance coordination.
        liveness_port: Port for the liveness endpoint. If None, uses settings.
        priority: Operator priority for peering (higher = more preferred).
        dev_mode: If True, runs in development mode (pauses other operators).
    """
    namespace = namespace or settings.kubernetes.namespace
    peering_name = peering_name or settings.kubernetes.peering_id
    liveness_port = liveness_port or settings.observability.liveness_port

    logger.info(
        "operator_starting",
        version=settings.app_version,
        namespace=namespace or "all",
        peering=peering_name,
        liveness_port=liveness_port,
        dev_mode=dev_mode,
        curator_image=settings.curator.image,
    )

    if settings.observability.metrics_enabled:
        start_http_server(settings.observability.metrics_port, registry=registry)
        logger.info("metrics_server_started", port=settings.observability.metrics_port)

    # Same as kopf --dev: outrank every other operator in the peering
    if dev_mode:
        priority = max(priority, DEV_MODE_PRIORITY)

    kopf_settings = build_operator_settings(peering_name, priority)

    try:
        kopf.run(
            settings=kopf_settings,
            standalone=peering_name is None,
            namespaces=[namespace] if namespace else (),
            clusterwide=namespace is None,
            liveness_endpoint=f"http://0.0.0.0:{liveness_port}/healthz",
            priority=priority,
            peering_name=peering_name,
        )
    except KeyboardInterrupt:
        logger.info("operator_stopped_by_user")
        sys.exit(0)
    except Exception as error:
        logger.exception(
            "operator_crashed",
            error=str(error),
            error_type=type(error).__name__,
        )
        raise

    sys.exit(0)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for curator-operator."""
    parser = argparse.ArgumentParser(
        prog="curator-operator",
        description="Cluster curator operator - runs curation Jobs for ClusterCurators",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch all namespaces
  curator-operator

  # Watch one namespace
  curator-operator --namespace cluster-a

  # Run with peering for multi-instance
  curator-operator --peering cluster-curator --priority 100

Environment Variables:
  CURATOR_K8S_NAMESPACE          - Default namespace to watch
  CURATOR_JOB_IMAGE              - Image for curator Job containers
  CURATOR_DEBUG                  - Enable debug logging
        """,
    )
    parser.add_argument(
        "--namespace",
        "-n",
        type=str,
        default=None,
        help="Namespace to watch (default: all namespaces)",
    )
    parser.add_argument(
        "--peering",
        type=str,
        default=None,
        help="Peering name for multi-instance coordination",
    )
    parser.add_argument(
        "--priority",
        type=int,
        default=0,
        help="Operator priority for peering (higher = preferred)",
    )
    parser.add_argument(
        "--liveness-port",
        type=int,
        default=None,
        help="Port for the liveness endpoint",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Run in development mode (pauses other operators)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def cli() -> NoReturn:
    """Entry point for the curator-operator command."""
    args = build_parser().parse_args()

    if args.verbose:
        settings.debug = True
        configure_logging("DEBUG")

    main(
        namespace=args.namespace,
        peering_name=args.peering,
        liveness_port=args.liveness_port,
        priority=args.priority,
        dev_mode=args.dev,
    )


if __name__ == "__main__":
    cli()
