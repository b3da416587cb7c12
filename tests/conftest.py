"""Pytest configuration and fixtures for curator tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

if TYPE_CHECKING:
    from collections.abc import Callable, Generator


# Ensure we're using test configuration
os.environ.setdefault("CURATOR_ENVIRONMENT", "development")
os.environ.setdefault("CURATOR_OBSERVABILITY_METRICS_ENABLED", "false")


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Reset settings cache before each test."""
    from curator.config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def not_found() -> ApiException:
    """A 404 from the Kubernetes API."""
    return ApiException(status=404, reason="Not Found")


@pytest.fixture
def api_not_found() -> Callable[[], ApiException]:
    """Factory for 404 API errors."""
    return not_found


@pytest.fixture
def custom_api() -> MagicMock:
    """Mocked CustomObjectsApi."""
    return MagicMock()


@pytest.fixture
def kube_clients(custom_api: MagicMock) -> MagicMock:
    """Mocked KubeClients bundle."""
    clients = MagicMock()
    clients.custom = custom_api
    clients.batch = MagicMock()
    return clients


@pytest.fixture
def sample_curator() -> dict[str, Any]:
    """Sample ClusterCurator requesting an install with hooks."""
    return {
        "apiVersion": "cluster.open-cluster-management.io/v1beta1",
        "kind": "ClusterCurator",
        "metadata": {
            "name": "sno-1",
            "namespace": "sno-1",
            "uid": "curator-uid-12345",
            "annotations": {},
        },
        "spec": {
            "desiredCuration": "install",
            "install": {
                "towerAuthSecret": "toweraccess",
                "jobMonitorTimeout": 10,
                "prehook": [
                    {
                        "name": "Demo Job Template",
                        "extra_vars": {"variable1": "something-interesting"},
                    },
                ],
                "posthook": [
                    {"name": "Demo Workflow", "type": "Workflow"},
                ],
            },
            "upgrade": {
                "desiredUpdate": "4.14.10",
                "channel": "stable-4.14",
                "monitorTimeout": 150,
            },
        },
        "status": {},
    }


@pytest.fixture
def sample_cluster_deployment() -> dict[str, Any]:
    """Paused Hive ClusterDeployment."""
    return {
        "apiVersion": "hive.openshift.io/v1",
        "kind": "ClusterDeployment",
        "metadata": {"name": "sno-1", "namespace": "sno-1"},
        "spec": {
            "clusterName": "sno-1",
            "baseDomain": "example.com",
            "installAttemptsLimit": 0,
            "installed": False,
        },
    }


@pytest.fixture
def sample_hosted_cluster() -> dict[str, Any]:
    """Paused HyperShift HostedCluster."""
    return {
        "apiVersion": "hypershift.openshift.io/v1beta1",
        "kind": "HostedCluster",
        "metadata": {"name": "hosted-1", "namespace": "clusters"},
        "spec": {
            "pausedUntil": "true",
            "release": {"image": "quay.io/openshift-release-dev/ocp-release:4.14.8-multi"},
        },
        "status": {},
    }


@pytest.fixture
def sample_cluster_version() -> dict[str, Any]:
    """ClusterVersion as returned by a ManagedClusterView."""
    return {
        "apiVersion": "config.openshift.io/v1",
        "kind": "ClusterVersion",
        "metadata": {"name": "version", "resourceVersion": "12345"},
        "spec": {"channel": "stable-4.14", "clusterID": "abc"},
        "status": {
            "availableUpdates": [
                {"version": "4.14.10", "image": "quay.io/ocp-release@sha256:aaa"},
                {"version": "4.14.11", "image": "quay.io/ocp-release@sha256:bbb"},
            ],
            "conditionalUpdates": [
                {
                    "release": {"version": "4.14.12", "image": "quay.io/ocp-release@sha256:ccc"},
                    "risks": [{"name": "AzureRegistryImagePreservation"}],
                }
            ],
            "history": [
                {"state": "Completed", "version": "4.14.8"},
            ],
        },
    }
