"""Curator settings configuration.

Uses Pydantic Settings for type-safe configuration management
with support for environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from curator.version import __version__


class KubernetesSettings(BaseSettings):
    """Kubernetes configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CURATOR_K8S_",
        extra="ignore",
    )

    in_cluster: bool = Field(
        default=False,
        description="Whether running inside a Kubernetes cluster",
    )
    kubeconfig: str | None = Field(
        default=None,
        description="Path to kubeconfig file (if not in-cluster)",
    )
    context: str | None = Field(
        default=None,
        description="Kubernetes context to use",
    )
    namespace: str | None = Field(
        default=None,
        description="Namespace to watch (None = all namespaces)",
    )
    peering_id: str | None = Field(
        default=None,
        description="Kopf peering name for multi-instance deployments",
    )
    api_timeout: int = Field(
        default=60,
        ge=1,
        description="Watch request timeout in seconds",
    )


class CuratorSettings(BaseSettings):
    """Curator Job and step configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CURATOR_JOB_",
        extra="ignore",
    )

    image: str = Field(
        default="quay.io/stolostron/cluster-curator-controller:latest",
        description="Image used for curator Job containers",
    )
    image_pull_policy: Literal["Always", "IfNotPresent", "Never"] = Field(
        default="IfNotPresent",
        description="Pull policy for curator Job containers",
    )
    service_account: str = Field(
        default="cluster-installer",
        description="Service account the curator Job runs as",
    )
    backoff_limit: int = Field(
        default=0,
        ge=0,
        description="Job backoffLimit (0 = a failed step is final)",
    )
    ttl_seconds_after_finished: int | None = Field(
        default=None,
        ge=0,
        description="Job ttlSecondsAfterFinished (None keeps finished Jobs for audit)",
    )
    poll_interval_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Delay between status polls while monitoring",
    )
    provision_timeout_minutes: int = Field(
        default=120,
        ge=1,
        description="Maximum time for activate-and-monitor",
    )
    import_timeout_minutes: int = Field(
        default=15,
        ge=1,
        description="Maximum time to wait for the ManagedCluster to become available",
    )
    destroy_timeout_minutes: int = Field(
        default=60,
        ge=1,
        description="Maximum time to wait for cluster resources to be removed",
    )
    active_job_retry_seconds: int = Field(
        default=30,
        ge=1,
        description="Retry delay when a curation is requested while a Job is running",
    )
    release_image_template: str = Field(
        default="quay.io/openshift-release-dev/ocp-release:{version}-multi",
        description="Release image used for hosted clusters when an update has no image",
    )

    @field_validator("release_image_template")
    @classmethod
    def validate_release_image_template(cls, v: str) -> str:
        """Ensure the release image template has a version placeholder."""
        if "{version}" not in v:
            msg = "release_image_template must contain a '{version}' placeholder"
            raise ValueError(msg)
        return v


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CURATOR_OBSERVABILITY_",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )

    # Metrics
    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics",
    )
    metrics_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port for metrics endpoint",
    )
    metrics_namespace: str = Field(
        default="curator",
        description="Prefix for all Prometheus metric names",
    )
    liveness_port: int = Field(
        default=8081,
        ge=1,
        le=65535,
        description="Port for the kopf liveness endpoint",
    )


class Settings(BaseSettings):
    """Main curator configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CURATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # Application info
    app_version: str = Field(default=__version__)
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    # Nested settings
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    curator: CuratorSettings = Field(default_factory=CuratorSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def is_production(self) -> bool:
        """Whether running in the production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def validate_production_logging(self) -> Settings:
        """Production deployments must emit machine-readable logs."""
        if self.is_production and self.observability.log_format == "console":
            msg = "Console log format is not allowed in production"
            raise ValueError(msg)
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are cached after first load.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()


def reload_settings() -> Settings:
    """Force reload settings (clears cache).

    Returns:
        Settings: Fresh settings instance.
    """
    get_settings.cache_clear()
    return get_settings()


settings = get_settings()
