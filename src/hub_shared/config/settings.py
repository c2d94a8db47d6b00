"""Configuration management with Pydantic Settings.

Environment variables are loaded from:
1. Environment variables (highest priority)
2. .env file (development)
3. Defaults (lowest priority)
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Logging format."""

    JSON = "json"
    TEXT = "text"


class RedisSettings(BaseSettings):
    """Redis configuration for the audit event channel."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: str | None = Field(default=None, description="Redis password")

    @property
    def url(self) -> str:
        """Build Redis URL."""
        if self.password:
            return f"redis://:{self.password}@{self.host}:{self.port}"
        return f"redis://{self.host}:{self.port}"


class KubeSettings(BaseSettings):
    """Hub API server access.

    In-cluster configuration is tried first; `kubeconfig` is used otherwise.
    """

    model_config = SettingsConfigDict(env_prefix="KUBE_")

    kubeconfig: str | None = Field(default=None, description="Path to a kubeconfig file")
    context: str | None = Field(default=None, description="Kubeconfig context name")
    request_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Deadline for a single API call"
    )
    watch_timeout_seconds: int = Field(
        default=300, gt=0, description="Server-side timeout of one watch stream"
    )


class FeatureGates(BaseSettings):
    """Hub registration feature gates. All default to disabled."""

    model_config = SettingsConfigDict(env_prefix="FEATURE_")

    managed_cluster_auto_approval: bool = Field(
        default=False,
        description="Auto-approve registration requests from the bootstrap allow-list",
    )
    v1beta1_csr_api_compatibility: bool = Field(
        default=False,
        description="Fall back to the certificates.k8s.io/v1beta1 API when v1 is not served",
    )


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use the appropriate prefix (e.g., REDIS_HOST).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="registration-hub", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        alias="ENV",
        description="Deployment environment",
    )

    # Logging configuration
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Logging format")

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server bind host")
    port: int = Field(default=8080, description="Server bind port")

    # Nested settings
    redis: RedisSettings = Field(default_factory=RedisSettings)
    kube: KubeSettings = Field(default_factory=KubeSettings)
    features: FeatureGates = Field(default_factory=FeatureGates)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment variables.
    """
    return Settings()


class RegistrationHubSettings(Settings):
    """Settings specific to the registration hub controllers."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Bootstrap principals, e.g. CLUSTER_AUTO_APPROVAL_USERS=system:serviceaccount:ns:sa,admin
    cluster_auto_approval_users: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Bootstrap users whose registration requests can be auto approved",
    )

    # Liveness
    lease_duration_seconds: int = Field(
        default=60,
        gt=0,
        description="Default heartbeat renewal interval (R) when neither lease nor cluster sets one",
    )
    staleness_multiplier: float = Field(
        default=5.0,
        description="Staleness threshold T expressed as a multiple of R",
    )
    liveness_resync_seconds: int = Field(
        default=60,
        gt=0,
        description="Full resync period of the liveness controller",
    )

    # Controller runtime
    resync_interval_seconds: int = Field(
        default=300,
        gt=0,
        description="Full resync period of the approval controller",
    )
    controller_workers: int = Field(
        default=2,
        description="Concurrent workers per controller",
    )
    conflict_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Immediate retries on a write conflict before requeueing",
    )
    shutdown_drain_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Time allowed for in-flight reconciles on shutdown",
    )

    @field_validator("cluster_auto_approval_users", mode="before")
    @classmethod
    def split_users(cls, v: object) -> object:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [user.strip() for user in v.split(",") if user.strip()]
        return v

    @field_validator("controller_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensure workers is at least 1."""
        return max(1, v)

    @model_validator(mode="after")
    def validate_staleness(self) -> "RegistrationHubSettings":
        """The staleness threshold must exceed the renewal interval."""
        if self.staleness_multiplier <= 1:
            raise ValueError("staleness_multiplier must be greater than 1")
        return self
