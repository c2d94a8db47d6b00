"""Process-lifetime controller options.

Built once from settings at startup and handed to each component; never
mutated afterwards.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hub_shared.config import RegistrationHubSettings


class HubOptions(BaseModel):
    """Immutable configuration record for the hub controllers."""

    model_config = ConfigDict(frozen=True)

    bootstrap_allow_list: tuple[str, ...] = ()
    auto_approval_enabled: bool = False
    legacy_csr_compatibility: bool = False

    lease_duration_seconds: int = Field(default=60, gt=0)
    staleness_multiplier: float = 5.0

    resync_interval_seconds: float = Field(default=300, gt=0)
    liveness_resync_seconds: float = Field(default=60, gt=0)
    workers: int = Field(default=2, ge=1)
    conflict_retry_attempts: int = Field(default=3, ge=1)
    shutdown_drain_seconds: float = Field(default=10.0, ge=0)

    @model_validator(mode="after")
    def validate_staleness(self) -> "HubOptions":
        if self.staleness_multiplier <= 1:
            raise ValueError("staleness_multiplier must be greater than 1")
        return self

    def staleness_threshold(self, lease_duration_seconds: int | None = None) -> float:
        """Staleness threshold T in seconds for a renewal interval R."""
        interval = lease_duration_seconds or self.lease_duration_seconds
        return interval * self.staleness_multiplier

    @classmethod
    def from_settings(cls, settings: RegistrationHubSettings) -> "HubOptions":
        # dict.fromkeys keeps the operator's order while dropping duplicates
        allow_list = tuple(dict.fromkeys(settings.cluster_auto_approval_users))
        return cls(
            bootstrap_allow_list=allow_list,
            auto_approval_enabled=settings.features.managed_cluster_auto_approval,
            legacy_csr_compatibility=settings.features.v1beta1_csr_api_compatibility,
            lease_duration_seconds=settings.lease_duration_seconds,
            staleness_multiplier=settings.staleness_multiplier,
            resync_interval_seconds=settings.resync_interval_seconds,
            liveness_resync_seconds=settings.liveness_resync_seconds,
            workers=settings.controller_workers,
            conflict_retry_attempts=settings.conflict_retry_attempts,
            shutdown_drain_seconds=settings.shutdown_drain_seconds,
        )
