"""Base model configuration for all Pydantic models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class HubBaseModel(BaseModel):
    """Base model with common configuration.

    Conventions:
    - All timestamps are timezone aware (UTC)
    - Field names are lowercase snake_case
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        json_encoders={
            datetime: lambda v: v.isoformat(),
            UUID: lambda v: str(v),
        },
    )


class SnapshotModel(HubBaseModel):
    """Immutable view of an object as last observed from the hub API.

    Caches replace snapshots instead of mutating them, so readers never
    need a lock.
    """

    model_config = ConfigDict(frozen=True)
