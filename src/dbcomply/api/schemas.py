from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    error: str
    message: str


class DiscoveryAccepted(BaseModel):
    """Returned when discovery was started (or joined) in the background."""

    status: str = "accepted"
    environments: List[str] = Field(default_factory=list)


class ClearCacheResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Validation and catalog caches cleared"
    entries_removed: int = Field(0, serialization_alias="entriesRemoved")


class ShareCountsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    env_id: str = Field("current", alias="envId")
    share_names: Optional[List[str]] = Field(None, alias="shareNames")
