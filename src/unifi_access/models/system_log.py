"""System log models.

The system log endpoint returns a search-engine style payload where each
hit carries ``@timestamp``, ``_id`` and ``_source`` keys. Only the top-level
sections of ``_source`` are modelled; their contents vary by topic and are
kept as raw JSON.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from unifi_access.utils.timestamps import normalize_timestamp


class SystemLogEvent(BaseModel):
    """Body of a single system log entry."""

    actor: Any = None
    authentication: Any = None
    event: Any = None
    target: Any = None


class SystemLogEntry(BaseModel):
    """A single hit from the system log."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(..., alias="@timestamp")
    id: str = Field(..., alias="_id")
    source: SystemLogEvent = Field(default_factory=SystemLogEvent, alias="_source")

    @field_validator("timestamp", mode="before")
    @classmethod
    def normalize_timestamp_field(cls, v: Any) -> datetime:
        return normalize_timestamp(v)


class SystemLogPage(BaseModel):
    """Full response of the system log endpoint."""

    hits: List[SystemLogEntry] = Field(default_factory=list)
    page: Optional[int] = None
    total: Optional[int] = None

    @field_validator("hits", mode="before")
    @classmethod
    def null_to_no_hits(cls, v: Any) -> Any:
        if v is None:
            return []
        return v
