"""Device model for physical Access hardware (hubs, readers, ...)."""

from pydantic import BaseModel, ConfigDict, Field


class Device(BaseModel):
    """A physical device within the building.

    Device ids are not UUIDs.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Device identifier")
    name: str = Field(default="", description="Device name")
    device_type: str = Field(default="", alias="type", description="Device type such as 'UAH'")
