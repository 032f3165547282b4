"""Response envelope shared by every Unifi Access endpoint."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from unifi_access.const import SUCCESS_CODE


class ApiResponse(BaseModel):
    """Standard ``{"code", "msg", "data"}`` wrapper around API payloads.

    Pagination and other top-level fields are ignored.
    """

    code: str = Field(..., description="Result code, 'SUCCESS' on success")
    msg: Optional[str] = Field(default="", description="Human-readable result message")
    data: Any = Field(default=None, description="Endpoint-specific payload")

    @property
    def is_success(self) -> bool:
        return self.code == SUCCESS_CODE
