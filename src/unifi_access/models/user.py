"""User, NFC card and access policy models."""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


class NfcCard(BaseModel):
    """An NFC card credential."""

    id: str = Field(..., description="Display name of the card in the Access UI")
    token: str = Field(..., description="The NFC token itself")


class AccessPolicy(BaseModel):
    """An access policy granting door access on a schedule."""

    id: str = Field(..., description="UUID of the policy")
    name: str = Field(default="", description="Policy name")


class User(BaseModel):
    """A user registered in Unifi Access.

    The users endpoint does not return access policies. ``access_policies``
    stays None unless fetched separately, see
    UnifiAccessClient.get_all_users_with_access_information().
    """

    id: str = Field(..., description="UUID of the user")
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    employee_number: str = Field(default="")
    user_email: str = Field(default="")
    nfc_cards: List[NfcCard] = Field(default_factory=list)
    access_policies: Optional[List[AccessPolicy]] = Field(
        default=None, description="Only populated when explicitly requested"
    )

    @field_validator("first_name", "last_name", "employee_number", "user_email", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        """The API sends null for unset text fields."""
        if v is None:
            return ""
        return v

    @field_validator("nfc_cards", mode="before")
    @classmethod
    def null_to_no_cards(cls, v: Any) -> Any:
        if v is None:
            return []
        return v

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
