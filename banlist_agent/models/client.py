"""Connected Client — the server runtime's view of one connection."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class ConnectedClient(BaseModel):
    """A client connected to (or connecting to) a game server. Read-only to the agent."""

    model_config = ConfigDict(frozen=True)

    identity: str                           # Same namespace as BanRecord.player_id
    name: Optional[str] = None
    ip_address: Optional[str] = None
    is_bot: bool = False                    # Resolved once by the runtime at connect time

    @field_validator("identity", mode="before")
    @classmethod
    def _coerce_identity(cls, value):
        # Same coercion as BanRecord.player_id so both sides of a match agree
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("ip_address", "name", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def display_name(self) -> str:
        return self.name or "Unknown"
