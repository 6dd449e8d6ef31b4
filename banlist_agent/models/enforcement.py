"""Enforcement decisions and outcomes."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class BanMethod(str, Enum):
    """Configured enforcement kind. Also the kind of every action it produces."""
    KICK = "kick"
    BAN_CLIENT = "banclient"
    IP_BAN = "ipban"


class SkipReason(str, Enum):
    BOT = "bot"                                      # Bots are never enforced against
    NO_MATCH = "no_match"                            # Record does not apply to this client
    MISSING_RECORD_IP = "missing_record_ip"          # In scope, but the record has no IP to ban
    CLIENT_IP_UNAVAILABLE = "client_ip_unavailable"  # In scope, but the client's IP is unknown


class EnforcementAction(BaseModel):
    """A Kick, BanClient or IpBan to issue against one client. Recomputed every cycle."""

    model_config = ConfigDict(frozen=True)

    kind: BanMethod
    player_id: str                          # Record that produced this action
    target_identity: str
    target_name: Optional[str] = None
    reason: str
    ip_address: Optional[str] = None        # Set for IP_BAN only


class Skip(BaseModel):
    """No action for this client, and why."""

    model_config = ConfigDict(frozen=True)

    reason: SkipReason
    target_identity: Optional[str] = None
    player_id: Optional[str] = None

    @property
    def in_scope(self) -> bool:
        """True when a record matched the client but no action could be issued."""
        return self.reason in (
            SkipReason.MISSING_RECORD_IP,
            SkipReason.CLIENT_IP_UNAVAILABLE,
        )


Decision = Union[EnforcementAction, Skip]


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    COMMAND_FAILED = "command_failed"
    TARGET_ABSENT = "target_absent"         # Expected steady state, not an error


class EnforcementOutcome(BaseModel):
    """Classified result of executing one action on one server."""

    status: OutcomeStatus
    action: EnforcementAction
    server: str
    command: Optional[str] = None
    detail: Optional[str] = None
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_error(self) -> bool:
        return self.status == OutcomeStatus.COMMAND_FAILED


class GateResult(BaseModel):
    """Verdict of the connect gate for one incoming client."""

    admitted: bool
    snapshot_valid: bool = True
    decision: Optional[Decision] = None
    outcome: Optional[EnforcementOutcome] = None
