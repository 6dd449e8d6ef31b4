"""Agent configuration, cycle reports and status."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from croniter import croniter
from pydantic import BaseModel, Field, field_validator

from banlist_agent.models.enforcement import BanMethod, EnforcementOutcome, OutcomeStatus


class AgentConfig(BaseModel):
    """Configuration for one server instance's ban list agent."""

    api_endpoint: str = ""                  # Must be set before any fetch can succeed
    api_key: str = ""
    ban_method: BanMethod = BanMethod.KICK
    log_null_clients: bool = False

    sync_interval_seconds: float = Field(default=60.0, gt=0)
    sync_schedule: Optional[str] = None     # Cron expression; overrides the interval when set

    request_timeout_seconds: float = Field(default=10.0, gt=0)
    command_timeout_seconds: float = Field(default=5.0, gt=0)
    gate_timeout_seconds: float = Field(default=5.0, gt=0)

    command_prefix: str = "SharedBanList:"
    origin_server: str = "unknown"
    outcome_history_size: int = Field(default=200, ge=1)

    @field_validator("ban_method", mode="before")
    @classmethod
    def _normalize_method(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("sync_schedule", mode="before")
    @classmethod
    def _check_schedule(cls, value):
        if isinstance(value, str):
            value = value.strip() or None
        if value is not None and not croniter.is_valid(value):
            raise ValueError(f"invalid cron expression: {value!r}")
        return value


class FetchStatus(str, Enum):
    OK = "ok"
    TRANSPORT_ERROR = "transport_error"
    SCHEMA_ERROR = "schema_error"
    AUTH_ERROR = "auth_error"               # Credential rejected on this cycle
    AUTH_HALTED = "auth_halted"             # Fetch not attempted, waiting for reconfiguration


class ServerSweep(BaseModel):
    """Enforcement results for one server in one cycle."""

    server: str
    clients_evaluated: int = 0
    outcomes: List[EnforcementOutcome] = []
    skipped: Dict[str, int] = {}
    error: Optional[str] = None


class SweepReport(BaseModel):
    """Enforcement results across all servers for one cycle."""

    servers: List[ServerSweep] = []
    snapshot_valid: bool = True

    @property
    def outcomes(self) -> List[EnforcementOutcome]:
        return [o for s in self.servers for o in s.outcomes]

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def applied(self) -> int:
        return self.count(OutcomeStatus.APPLIED)

    @property
    def failed(self) -> int:
        return self.count(OutcomeStatus.COMMAND_FAILED)

    @property
    def absent(self) -> int:
        return self.count(OutcomeStatus.TARGET_ABSENT)


class CycleReport(BaseModel):
    """One fetch-then-sweep pass."""

    cycle_id: str
    started_at: datetime
    finished_at: datetime
    fetch_status: FetchStatus
    fetch_detail: Optional[str] = None
    records_fetched: int = 0
    records_skipped: int = 0
    snapshot_fetched_at: Optional[datetime] = None
    sweep: SweepReport = SweepReport()


class AgentStatus(BaseModel):
    scheduler: str
    ban_method: BanMethod
    snapshot_valid: bool
    snapshot_size: int
    snapshot_fetched_at: Optional[datetime] = None
    auth_halted: bool
    consecutive_fetch_failures: int
    last_fetch_error: Optional[str] = None
    cycles_completed: int
    ticks_skipped: int
    known_servers: List[str] = []
