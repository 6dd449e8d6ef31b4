"""Ban list agent data models."""

from banlist_agent.models.agent import (
    AgentConfig,
    AgentStatus,
    CycleReport,
    FetchStatus,
    ServerSweep,
    SweepReport,
)
from banlist_agent.models.ban import BanRecord, BanSnapshot, FetchResult
from banlist_agent.models.client import ConnectedClient
from banlist_agent.models.enforcement import (
    BanMethod,
    Decision,
    EnforcementAction,
    EnforcementOutcome,
    GateResult,
    OutcomeStatus,
    Skip,
    SkipReason,
)

__all__ = [
    "AgentConfig",
    "AgentStatus",
    "BanMethod",
    "BanRecord",
    "BanSnapshot",
    "ConnectedClient",
    "CycleReport",
    "Decision",
    "EnforcementAction",
    "EnforcementOutcome",
    "FetchResult",
    "FetchStatus",
    "GateResult",
    "OutcomeStatus",
    "ServerSweep",
    "Skip",
    "SkipReason",
    "SweepReport",
]
