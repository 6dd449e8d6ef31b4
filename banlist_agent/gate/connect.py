"""
Connect Gate — checks one incoming connection against the current snapshot.

Runs on the connection path, before the client is admitted. It never
fetches: it reads whatever snapshot is current. When no snapshot has ever
loaded, it fails open and admits the client.
"""

import asyncio
import logging

from banlist_agent.execution.executor import EnforcementExecutor
from banlist_agent.models.client import ConnectedClient
from banlist_agent.models.enforcement import (
    BanMethod,
    EnforcementOutcome,
    GateResult,
    OutcomeStatus,
    Skip,
    SkipReason,
)
from banlist_agent.policy.engine import first_match
from banlist_agent.servers.registry import ServerHandle
from banlist_agent.snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)


class ConnectGate:
    """First-match-wins check for a single connecting client."""

    def __init__(
        self,
        store: SnapshotStore,
        executor: EnforcementExecutor,
        method: BanMethod,
        timeout_seconds: float = 5.0,
    ):
        self.store = store
        self.executor = executor
        self.method = method
        self.timeout_seconds = timeout_seconds

    async def check(self, client: ConnectedClient, server: ServerHandle) -> GateResult:
        """Evaluate ``client`` and enforce at most one action on ``server``."""
        snapshot = self.store.current
        if not snapshot.valid:
            logger.debug(
                "No ban list loaded yet; admitting %s without a check",
                client.display_name,
            )
            return GateResult(admitted=True, snapshot_valid=False)

        decision = first_match(snapshot, client, self.method)
        if isinstance(decision, Skip):
            if decision.reason == SkipReason.BOT:
                logger.debug("Client %s is a bot; skipping ban check", client.display_name)
            elif decision.in_scope:
                logger.info(
                    "Ban for %s matched %s but cannot be enforced by %s (%s)",
                    decision.player_id,
                    client.display_name,
                    self.method.value,
                    decision.reason.value,
                )
            return GateResult(admitted=True, decision=decision)

        try:
            outcome = await asyncio.wait_for(
                self.executor.execute(decision, server),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Connect check for %s on %s timed out after %ss",
                client.display_name,
                server.name,
                self.timeout_seconds,
            )
            outcome = EnforcementOutcome(
                status=OutcomeStatus.COMMAND_FAILED,
                action=decision,
                server=server.name,
                detail=f"connect check timed out after {self.timeout_seconds}s",
            )

        return GateResult(
            admitted=outcome.status != OutcomeStatus.APPLIED,
            decision=decision,
            outcome=outcome,
        )
