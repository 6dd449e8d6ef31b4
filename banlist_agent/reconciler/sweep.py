"""
Reconciler — the periodic enforcement sweep.

Re-derives enforcement from scratch on every cycle: each connected,
non-bot client on each known server is evaluated against the whole
snapshot with the same first-match-wins rule the connect gate uses.
Nothing is carried over between cycles, so an action lost to a transient
failure is simply retried on the next one.

Servers are swept concurrently. Within one server, clients are visited
once each, in identity order.
"""

import asyncio
import logging
from collections import Counter
from typing import Iterable, List

from banlist_agent.execution.executor import EnforcementExecutor
from banlist_agent.models.agent import ServerSweep, SweepReport
from banlist_agent.models.ban import BanSnapshot
from banlist_agent.models.client import ConnectedClient
from banlist_agent.models.enforcement import BanMethod, Skip
from banlist_agent.policy.engine import first_match
from banlist_agent.servers.registry import ServerHandle

logger = logging.getLogger(__name__)


def _unique_in_order(clients: Iterable[ConnectedClient]) -> List[ConnectedClient]:
    seen = set()
    unique = []
    for client in sorted(clients, key=lambda c: c.identity):
        if client.identity in seen:
            continue
        seen.add(client.identity)
        unique.append(client)
    return unique


class Reconciler:
    """Applies the enforcement policy to every connected client."""

    def __init__(
        self,
        executor: EnforcementExecutor,
        method: BanMethod,
        list_timeout_seconds: float = 5.0,
    ):
        self.executor = executor
        self.method = method
        self.list_timeout_seconds = list_timeout_seconds

    async def sweep(
        self, snapshot: BanSnapshot, servers: Iterable[ServerHandle]
    ) -> SweepReport:
        """Run one enforcement pass over ``servers``."""
        if not snapshot.valid:
            logger.debug("No ban list loaded yet; nothing to reconcile")
            return SweepReport(snapshot_valid=False)

        results = await asyncio.gather(
            *(self._sweep_server(server, snapshot) for server in servers)
        )
        report = SweepReport(servers=list(results))

        logger.info(
            "Reconciled %d server(s) against %d ban(s): %d applied, %d failed, %d absent",
            len(report.servers),
            len(snapshot),
            report.applied,
            report.failed,
            report.absent,
        )
        return report

    async def _sweep_server(self, server: ServerHandle, snapshot: BanSnapshot) -> ServerSweep:
        try:
            clients = await asyncio.wait_for(
                server.list_clients(), timeout=self.list_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("Listing clients on %s timed out", server.name)
            return ServerSweep(server=server.name, error="client listing timed out")
        except Exception as e:
            logger.warning("Failed to list clients on %s: %s", server.name, e)
            return ServerSweep(server=server.name, error=str(e) or type(e).__name__)

        outcomes = []
        skipped: Counter = Counter()
        evaluated = 0

        for client in _unique_in_order(clients):
            evaluated += 1
            decision = first_match(snapshot, client, self.method)
            if isinstance(decision, Skip):
                skipped[decision.reason.value] += 1
                continue
            outcomes.append(await self.executor.execute(decision, server))

        return ServerSweep(
            server=server.name,
            clients_evaluated=evaluated,
            outcomes=outcomes,
            skipped=dict(skipped),
        )
