"""
Ban List Agent — one per game-server host.

Wires the snapshot store, remote service, policy, gate, reconciler,
executor and scheduler together, and exposes the hooks the server runtime
calls when something happens:

- a client was banned locally   → share the ban with the authority
- a client was unbanned locally → retract the ban from the authority
- a client is connecting        → check it against the current ban list
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from banlist_agent.execution.executor import EnforcementExecutor
from banlist_agent.gate.connect import ConnectGate
from banlist_agent.models.agent import AgentConfig, AgentStatus, CycleReport
from banlist_agent.models.ban import BanRecord
from banlist_agent.models.client import ConnectedClient
from banlist_agent.models.enforcement import EnforcementOutcome, GateResult
from banlist_agent.policy.engine import DEFAULT_REASON
from banlist_agent.reconciler.sweep import Reconciler
from banlist_agent.remote.client import AuthError, RemoteBanService, RemoteResult
from banlist_agent.scheduler.loop import SyncScheduler
from banlist_agent.servers.registry import ServerHandle, ServerRegistry
from banlist_agent.snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)


class BanListAgent:
    """Synchronizes a shared ban list and enforces it on local servers."""

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        servers: Optional[ServerRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or AgentConfig()
        self.servers = servers or ServerRegistry()
        self.store = SnapshotStore()

        remote = RemoteBanService(
            self.config.api_endpoint,
            self.config.api_key,
            timeout=self.config.request_timeout_seconds,
            transport=transport,
        )
        self.executor = EnforcementExecutor(
            command_prefix=self.config.command_prefix,
            timeout_seconds=self.config.command_timeout_seconds,
            history_size=self.config.outcome_history_size,
        )
        self.reconciler = Reconciler(
            self.executor,
            self.config.ban_method,
            list_timeout_seconds=self.config.command_timeout_seconds,
        )
        self.gate = ConnectGate(
            self.store,
            self.executor,
            self.config.ban_method,
            timeout_seconds=self.config.gate_timeout_seconds,
        )
        self.scheduler = SyncScheduler(
            remote, self.store, self.reconciler, self.servers, self.config
        )

        self._stop_event: Optional[asyncio.Event] = None
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def remote(self) -> RemoteBanService:
        """The remote service currently in use (replaced on reconfigure)."""
        return self.scheduler.remote

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start periodic synchronization."""
        if self._loop_task is not None and not self._loop_task.done():
            return
        self._stop_event = asyncio.Event()
        self._loop_task = asyncio.create_task(self.scheduler.run_async(self._stop_event))
        logger.info(
            "Shared ban list agent started. Ban method: %s, LogNullClients: %s",
            self.config.ban_method.value,
            self.config.log_null_clients,
        )

    async def stop(self) -> None:
        """Stop synchronization and cancel any cycle in flight."""
        if self._loop_task is None:
            return
        self._stop_event.set()
        await self._loop_task
        self._loop_task = None
        logger.info("Shared ban list agent stopped.")

    async def sync_now(self) -> Optional[CycleReport]:
        """Run a cycle immediately. None if one is already running."""
        return await self.scheduler.run_cycle()

    def reconfigure(self, api_key: str) -> None:
        """Replace the API key, resuming fetches suspended by an auth failure."""
        self.config = self.config.model_copy(update={"api_key": api_key})
        self.scheduler.config = self.config
        self.scheduler.reconfigure(api_key)

    # --- Server runtime hooks ---

    async def on_client_connect(
        self, client: Optional[ConnectedClient], server: ServerHandle
    ) -> Optional[GateResult]:
        """Check a connecting client. Returns None for a missing client."""
        if client is None:
            self._log_null_client("on_client_connect", "ban check")
            return None
        return await self.gate.check(client, server)

    async def on_client_banned(
        self,
        client: Optional[ConnectedClient],
        server: ServerHandle,
        reason: Optional[str] = None,
    ) -> Optional[RemoteResult]:
        """Share a locally issued ban with the authority."""
        if client is None:
            self._log_null_client("on_client_banned", "ban submission")
            return None
        if client.is_bot:
            logger.info("Target %s is a bot. Skipping ban submission.", client.display_name)
            return None

        record = BanRecord(
            player_id=client.identity,
            player_name=client.display_name,
            reason=reason or DEFAULT_REASON,
            issued_at=datetime.now(timezone.utc),
            origin_server=server.name,
            ip_address=client.ip_address,
        )
        return await self.submit_ban(record)

    async def on_client_unbanned(
        self, client: Optional[ConnectedClient]
    ) -> Optional[RemoteResult]:
        """Retract a ban from the authority after a local unban."""
        if client is None:
            self._log_null_client("on_client_unbanned", "unban submission")
            return None
        if client.is_bot:
            logger.info("Target %s is a bot. Skipping unban submission.", client.display_name)
            return None
        return await self.retract_ban(client.identity)

    # --- Authority operations ---

    async def submit_ban(self, record: BanRecord) -> RemoteResult:
        try:
            result = await self.remote.submit(record)
        except AuthError as e:
            logger.error("Failed to send ban for %s: %s", record.player_name or record.player_id, e)
            return RemoteResult.FAILURE
        if result == RemoteResult.SUCCESS:
            logger.info("Ban for %s sent to shared ban list.", record.player_name or record.player_id)
        return result

    async def retract_ban(self, player_id: str) -> RemoteResult:
        try:
            result = await self.remote.retract(player_id)
        except AuthError as e:
            logger.error("Failed to unban %s from shared ban list: %s", player_id, e)
            return RemoteResult.FAILURE
        if result == RemoteResult.SUCCESS:
            logger.info("Player %s unbanned from shared ban list.", player_id)
        elif result == RemoteResult.NOT_FOUND:
            logger.info("Player %s was not on the shared ban list.", player_id)
        return result

    # --- Introspection ---

    def status(self) -> AgentStatus:
        snapshot = self.store.current
        return AgentStatus(
            scheduler=self.scheduler.status,
            ban_method=self.config.ban_method,
            snapshot_valid=snapshot.valid,
            snapshot_size=len(snapshot),
            snapshot_fetched_at=snapshot.fetched_at,
            auth_halted=self.scheduler.auth_halted,
            consecutive_fetch_failures=self.scheduler.consecutive_fetch_failures,
            last_fetch_error=self.scheduler.last_fetch_error,
            cycles_completed=self.scheduler.cycles_completed,
            ticks_skipped=self.scheduler.ticks_skipped,
            known_servers=self.servers.names(),
        )

    def recent_outcomes(self, limit: int = 50) -> List[EnforcementOutcome]:
        return self.executor.recent_outcomes(limit)

    def _log_null_client(self, hook: str, what: str) -> None:
        if self.config.log_null_clients:
            logger.info("%s: Target client is null. Skipping %s.", hook, what)
