"""
Sync Scheduler — the agent's heartbeat.

Each cycle: fetch the ban list → publish a new snapshot on success →
sweep every server against the current snapshot.

States:
  STOPPED → RUNNING (tick → cycle → wait) → STOPPED

- At most one cycle is in flight. A tick that arrives while a cycle is
  still running is skipped and counted, never queued.
- Transport and schema failures keep the previous snapshot and are
  retried on the next tick; the sweep still runs on the stale snapshot.
- An auth failure suspends fetching until ``reconfigure`` supplies a new
  API key. Sweeps continue on the retained snapshot meanwhile.
- Stopping cancels any cycle still in flight.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import uuid4

from croniter import croniter

from banlist_agent.models.agent import AgentConfig, CycleReport, FetchStatus
from banlist_agent.reconciler.sweep import Reconciler
from banlist_agent.remote.client import (
    AuthError,
    RemoteBanService,
    SchemaError,
    TransportError,
)
from banlist_agent.servers.registry import ServerRegistry
from banlist_agent.snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)


def seconds_until_next(config: AgentConfig, now: Optional[datetime] = None) -> float:
    """Delay before the next tick: the cron schedule if set, else the fixed interval."""
    if not config.sync_schedule:
        return config.sync_interval_seconds
    if now is None:
        now = datetime.now(timezone.utc)
    next_fire = croniter(config.sync_schedule, now).get_next(datetime)
    return max(0.0, (next_fire - now).total_seconds())


class SyncScheduler:
    """Drives fetch → publish → sweep cycles."""

    def __init__(
        self,
        remote: RemoteBanService,
        store: SnapshotStore,
        reconciler: Reconciler,
        servers: ServerRegistry,
        config: Optional[AgentConfig] = None,
    ):
        self.remote = remote
        self.store = store
        self.reconciler = reconciler
        self.servers = servers
        self.config = config or AgentConfig()

        self._running = False
        self._in_flight = False
        self._task: Optional[asyncio.Task] = None
        self._auth_halted = False

        self.consecutive_fetch_failures = 0
        self.last_fetch_error: Optional[str] = None
        self.cycles_completed = 0
        self.ticks_skipped = 0
        self.last_report: Optional[CycleReport] = None

    @property
    def status(self) -> str:
        """Current scheduler status."""
        return "running" if self._running else "stopped"

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def auth_halted(self) -> bool:
        return self._auth_halted

    def reconfigure(self, api_key: str) -> None:
        """Install a new API key and resume fetching if it was suspended."""
        self.remote = self.remote.with_api_key(api_key)
        if self._auth_halted:
            logger.info("API key reconfigured; resuming ban list fetches")
        self._auth_halted = False
        self.last_fetch_error = None

    async def run_cycle(self) -> Optional[CycleReport]:
        """
        Run one fetch-then-sweep cycle.
        Returns None without doing anything if a cycle is already in flight.
        """
        if self._in_flight:
            self._skip_tick()
            return None

        self._in_flight = True
        try:
            return await self._cycle()
        finally:
            self._in_flight = False

    def _skip_tick(self) -> None:
        self.ticks_skipped += 1
        logger.warning(
            "Previous sync cycle still running; skipping tick (%d skipped so far)",
            self.ticks_skipped,
        )

    async def _cycle(self) -> CycleReport:
        started_at = datetime.now(timezone.utc)
        fetch_status, detail, fetched, skipped = await self._refresh_snapshot()

        snapshot = self.store.current
        sweep = await self.reconciler.sweep(snapshot, self.servers.list())

        report = CycleReport(
            cycle_id=f"cycle_{uuid4().hex[:12]}",
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            fetch_status=fetch_status,
            fetch_detail=detail,
            records_fetched=fetched,
            records_skipped=skipped,
            snapshot_fetched_at=snapshot.fetched_at,
            sweep=sweep,
        )
        self.last_report = report
        self.cycles_completed += 1
        return report

    async def _refresh_snapshot(self) -> Tuple[FetchStatus, Optional[str], int, int]:
        if self._auth_halted:
            logger.debug("Ban list fetch suspended until the API key is reconfigured")
            return FetchStatus.AUTH_HALTED, self.last_fetch_error, 0, 0

        try:
            result = await self.remote.fetch_all()
        except AuthError as e:
            self._auth_halted = True
            self.last_fetch_error = str(e)
            logger.error(
                "%s. Scheduled ban list fetches are suspended until the API key "
                "is reconfigured; enforcing the last known ban list.",
                e,
            )
            return FetchStatus.AUTH_ERROR, str(e), 0, 0
        except SchemaError as e:
            self._note_soft_failure(e)
            return FetchStatus.SCHEMA_ERROR, str(e), 0, 0
        except TransportError as e:
            self._note_soft_failure(e)
            return FetchStatus.TRANSPORT_ERROR, str(e), 0, 0

        self.store.publish(result.records)
        if self.consecutive_fetch_failures:
            logger.info(
                "Ban authority reachable again after %d failed fetch(es)",
                self.consecutive_fetch_failures,
            )
        self.consecutive_fetch_failures = 0
        self.last_fetch_error = None
        if result.skipped:
            logger.warning("Ignored %d malformed ban record(s)", result.skipped)
        return FetchStatus.OK, None, len(result.records), result.skipped

    def _note_soft_failure(self, error: Exception) -> None:
        self.consecutive_fetch_failures += 1
        self.last_fetch_error = str(error)
        logger.warning(
            "Failed to sync bans (%d consecutive failure(s)): %s. Keeping the previous ban list.",
            self.consecutive_fetch_failures,
            error,
        )

    def _tick(self) -> None:
        if self._in_flight or (self._task is not None and not self._task.done()):
            self._skip_tick()
            return
        self._task = asyncio.create_task(self.run_cycle())
        self._task.add_done_callback(self._on_cycle_done)

    def _on_cycle_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Sync cycle crashed: %s", error, exc_info=error)

    async def _cancel_in_flight(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run the scheduler until ``stop_event`` is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                self._tick()
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=seconds_until_next(self.config),
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
            await self._cancel_in_flight()
