"""
Enforcement Executor — turns decided actions into server commands.

Behavioral Contract:
- Exactly one command per action
- Every call returns an EnforcementOutcome; command failures never propagate
- A target that is not connected is TARGET_ABSENT, not an error, and no
  command is issued for it
- Commands carry a timeout; a timeout is a command failure
"""

import asyncio
import logging
from collections import deque
from typing import Deque, List, Optional

from banlist_agent.models.enforcement import (
    BanMethod,
    EnforcementAction,
    EnforcementOutcome,
    OutcomeStatus,
)
from banlist_agent.servers.registry import ServerHandle

logger = logging.getLogger(__name__)

_VERBS = {
    BanMethod.KICK: "kick",
    BanMethod.BAN_CLIENT: "banclient",
    BanMethod.IP_BAN: "ban",
}


def build_command(action: EnforcementAction, prefix: str = "SharedBanList:") -> str:
    """Render the server command for an action, e.g. ``kick 123 SharedBanList: cheating``."""
    target = action.ip_address if action.kind == BanMethod.IP_BAN else action.target_identity
    parts = [_VERBS[action.kind], target]
    if prefix:
        parts.append(prefix)
    parts.append(action.reason)
    return " ".join(parts)


class EnforcementExecutor:
    """Issues actions against servers and classifies what happened."""

    def __init__(
        self,
        command_prefix: str = "SharedBanList:",
        timeout_seconds: float = 5.0,
        history_size: int = 200,
    ):
        self.command_prefix = command_prefix
        self.timeout_seconds = timeout_seconds
        self._history: Deque[EnforcementOutcome] = deque(maxlen=history_size)

    async def execute(
        self, action: EnforcementAction, server: ServerHandle
    ) -> EnforcementOutcome:
        """Execute one action on one server."""
        command = build_command(action, self.command_prefix)

        try:
            present = await asyncio.wait_for(
                server.is_connected(action.target_identity),
                timeout=self.timeout_seconds,
            )
            if not present:
                logger.debug(
                    "%s not connected to %s; nothing to %s",
                    action.target_identity,
                    server.name,
                    action.kind.value,
                )
                return self._record(OutcomeStatus.TARGET_ABSENT, action, server)

            await asyncio.wait_for(
                server.execute_command(command),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            detail = f"timed out after {self.timeout_seconds}s"
            logger.warning(
                "Failed to execute %s for %s on %s: %s",
                action.kind.value,
                action.target_name or action.target_identity,
                server.name,
                detail,
            )
            return self._record(
                OutcomeStatus.COMMAND_FAILED, action, server, command, detail
            )
        except Exception as e:
            logger.warning(
                "Failed to execute %s for %s on %s: %s",
                action.kind.value,
                action.target_name or action.target_identity,
                server.name,
                e,
            )
            return self._record(
                OutcomeStatus.COMMAND_FAILED, action, server, command, str(e) or type(e).__name__
            )

        logger.info(
            "Enforced %s for %s (%s) on %s",
            action.kind.value,
            action.target_name or "Unknown",
            action.player_id,
            server.name,
        )
        return self._record(OutcomeStatus.APPLIED, action, server, command)

    def _record(
        self,
        status: OutcomeStatus,
        action: EnforcementAction,
        server: ServerHandle,
        command: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> EnforcementOutcome:
        outcome = EnforcementOutcome(
            status=status,
            action=action,
            server=server.name,
            command=command,
            detail=detail,
        )
        self._history.append(outcome)
        return outcome

    def recent_outcomes(self, limit: int = 50) -> List[EnforcementOutcome]:
        """The most recent outcomes, oldest first."""
        if limit <= 0:
            return []
        return list(self._history)[-limit:]
