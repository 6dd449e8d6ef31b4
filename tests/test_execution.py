"""Tests for the Enforcement Executor."""

import asyncio

import pytest

from banlist_agent.execution.executor import EnforcementExecutor, build_command
from banlist_agent.models.client import ConnectedClient
from banlist_agent.models.enforcement import BanMethod, EnforcementAction, OutcomeStatus


def _make_action(kind: BanMethod = BanMethod.KICK, target: str = "A1", ip: str = None) -> EnforcementAction:
    return EnforcementAction(
        kind=kind,
        player_id="A1",
        target_identity=target,
        target_name="Cheater",
        reason="cheating",
        ip_address=ip,
    )


class TestBuildCommand:
    def test_kick(self):
        assert build_command(_make_action()) == "kick A1 SharedBanList: cheating"

    def test_ban_client(self):
        assert build_command(_make_action(BanMethod.BAN_CLIENT)) == "banclient A1 SharedBanList: cheating"

    def test_ip_ban_targets_the_ip(self):
        action = _make_action(BanMethod.IP_BAN, target="B2", ip="1.2.3.4")
        assert build_command(action) == "ban 1.2.3.4 SharedBanList: cheating"

    def test_custom_prefix(self):
        assert build_command(_make_action(), prefix="[Global]") == "kick A1 [Global] cheating"
        assert build_command(_make_action(), prefix="") == "kick A1 cheating"


class TestEnforcementExecutor:
    @pytest.mark.asyncio
    async def test_applied(self, make_server):
        server = make_server(clients=[ConnectedClient(identity="A1")])
        executor = EnforcementExecutor()

        outcome = await executor.execute(_make_action(), server)

        assert outcome.status == OutcomeStatus.APPLIED
        assert outcome.server == "srv-1"
        assert server.commands == ["kick A1 SharedBanList: cheating"]

    @pytest.mark.asyncio
    async def test_target_absent_issues_no_command(self, make_server):
        server = make_server(clients=[])
        executor = EnforcementExecutor()

        outcome = await executor.execute(_make_action(), server)

        assert outcome.status == OutcomeStatus.TARGET_ABSENT
        assert outcome.is_error is False
        assert server.commands == []

    @pytest.mark.asyncio
    async def test_command_failure_is_returned_not_raised(self, make_server):
        server = make_server(clients=[ConnectedClient(identity="A1")])
        server.failing_targets.add("A1")
        executor = EnforcementExecutor()

        outcome = await executor.execute(_make_action(), server)

        assert outcome.status == OutcomeStatus.COMMAND_FAILED
        assert "rcon refused" in outcome.detail
        assert outcome.is_error is True

    @pytest.mark.asyncio
    async def test_command_timeout_is_failure(self, make_server):
        server = make_server(clients=[ConnectedClient(identity="A1")])

        async def hang(command):
            await asyncio.sleep(10)

        server.execute_command = hang
        executor = EnforcementExecutor(timeout_seconds=0.01)

        outcome = await executor.execute(_make_action(), server)

        assert outcome.status == OutcomeStatus.COMMAND_FAILED
        assert "timed out" in outcome.detail

    @pytest.mark.asyncio
    async def test_recent_outcomes_are_bounded(self, make_server):
        server = make_server(clients=[ConnectedClient(identity="A1")])
        executor = EnforcementExecutor(history_size=3)

        for _ in range(5):
            await executor.execute(_make_action(), server)

        assert len(executor.recent_outcomes()) == 3
        assert len(executor.recent_outcomes(limit=2)) == 2
        assert executor.recent_outcomes(limit=0) == []
