"""Tests for core data models and the snapshot store."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from banlist_agent.models import (
    AgentConfig,
    BanMethod,
    BanRecord,
    BanSnapshot,
    ConnectedClient,
)
from banlist_agent.snapshot.store import SnapshotStore


def _make_record(player_id: str, reason: str = "cheating", ip: str = None) -> BanRecord:
    return BanRecord(
        player_id=player_id,
        reason=reason,
        issued_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        ip_address=ip,
    )


class TestBanRecord:
    def test_parse_authority_keys(self):
        record = BanRecord.model_validate({
            "PlayerId": "76561198000000001",
            "PlayerName": "Cheater",
            "Reason": "wallhack",
            "Timestamp": "2025-03-01T10:00:00Z",
            "Server": "eu-1",
            "IpAddress": "10.0.0.1",
        })
        assert record.player_id == "76561198000000001"
        assert record.origin_server == "eu-1"
        assert record.ip_address == "10.0.0.1"
        assert record.issued_at.year == 2025

    def test_parse_backend_column_names(self):
        record = BanRecord.model_validate({
            "player_id": "42",
            "player_name": "Cheater",
            "reason": "wallhack",
            "timestamp": "2025-03-01 10:00:00",
            "server": "eu-1",
            "ip_address": "",
        })
        assert record.player_id == "42"
        assert record.ip_address is None

    def test_numeric_player_id_is_coerced(self):
        record = BanRecord.model_validate({"PlayerId": 1234, "Timestamp": "2025-03-01T10:00:00Z"})
        assert record.player_id == "1234"

    def test_missing_player_id_rejected(self):
        with pytest.raises(ValidationError):
            BanRecord.model_validate({"PlayerName": "x", "Timestamp": "2025-03-01T10:00:00Z"})

    def test_empty_player_id_rejected(self):
        with pytest.raises(ValidationError):
            BanRecord.model_validate({"PlayerId": "  ", "Timestamp": "2025-03-01T10:00:00Z"})

    def test_to_wire_uses_authority_keys(self):
        body = _make_record("A1").to_wire()
        assert body["PlayerId"] == "A1"
        assert body["Reason"] == "cheating"
        assert body["IpAddress"] == ""
        assert "Timestamp" in body

    def test_records_are_immutable(self):
        record = _make_record("A1")
        with pytest.raises(ValidationError):
            record.reason = "changed"


class TestBanSnapshot:
    def test_empty_snapshot_is_invalid(self):
        snapshot = BanSnapshot.empty()
        assert snapshot.valid is False
        assert len(snapshot) == 0
        assert snapshot.get("A1") is None

    def test_build_indexes_by_player_id(self):
        snapshot = BanSnapshot.build([_make_record("A1"), _make_record("B2")])
        assert snapshot.valid is True
        assert snapshot.get("B2").player_id == "B2"
        assert [r.player_id for r in snapshot.records] == ["A1", "B2"]
        assert snapshot.fetched_at is not None

    def test_duplicates_collapse_last_wins(self):
        snapshot = BanSnapshot.build([
            _make_record("A1", reason="old"),
            _make_record("B2"),
            _make_record("A1", reason="new"),
        ])
        assert len(snapshot) == 2
        assert snapshot.get("A1").reason == "new"
        # Surviving record keeps the first occurrence's position
        assert [r.player_id for r in snapshot.records] == ["A1", "B2"]

    def test_index_is_not_part_of_public_surface(self):
        snapshot = BanSnapshot.build([_make_record("A1")])
        assert not hasattr(snapshot, "by_player_id")
        assert set(snapshot.model_dump()) == {"records", "fetched_at", "valid"}
        assert snapshot.get("A1").player_id == "A1"

    def test_index_rebuilt_on_direct_construction(self):
        snapshot = BanSnapshot(records=(_make_record("A1"),), valid=True)
        assert snapshot.get("A1") is not None

    def test_empty_fetch_is_a_valid_snapshot(self):
        snapshot = BanSnapshot.build([])
        assert snapshot.valid is True
        assert len(snapshot) == 0


class TestSnapshotStore:
    def test_initially_not_loaded(self):
        store = SnapshotStore()
        assert store.has_loaded is False
        assert store.current.valid is False

    def test_publish_replaces_snapshot(self):
        store = SnapshotStore()
        first = store.publish([_make_record("A1")])
        second = store.publish([_make_record("B2")])

        assert store.current is second
        assert first.get("A1") is not None
        assert second.get("A1") is None
        assert store.has_loaded is True


class TestConnectedClient:
    def test_blank_ip_is_absent(self):
        client = ConnectedClient(identity="A1", ip_address="")
        assert client.ip_address is None
        assert client.is_bot is False
        assert client.display_name == "Unknown"

    def test_numeric_identity_matches_numeric_player_id(self):
        client = ConnectedClient(identity=1234)
        record = BanRecord.model_validate({"PlayerId": 1234, "Timestamp": "2025-03-01T10:00:00Z"})
        assert client.identity == "1234"
        assert client.identity == record.player_id
        assert ConnectedClient(identity=" A1 ").identity == "A1"


class TestAgentConfig:
    def test_defaults(self):
        config = AgentConfig()
        assert config.ban_method == BanMethod.KICK
        assert config.sync_interval_seconds == 60
        assert config.log_null_clients is False
        assert config.api_endpoint == ""

    def test_ban_method_case_insensitive(self):
        assert AgentConfig(ban_method="IPBan").ban_method == BanMethod.IP_BAN
        assert AgentConfig(ban_method=" BanClient ").ban_method == BanMethod.BAN_CLIENT

    def test_unknown_ban_method_rejected(self):
        with pytest.raises(ValidationError):
            AgentConfig(ban_method="tempban")

    def test_cron_schedule_validated(self):
        assert AgentConfig(sync_schedule="*/5 * * * *").sync_schedule == "*/5 * * * *"
        assert AgentConfig(sync_schedule="").sync_schedule is None
        with pytest.raises(ValidationError):
            AgentConfig(sync_schedule="every minute please")
