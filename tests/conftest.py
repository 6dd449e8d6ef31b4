"""Shared test doubles: an in-memory game server and ban authority."""

import json
from typing import Dict, List, Optional

import httpx
import pytest

from banlist_agent.models.client import ConnectedClient
from banlist_agent.servers.registry import CommandError


class FakeServer:
    """In-memory ServerHandle. Records every command it receives."""

    def __init__(self, name: str, clients: Optional[List[ConnectedClient]] = None):
        self.name = name
        self.clients = list(clients or [])
        self.commands: List[str] = []
        self.failing_targets = set()
        self.list_error: Optional[Exception] = None

    async def list_clients(self) -> List[ConnectedClient]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.clients)

    async def is_connected(self, identity: str) -> bool:
        return any(c.identity == identity for c in self.clients)

    async def execute_command(self, command: str) -> None:
        target = command.split(" ")[1]
        if target in self.failing_targets:
            raise CommandError(f"rcon refused: {command}")
        self.commands.append(command)


class FakeAuthority:
    """In-memory ban authority speaking the HTTP contract via httpx.MockTransport."""

    def __init__(self, api_key: str = "secret"):
        self.api_key = api_key
        self.bans: Dict[str, dict] = {}
        self.get_calls = 0
        self.fail_with: Optional[int] = None
        self.raw_body: Optional[bytes] = None
        self.raise_connect_error = False

    def add(self, player_id: str, ip: str = "", reason: str = "cheating", name: str = "Player"):
        self.bans[player_id] = {
            "PlayerId": player_id,
            "PlayerName": name,
            "Reason": reason,
            "Timestamp": "2025-01-01T12:00:00Z",
            "Server": "srv-1",
            "IpAddress": ip,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.raise_connect_error:
            raise httpx.ConnectError("connection refused", request=request)

        auth = request.headers.get("Authorization", "")
        if auth != f"Bearer {self.api_key}":
            return httpx.Response(401, json={"error": "Invalid API key"})

        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"error": "boom"})

        if request.method == "GET":
            self.get_calls += 1
            if self.raw_body is not None:
                return httpx.Response(200, content=self.raw_body)
            return httpx.Response(200, json=list(self.bans.values()))

        if request.method == "POST":
            try:
                body = json.loads(request.content)
            except ValueError:
                return httpx.Response(400, json={"error": "Invalid JSON"})
            self.bans[body["PlayerId"]] = body
            return httpx.Response(200, json={"status": "Ban added successfully"})

        if request.method == "DELETE":
            player_id = request.url.params.get("player_id", "")
            if player_id not in self.bans:
                return httpx.Response(404, json={"error": "No ban found"})
            del self.bans[player_id]
            return httpx.Response(200, json={"status": "Ban deleted successfully"})

        return httpx.Response(405, json={"error": "Method not allowed"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def authority():
    return FakeAuthority()


@pytest.fixture
def make_server():
    def _make(name: str = "srv-1", clients: Optional[List[ConnectedClient]] = None) -> FakeServer:
        return FakeServer(name, clients)
    return _make
