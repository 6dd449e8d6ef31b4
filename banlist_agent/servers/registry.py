"""
Server Registry — the game servers this agent enforces on.

The agent does not know how a server kicks or bans anyone. Each server is
reached through a ``ServerHandle`` supplied by the hosting runtime.
"""

from typing import Dict, List, Optional, Protocol

from banlist_agent.models.client import ConnectedClient


class CommandError(Exception):
    """Raised by a ServerHandle when a command could not be carried out."""
    pass


class ServerHandle(Protocol):
    """Protocol for a game server's client listing and command capability."""

    name: str

    async def list_clients(self) -> List[ConnectedClient]: ...

    async def is_connected(self, identity: str) -> bool: ...

    async def execute_command(self, command: str) -> None: ...


class ServerRegistry:
    """Known servers, keyed by name, in registration order."""

    def __init__(self):
        self._servers: Dict[str, ServerHandle] = {}

    def register(self, server: ServerHandle) -> None:
        self._servers[server.name] = server

    def unregister(self, name: str) -> bool:
        return self._servers.pop(name, None) is not None

    def get(self, name: str) -> Optional[ServerHandle]:
        return self._servers.get(name)

    def list(self) -> List[ServerHandle]:
        return list(self._servers.values())

    def names(self) -> List[str]:
        return list(self._servers)
