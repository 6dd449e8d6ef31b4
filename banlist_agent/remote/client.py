"""
Remote Ban Service — client for the central ban authority.

Speaks the authority's HTTP+JSON contract:
  GET                      → JSON array of ban records
  POST  (record body)      → upsert keyed by PlayerId
  DELETE ?player_id=<id>   → 200 on removal, 404 when absent

The bearer credential is attached to each request individually; the
service object holds no mutable transport state. Changing the credential
produces a new service via ``with_api_key``.
"""

import logging
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from banlist_agent.models.ban import BanRecord, FetchResult

logger = logging.getLogger(__name__)


class RemoteServiceError(Exception):
    """Base class for failures talking to the ban authority."""
    pass


class TransportError(RemoteServiceError):
    """Timeout, refused connection or server-side failure. Retried next cycle."""
    pass


class AuthError(RemoteServiceError):
    """The authority rejected the configured credential."""
    pass


class SchemaError(RemoteServiceError):
    """The response body is not a ban list at all."""
    pass


class RemoteResult(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    FAILURE = "failure"


def parse_ban_list(payload: Any) -> FetchResult:
    """
    Turn a decoded GET body into ban records.

    A non-array body is a SchemaError. Individual malformed entries are
    skipped and counted so that one bad row never discards the rest.
    """
    if not isinstance(payload, list):
        raise SchemaError(
            f"Expected a JSON array of bans, got {type(payload).__name__}"
        )

    records = []
    skipped = 0
    for index, entry in enumerate(payload):
        if not isinstance(entry, dict):
            skipped += 1
            logger.warning("Skipping ban entry #%d: not an object", index)
            continue
        try:
            records.append(BanRecord.model_validate(entry))
        except ValidationError as exc:
            skipped += 1
            fields = ", ".join(
                ".".join(str(p) for p in err["loc"]) or "<root>" for err in exc.errors()
            )
            logger.warning("Skipping malformed ban entry #%d (invalid: %s)", index, fields)

    return FetchResult(records=records, skipped=skipped)


class RemoteBanService:
    """Async client for the ban authority."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def with_api_key(self, api_key: str) -> "RemoteBanService":
        """A copy of this service using a different credential."""
        return RemoteBanService(
            self._endpoint,
            api_key,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _request(self, method: str, **kwargs) -> httpx.Response:
        if not self._endpoint.strip():
            raise TransportError("No ban authority endpoint configured")
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method, self._endpoint, headers=self._headers(), **kwargs
                )
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"{method} {self._endpoint} timed out after {self._timeout}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {self._endpoint} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthError(
                f"Ban authority rejected the API key ({response.status_code})"
            )
        return response

    async def fetch_all(self) -> FetchResult:
        """Fetch every active ban, newest first as ordered by the authority."""
        response = await self._request("GET")
        if response.status_code >= 400:
            raise TransportError(
                f"GET {self._endpoint} returned {response.status_code}"
            )
        if not response.content.strip():
            raise SchemaError("Ban authority returned an empty body")
        try:
            payload = response.json()
        except ValueError as exc:
            raise SchemaError("Ban authority returned invalid JSON") from exc

        result = parse_ban_list(payload)
        logger.debug(
            "Fetched %d ban record(s), skipped %d", len(result.records), result.skipped
        )
        return result

    async def submit(self, record: BanRecord) -> RemoteResult:
        """Upsert a ban on the authority. Raises AuthError on a rejected credential."""
        try:
            response = await self._request("POST", json=record.to_wire())
        except TransportError as exc:
            logger.warning("Failed to submit ban for %s: %s", record.player_id, exc)
            return RemoteResult.FAILURE

        if response.is_success:
            return RemoteResult.SUCCESS
        logger.warning(
            "Failed to submit ban for %s: status %d. Response: %s",
            record.player_id,
            response.status_code,
            response.text,
        )
        return RemoteResult.FAILURE

    async def retract(self, player_id: str) -> RemoteResult:
        """Remove a ban from the authority. Raises AuthError on a rejected credential."""
        try:
            response = await self._request("DELETE", params={"player_id": player_id})
        except TransportError as exc:
            logger.warning("Failed to retract ban for %s: %s", player_id, exc)
            return RemoteResult.FAILURE

        if response.status_code == 404:
            return RemoteResult.NOT_FOUND
        if response.is_success:
            return RemoteResult.SUCCESS
        logger.warning(
            "Failed to retract ban for %s: status %d. Response: %s",
            player_id,
            response.status_code,
            response.text,
        )
        return RemoteResult.FAILURE
