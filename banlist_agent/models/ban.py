"""Ban records and the immutable snapshot the agent enforces from."""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, field_validator

logger = logging.getLogger(__name__)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class BanRecord(BaseModel):
    """
    One authority-held ban entry.

    Accepts both the authority's JSON keys (``PlayerId``, ``Timestamp``, ...)
    and the backend's column names (``player_id``, ``timestamp``, ...).
    """

    model_config = ConfigDict(frozen=True)

    player_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("player_id", "PlayerId"),
        serialization_alias="PlayerId",
    )
    player_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("player_name", "PlayerName"),
        serialization_alias="PlayerName",
    )
    reason: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("reason", "Reason"),
        serialization_alias="Reason",
    )
    issued_at: datetime = Field(
        validation_alias=AliasChoices("issued_at", "Timestamp", "timestamp"),
        serialization_alias="Timestamp",
    )
    origin_server: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("origin_server", "Server", "server"),
        serialization_alias="Server",
    )
    ip_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ip_address", "IpAddress"),
        serialization_alias="IpAddress",
    )

    @field_validator("player_id", mode="before")
    @classmethod
    def _coerce_player_id(cls, value):
        # Network ids are numeric on some servers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("player_name", "reason", "origin_server", "ip_address", mode="before")
    @classmethod
    def _optional_text(cls, value):
        return _blank_to_none(value)

    def to_wire(self) -> dict:
        """Request body for the authority's upsert endpoint."""
        body = self.model_dump(mode="json", by_alias=True)
        if body["IpAddress"] is None:
            body["IpAddress"] = ""
        return body


class FetchResult(BaseModel):
    """Outcome of one successful fetch: usable records plus a count of dropped entries."""

    records: List[BanRecord] = []
    skipped: int = 0


class BanSnapshot(BaseModel):
    """
    Immutable view of the most recently fetched ban set.

    Never mutated after construction. ``valid`` is False only for the
    placeholder snapshot that exists before the first successful fetch.
    """

    model_config = ConfigDict(frozen=True)

    records: Tuple[BanRecord, ...] = ()
    fetched_at: Optional[datetime] = None
    valid: bool = False

    _by_player_id: Dict[str, BanRecord] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context) -> None:
        self._by_player_id = {record.player_id: record for record in self.records}

    @classmethod
    def empty(cls) -> "BanSnapshot":
        return cls()

    @classmethod
    def build(
        cls,
        records: Iterable[BanRecord],
        fetched_at: Optional[datetime] = None,
    ) -> "BanSnapshot":
        """
        Build a snapshot from records in fetch order.

        Duplicate player ids collapse to the last record observed; the
        surviving record keeps the position of the first occurrence.
        """
        index: Dict[str, BanRecord] = {}
        for record in records:
            if record.player_id in index:
                logger.warning(
                    "Authority returned duplicate ban records for player %s; keeping the last one",
                    record.player_id,
                )
            index[record.player_id] = record

        return cls(
            records=tuple(index.values()),
            fetched_at=fetched_at or datetime.now(timezone.utc),
            valid=True,
        )

    def get(self, player_id: str) -> Optional[BanRecord]:
        return self._by_player_id.get(player_id)

    def __len__(self) -> int:
        return len(self.records)
