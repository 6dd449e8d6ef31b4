"""
Enforcement Policy — the pure decision rule of the agent.

Maps a (ban record, connected client, ban method) triple to exactly one
enforcement action or a typed skip. Shared by the connect gate and the
periodic reconciler so both enforce identically.

Behavioral Contract:
- Bots are skipped unconditionally, before any matching
- Identity match applies to every method; IP match only to IP_BAN
- The ban method alone fixes the action kind
- IP_BAN never produces an action without an IP on both sides; those skips
  are reported separately from "no match"
- No I/O, no logging, no state
"""

from typing import Optional

from banlist_agent.models.ban import BanRecord, BanSnapshot
from banlist_agent.models.client import ConnectedClient
from banlist_agent.models.enforcement import (
    BanMethod,
    Decision,
    EnforcementAction,
    Skip,
    SkipReason,
)

DEFAULT_REASON = "No reason provided"


def effective_reason(record: BanRecord) -> str:
    """The record's reason verbatim, or the placeholder when it is empty."""
    if record.reason and record.reason.strip():
        return record.reason
    return DEFAULT_REASON


def is_in_scope(decision: Decision) -> bool:
    """True for any decision where the record matched the client."""
    if isinstance(decision, EnforcementAction):
        return True
    return decision.in_scope


def decide(record: BanRecord, client: ConnectedClient, method: BanMethod) -> Decision:
    """Decide what, if anything, to issue against ``client`` for ``record``."""
    if client.is_bot:
        return Skip(
            reason=SkipReason.BOT,
            target_identity=client.identity,
            player_id=record.player_id,
        )

    identity_match = client.identity == record.player_id
    ip_match = (
        method == BanMethod.IP_BAN
        and record.ip_address is not None
        and client.ip_address is not None
        and record.ip_address == client.ip_address
    )

    if not (identity_match or ip_match):
        return Skip(
            reason=SkipReason.NO_MATCH,
            target_identity=client.identity,
            player_id=record.player_id,
        )

    if method == BanMethod.IP_BAN:
        if record.ip_address is None:
            return Skip(
                reason=SkipReason.MISSING_RECORD_IP,
                target_identity=client.identity,
                player_id=record.player_id,
            )
        if client.ip_address is None:
            return Skip(
                reason=SkipReason.CLIENT_IP_UNAVAILABLE,
                target_identity=client.identity,
                player_id=record.player_id,
            )

    return EnforcementAction(
        kind=method,
        player_id=record.player_id,
        target_identity=client.identity,
        target_name=client.name,
        reason=effective_reason(record),
        ip_address=record.ip_address if method == BanMethod.IP_BAN else None,
    )


def first_match(
    snapshot: BanSnapshot,
    client: ConnectedClient,
    method: BanMethod,
) -> Decision:
    """
    Evaluate ``client`` against a whole snapshot; the first in-scope decision wins.

    The identity lookup is a direct key lookup. Only IP_BAN falls back to a
    scan of the snapshot, in snapshot order, for a record sharing the client's IP.
    """
    if client.is_bot:
        return Skip(reason=SkipReason.BOT, target_identity=client.identity)

    record: Optional[BanRecord] = snapshot.get(client.identity)
    if record is not None:
        decision = decide(record, client, method)
        if is_in_scope(decision):
            return decision

    if method == BanMethod.IP_BAN and client.ip_address is not None:
        for record in snapshot.records:
            decision = decide(record, client, method)
            if is_in_scope(decision):
                return decision

    return Skip(reason=SkipReason.NO_MATCH, target_identity=client.identity)
