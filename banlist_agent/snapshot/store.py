"""
Snapshot Store — holds the ban snapshot currently being enforced.

Updated by: the scheduler, after a successful fetch
Read by: the connect gate and the reconciler
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from banlist_agent.models.ban import BanRecord, BanSnapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Publication point for ban snapshots.

    Snapshots are immutable, so publishing is a single reference swap and
    readers never need a lock. A failed fetch simply does not publish,
    leaving the previous snapshot in place.
    """

    def __init__(self):
        self._snapshot = BanSnapshot.empty()

    @property
    def current(self) -> BanSnapshot:
        """The snapshot readers should use right now."""
        return self._snapshot

    @property
    def has_loaded(self) -> bool:
        """Whether any fetch has ever succeeded."""
        return self._snapshot.valid

    def publish(
        self,
        records: Iterable[BanRecord],
        fetched_at: Optional[datetime] = None,
    ) -> BanSnapshot:
        """Build a snapshot from freshly fetched records and make it current."""
        snapshot = BanSnapshot.build(records, fetched_at)
        previous = self._snapshot
        self._snapshot = snapshot
        logger.info(
            "Published ban snapshot with %d record(s) (previously %d)",
            len(snapshot),
            len(previous),
        )
        return snapshot
