"""
Snapshot Cache

In-process cache of materialized run results. Entries belong to one source
snapshot; storing a value for a different snapshot discards everything
cached before, so stale results are never served.
"""

import threading
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class SnapshotCache:
    """Results cached per source snapshot id"""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot_id: Optional[str] = None
        self._entries: Dict[str, Any] = {}

    @property
    def snapshot_id(self) -> Optional[str]:
        return self._snapshot_id

    def get(self, snapshot_id: str, key: str) -> Optional[Any]:
        """Cached value, or None when missing or cached for another snapshot"""
        with self._lock:
            if snapshot_id != self._snapshot_id:
                return None
            return self._entries.get(key)

    def put(self, snapshot_id: str, key: str, value: Any) -> None:
        """Store a value, invalidating entries of any other snapshot"""
        with self._lock:
            if snapshot_id != self._snapshot_id:
                if self._entries:
                    logger.info(
                        "Source snapshot changed, cache invalidated",
                        previous=self._snapshot_id,
                        current=snapshot_id,
                        dropped=len(self._entries),
                    )
                self._entries = {}
                self._snapshot_id = snapshot_id
            self._entries[key] = value

    def invalidate(self) -> None:
        """Drop every entry"""
        with self._lock:
            self._entries = {}
            self._snapshot_id = None

    def __len__(self) -> int:
        return len(self._entries)
