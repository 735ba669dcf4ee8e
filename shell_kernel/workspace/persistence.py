"""
Workspace Persistence — durable per-tab session records.

Backed by a storage adapter that only knows how to load and save the full
record collection; every operation here is a load-modify-save cycle.

Behavioral Contract:
- createSession is a reset: it always overwrites the tab's record
- touchSession / saveWindows never create a record for an unknown tab
- forkSession deep-copies windows so the fork never aliases the source
- listSessions is ordered by lastSeenAt descending, then tabId ascending
- Cycles are serialised per WorkspacePersistence instance. Two instances
  (or processes) sharing one backing store can still interleave and lose
  writes for the same tab.
"""

import asyncio
import copy
import logging
import time
from typing import List, Optional, Protocol

from shell_kernel.models.workspace import WorkspaceSessionRecord

logger = logging.getLogger(__name__)


class WorkspaceStorageAdapter(Protocol):
    """Load-all / save-all storage for workspace records. No partial updates."""

    async def load_all(self) -> List[WorkspaceSessionRecord]: ...

    async def save_all(self, records: List[WorkspaceSessionRecord]) -> None: ...


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def sort_sessions(records: List[WorkspaceSessionRecord]) -> List[WorkspaceSessionRecord]:
    """lastSeenAt descending, ties broken by tabId ascending."""
    return sorted(records, key=lambda r: (-r.last_seen_at, r.tab_id))


def _find(records: List[WorkspaceSessionRecord], tab_id: str) -> Optional[WorkspaceSessionRecord]:
    return next((r for r in records if r.tab_id == tab_id), None)


def _replace_or_append(records: List[WorkspaceSessionRecord], record: WorkspaceSessionRecord) -> None:
    for i, existing in enumerate(records):
        if existing.tab_id == record.tab_id:
            records[i] = record
            return
    records.append(record)


class WorkspacePersistence:
    """Per-tab workspace records over a load-all/save-all adapter."""

    def __init__(self, adapter: WorkspaceStorageAdapter):
        self._adapter = adapter
        self._lock = asyncio.Lock()

    async def create_session(self, tab_id: str, now: Optional[int] = None) -> WorkspaceSessionRecord:
        """Create (or reset) the record for ``tab_id`` with no windows."""
        ts = now if now is not None else now_ms()
        record = WorkspaceSessionRecord(
            tab_id=tab_id,
            created_at=ts,
            last_seen_at=ts,
            windows=[],
        )
        async with self._lock:
            records = await self._adapter.load_all()
            _replace_or_append(records, record)
            await self._adapter.save_all(records)
        logger.info("Workspace session %s created", tab_id)
        return record.model_copy(deep=True)

    async def touch_session(self, tab_id: str, now: Optional[int] = None) -> bool:
        """Bump lastSeenAt. Unknown tabs are left alone."""
        async with self._lock:
            records = await self._adapter.load_all()
            record = _find(records, tab_id)
            if record is None:
                return False
            record.last_seen_at = now if now is not None else now_ms()
            await self._adapter.save_all(records)
        return True

    async def save_windows(self, tab_id: str, windows: List[dict], now: Optional[int] = None) -> bool:
        """Store a window snapshot for an existing tab and bump lastSeenAt."""
        async with self._lock:
            records = await self._adapter.load_all()
            record = _find(records, tab_id)
            if record is None:
                logger.debug("Ignoring window save for unknown workspace %s", tab_id)
                return False
            record.windows = copy.deepcopy(list(windows))
            record.last_seen_at = now if now is not None else now_ms()
            await self._adapter.save_all(records)
        return True

    async def load_windows(self, tab_id: str) -> Optional[List[dict]]:
        """The stored window snapshot, or None for an unknown tab."""
        async with self._lock:
            records = await self._adapter.load_all()
        record = _find(records, tab_id)
        return copy.deepcopy(record.windows) if record is not None else None

    async def fork_session(
        self,
        from_tab_id: str,
        to_tab_id: str,
        now: Optional[int] = None,
    ) -> Optional[WorkspaceSessionRecord]:
        """Copy ``from_tab_id``'s windows into a fresh ``to_tab_id`` record."""
        ts = now if now is not None else now_ms()
        async with self._lock:
            records = await self._adapter.load_all()
            source = _find(records, from_tab_id)
            if source is None:
                return None

            forked = WorkspaceSessionRecord(
                tab_id=to_tab_id,
                created_at=ts,
                last_seen_at=ts,
                windows=copy.deepcopy(source.windows),
            )
            _replace_or_append(records, forked)
            await self._adapter.save_all(records)
        logger.info("Workspace session %s forked into %s", from_tab_id, to_tab_id)
        return forked.model_copy(deep=True)

    async def prune_stale(self, max_age_ms: int, now: Optional[int] = None) -> int:
        """Remove records not seen within ``max_age_ms``. Returns how many were removed."""
        ts = now if now is not None else now_ms()
        threshold = ts - max_age_ms
        async with self._lock:
            records = await self._adapter.load_all()
            live = [r for r in records if r.last_seen_at >= threshold]
            pruned = len(records) - len(live)
            if pruned > 0:
                await self._adapter.save_all(live)
        if pruned:
            logger.info("Pruned %d stale workspace session(s)", pruned)
        return pruned

    async def remove_session(self, tab_id: str) -> bool:
        async with self._lock:
            records = await self._adapter.load_all()
            remaining = [r for r in records if r.tab_id != tab_id]
            if len(remaining) == len(records):
                return False
            await self._adapter.save_all(remaining)
        return True

    async def list_sessions(self) -> List[WorkspaceSessionRecord]:
        async with self._lock:
            records = await self._adapter.load_all()
        return sort_sessions(records)
