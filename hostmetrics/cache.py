"""
Per-session snapshot cache.

Each (session, section) entry moves through ``STALE -> REFRESHING -> FRESH``.
A failed refresh returns the entry to STALE but keeps the last good value, so
callers keep seeing data while a domain is unavailable.
"""

import copy
import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from hostmetrics.models import default_for_section


class SectionState(enum.Enum):
    STALE = "stale"
    REFRESHING = "refreshing"
    FRESH = "fresh"


@dataclass
class CacheEntry:
    """
    Cached value for one section of one session.

    Attributes:
        value: Last successfully computed value, or None if never computed.
        state: Refresh state.
        last_updated_ms: Epoch ms of the last successful refresh, 0 if never.
    """
    value: Any = None
    state: SectionState = SectionState.STALE
    last_updated_ms: int = 0


class SnapshotCache:
    """Last good value per (session, section), plus the activated detail sections."""

    def __init__(self):
        self._entries: Dict[str, Dict[str, CacheEntry]] = {}
        self._activated: Dict[str, Set[str]] = {}

    def entry(self, session_id: str, section: str) -> CacheEntry:
        """Return the entry for ``section``, creating a STALE one on first use."""
        return self._entries.setdefault(session_id, {}).setdefault(section, CacheEntry())

    def peek(self, session_id: str, section: str) -> Optional[CacheEntry]:
        return self._entries.get(session_id, {}).get(section)

    def value(self, session_id: str, section: str) -> Any:
        """
        Copy of the cached value, or the section's zero-value default.

        A copy is returned so later refreshes never mutate a snapshot that
        was already handed to a caller.
        """
        entry = self.peek(session_id, section)
        if entry is None or entry.value is None:
            return default_for_section(section)
        return copy.deepcopy(entry.value)

    def state(self, session_id: str, section: str) -> SectionState:
        entry = self.peek(session_id, section)
        return entry.state if entry else SectionState.STALE

    def age_ms(self, session_id: str, section: str, now_ms: int) -> Optional[int]:
        """Milliseconds since the last successful refresh, or None if never refreshed."""
        entry = self.peek(session_id, section)
        if entry is None or not entry.last_updated_ms:
            return None
        return now_ms - entry.last_updated_ms

    def begin_refresh(self, session_id: str, section: str) -> None:
        self.entry(session_id, section).state = SectionState.REFRESHING

    def store(self, session_id: str, section: str, value: Any, timestamp_ms: int) -> None:
        entry = self.entry(session_id, section)
        entry.value = value
        entry.last_updated_ms = timestamp_ms
        entry.state = SectionState.FRESH

    def mark_failed(self, session_id: str, section: str) -> None:
        """Return the entry to STALE, keeping its last good value."""
        self.entry(session_id, section).state = SectionState.STALE

    def activate(self, session_id: str, section: str) -> None:
        self._activated.setdefault(session_id, set()).add(section)

    def activated(self, session_id: str) -> Set[str]:
        return set(self._activated.get(session_id, ()))

    def has_session(self, session_id: str) -> bool:
        return session_id in self._entries or session_id in self._activated

    def destroy(self, session_id: str) -> None:
        """Drop every entry and the activation set for ``session_id``."""
        self._entries.pop(session_id, None)
        self._activated.pop(session_id, None)
