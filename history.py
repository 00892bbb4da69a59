"""In-memory list of recent transcripts, newest first."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional

from models import HistoryEntry

MAX_HISTORY = 10


class TranscriptHistory:
    def __init__(self, max_entries: int = MAX_HISTORY) -> None:
        self._max_entries = max_entries
        self._entries: list[HistoryEntry] = []
        self._lock = threading.Lock()

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def commit(
        self,
        transcript: str,
        confidence: float,
        timestamp: Optional[datetime] = None,
    ) -> Optional[HistoryEntry]:
        """Prepend an entry unless the transcript is blank."""
        if not transcript.strip():
            return None
        entry = HistoryEntry(
            timestamp=timestamp or datetime.now(),
            transcript=transcript,
            confidence=confidence,
        )
        with self._lock:
            self._entries.insert(0, entry)
            del self._entries[self._max_entries:]
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
