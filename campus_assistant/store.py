"""Conversation state management."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import List

from .models import ConversationEntry, ConversationStats

MAX_HISTORY = 100
RETAINED_HISTORY = 50


class ConversationStore:
    """Bounded, chronological in-memory ledger of processed exchanges.

    When an append pushes the ledger past ``MAX_HISTORY`` entries it is cut
    back to the most recent ``RETAINED_HISTORY`` in one step.
    """

    def __init__(
        self, max_history: int = MAX_HISTORY, retained: int = RETAINED_HISTORY
    ) -> None:
        self.max_history = max_history
        self.retained = retained
        self._entries: List[ConversationEntry] = []
        self._lock = asyncio.Lock()

    async def append(self, entry: ConversationEntry) -> None:
        """Add a new conversation entry."""
        async with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self.max_history:
                self._entries = self._entries[-self.retained :]

    def history(self) -> List[ConversationEntry]:
        """Return a copy of the ledger, oldest first."""
        return list(self._entries)

    def recent(self, count: int) -> List[ConversationEntry]:
        if count <= 0:
            return []
        return self._entries[-count:]

    async def clear(self) -> None:
        async with self._lock:
            self._entries = []

    def stats(self) -> ConversationStats:
        """Aggregate statistics over the retained entries."""
        entries = self._entries
        if not entries:
            return ConversationStats()

        distribution = Counter(entry.topic for entry in entries)
        average = sum(entry.confidence for entry in entries) / len(entries)
        return ConversationStats(
            conversation_count=len(entries),
            topic_distribution=dict(distribution),
            average_confidence=round(average, 2),
            last_activity=entries[-1].timestamp,
        )

    def __len__(self) -> int:
        return len(self._entries)
