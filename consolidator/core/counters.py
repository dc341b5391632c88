"""Named consolidation counters and a thread-safe in-memory sink."""

import threading
from collections import Counter
from enum import Enum
from typing import Protocol


class ConsolidationCounter(str, Enum):
    CONSOLIDATION = "CONSOLIDATION"
    CONSOLIDATION_SUCCESS = "CONSOLIDATION_SUCCESS"
    CONSOLIDATION_PER_DOI = "CONSOLIDATION_PER_DOI"
    CONSOLIDATION_PER_DOI_SUCCESS = "CONSOLIDATION_PER_DOI_SUCCESS"
    CONSOLIDATION_PER_AUTHOR_TITLE = "CONSOLIDATION_PER_AUTHOR_TITLE"
    CONSOLIDATION_PER_AUTHOR_TITLE_SUCCESS = "CONSOLIDATION_PER_AUTHOR_TITLE_SUCCESS"
    CONSOLIDATION_PER_JOURNAL = "CONSOLIDATION_PER_JOURNAL"
    CONSOLIDATION_PER_JOURNAL_SUCCESS = "CONSOLIDATION_PER_JOURNAL_SUCCESS"


class CounterSink(Protocol):
    """Anything that can count named events."""

    def increment(self, name: ConsolidationCounter) -> None: ...


class InMemoryCounters:
    """CounterSink backed by a Counter; safe to share between threads."""

    def __init__(self):
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def increment(self, name: ConsolidationCounter) -> None:
        with self._lock:
            self._counts[ConsolidationCounter(name).value] += 1

    def get(self, name: ConsolidationCounter) -> int:
        with self._lock:
            return self._counts[ConsolidationCounter(name).value]

    def snapshot(self) -> dict[str, int]:
        """Copy of all non-zero counts keyed by counter name."""
        with self._lock:
            return dict(self._counts)
