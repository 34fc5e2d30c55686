"""
fetchgraph Id Generation

Deterministic, monotonic identifiers for definitions, store slots and
consumers. Caller-supplied ids always take precedence.
"""

from __future__ import annotations

import itertools
import threading
from typing import Dict, Iterator


class IdGenerator:
    """
    Monotonic per-prefix counter.

    Usage:
        ids = IdGenerator()
        ids.next("definition")  # "definition_1"
        ids.next("definition")  # "definition_2"
        ids.next("store")       # "store_1"
    """

    def __init__(self) -> None:
        self._counters: Dict[str, Iterator[int]] = {}
        self._lock = threading.Lock()

    def next(self, prefix: str) -> str:
        """Return the next id for a prefix."""
        with self._lock:
            counter = self._counters.get(prefix)
            if counter is None:
                counter = itertools.count(1)
                self._counters[prefix] = counter
            return f"{prefix}_{next(counter)}"

    def reset(self) -> None:
        """Restart every counter (tests only)."""
        with self._lock:
            self._counters.clear()


_default_generator = IdGenerator()


def get_default_generator() -> IdGenerator:
    """Get the process-wide generator used by define_data_handler."""
    return _default_generator

