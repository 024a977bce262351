"""
Output Buffer

Bounded, newest-first collection of successful results for the UI's output
strip. Lives for the process lifetime only.
"""

import threading
from typing import Iterable, List

from .models import GenerationRequest, GenerationResult, OutputEntry
from .studio_logger import logger

DEFAULT_CAPACITY = 6


class OutputBuffer:
    """
    Each pushed batch is inserted as a block ahead of older entries, in batch
    order. Overflow evicts the oldest entries first. Mutations hold a lock.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: List[OutputEntry] = []
        self._lock = threading.Lock()

    def push(self, results: Iterable[GenerationResult],
             request: GenerationRequest) -> List[OutputEntry]:
        """Wrap successful results as entries and insert them at the front."""
        entries = [
            OutputEntry(
                image_ref=result.image_ref,
                prompt=result.prompt or request.prompt,
                style=request.style,
                asset_type=request.asset_type,
                provider_id=result.provider_id,
                is_fallback=result.is_fallback,
            )
            for result in results
            if result.success and result.image_ref
        ]
        if not entries:
            return []

        with self._lock:
            self._entries[:0] = entries
            self._evict_locked()
        return entries

    def evict_overflow(self) -> int:
        """Drop the oldest entries beyond capacity. Returns how many were dropped."""
        with self._lock:
            return self._evict_locked()

    def _evict_locked(self) -> int:
        overflow = len(self._entries) - self.capacity
        if overflow <= 0:
            return 0
        del self._entries[self.capacity:]
        logger.debug(f"🗑️ Evicted {overflow} old output(s)")
        return overflow

    def list(self) -> List[OutputEntry]:
        """Snapshot, newest first."""
        with self._lock:
            return list(self._entries)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)
