# rln_core/inflight.py
from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator, Set, Tuple
import threading


class InFlightRegistry:
    """
    Busy flags keyed by (resource, action), e.g. (credential hash, "erase").

    A key is claimed for the duration of one operation; a second claim on the
    same key fails until the first is released. Different keys never block
    each other.
    """

    def __init__(self):
        self._busy: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

    def try_claim(self, resource: str, action: str) -> bool:
        with self._lock:
            key = (resource, action)
            if key in self._busy:
                return False
            self._busy.add(key)
            return True

    def release(self, resource: str, action: str) -> None:
        with self._lock:
            self._busy.discard((resource, action))

    def is_loading(self, resource: str, action: str) -> bool:
        with self._lock:
            return (resource, action) in self._busy

    @contextmanager
    def claim(self, resource: str, action: str) -> Iterator[bool]:
        """Yields True if claimed; the claim is released on exit."""
        claimed = self.try_claim(resource, action)
        try:
            yield claimed
        finally:
            if claimed:
                self.release(resource, action)
