"""Per-task context buffer fed by hook decisions.

Context contributed by hooks is only for the *next* model-facing request.
The accumulator is append-only and capped; the controller reads it right
before each model request and never while a decision is in flight.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from hookgate.config import DEFAULT_CONTEXT_CAP_BYTES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextEntry:
    """One accepted piece of hook context, already wrapped in its marker."""

    source: str
    text: str

    @property
    def rendered(self) -> str:
        return f'<hook_context source="{self.source}">\n{self.text}\n</hook_context>'

    @property
    def size(self) -> int:
        return len(self.rendered.encode("utf-8"))


class ContextAccumulator:
    """Append-only, size-capped buffer of hook context for one task.

    An entry that would push the buffer past ``cap_bytes`` is dropped
    whole; previously accepted entries are never truncated. The first
    drop logs a warning; later drops log at debug level.

    ``drain()`` returns the entries accepted since the previous drain.
    The full history stays available through ``entries`` until
    ``clear()`` retires the buffer.
    """

    def __init__(self, cap_bytes: int = DEFAULT_CONTEXT_CAP_BYTES, *, owner: str = "") -> None:
        if cap_bytes <= 0:
            raise ValueError(f"cap_bytes must be positive, got {cap_bytes}")
        self._cap = cap_bytes
        self._owner = owner
        self._entries: list[ContextEntry] = []
        self._size = 0
        self._cursor = 0
        self._dropped = 0
        self._warned = False
        self._lock = threading.Lock()

    @property
    def cap_bytes(self) -> int:
        return self._cap

    @property
    def size_bytes(self) -> int:
        return self._size

    @property
    def dropped(self) -> int:
        """Number of entries rejected because of the cap."""
        return self._dropped

    @property
    def entries(self) -> tuple[ContextEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def append(self, source: str, text: str) -> bool:
        """Append one context entry.

        Empty text is ignored. Returns True if the entry was accepted.
        """
        if not text:
            return False
        entry = ContextEntry(source=source, text=text)
        size = entry.size
        with self._lock:
            if self._size + size > self._cap:
                self._dropped += 1
                if not self._warned:
                    self._warned = True
                    logger.warning(
                        "Context buffer for task %s reached its cap of %d bytes; "
                        "dropping %d-byte entry from %s and any further overflow",
                        self._owner or "?", self._cap, size, source,
                    )
                else:
                    logger.debug(
                        "Dropped %d-byte context entry from %s (cap reached)",
                        size, source,
                    )
                return False
            self._entries.append(entry)
            self._size += size
            return True

    def pending(self) -> tuple[ContextEntry, ...]:
        """Entries accepted since the last drain, without consuming them."""
        with self._lock:
            return tuple(self._entries[self._cursor:])

    def drain(self) -> str:
        """Render and consume the entries accepted since the last drain."""
        with self._lock:
            fresh = self._entries[self._cursor:]
            self._cursor = len(self._entries)
        return "\n\n".join(entry.rendered for entry in fresh)

    def render(self) -> str:
        """Render the whole buffer (read-only)."""
        with self._lock:
            return "\n\n".join(entry.rendered for entry in self._entries)

    def clear(self) -> None:
        """Retire the buffer. Used when the owning task ends."""
        with self._lock:
            self._entries.clear()
            self._size = 0
            self._cursor = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
