"""In-memory JSON Lines recording of sniffed Modbus transactions."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable

from .sniffer import Transaction

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 4 * 1024 * 1024
"""Recording buffer size used when none is given (4 MiB)."""

_FULL_MARGIN = 32
"""Recording stops once fewer than this many bytes are left."""

_FC_NUMBERS = {0x03: 3, 0x06: 6, 0x10: 16}


def _dumps(obj: dict) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def format_jsonl(txn: Transaction) -> str:
    """Format a transaction as one JSON Lines record.

    Only reads (FC 3), single writes (FC 6) and multiple writes (FC 16)
    are recorded; any other function code gives an empty string.
    """
    fc = _FC_NUMBERS.get(txn.fc)
    if fc is None:
        return ""
    if fc == 6:
        record = {
            "t": txn.timestamp_ms,
            "fc": 6,
            "addr": txn.reg_addr,
            "value": txn.values[0],
        }
    else:
        record = {
            "t": txn.timestamp_ms,
            "fc": fc,
            "addr": txn.reg_addr,
            "count": txn.reg_count,
            "values": list(txn.values[: txn.reg_count]),
        }
    return _dumps(record) + "\n"


class Recorder:
    """Bounded in-memory recorder that stops itself when the buffer fills.

    A ``capacity`` of ``None`` or 0 means no memory is available for
    recording; the recorder then only reports that it cannot record.
    All methods are thread-safe.
    """

    def __init__(self, capacity: int | None = DEFAULT_CAPACITY) -> None:
        if capacity is not None and capacity < 0:
            raise ValueError(f"capacity must not be negative, got {capacity}")
        self._capacity = capacity or 0
        self._buffer: bytearray | None = bytearray() if self._capacity else None
        self._lock = threading.Lock()
        self._recording = False
        self._entries = 0
        self._auto_stop: Callable[[], None] | None = None
        if self._buffer is None:
            log.info("No recording memory: in-memory recording disabled")
        else:
            log.info("Recording buffer: %uKB", self._capacity // 1024)

    def has_memory_recording(self) -> bool:
        """True if a recording buffer is available."""
        return self._buffer is not None

    def is_recording(self) -> bool:
        """True while transactions are being recorded."""
        return self._recording

    def start(self) -> None:
        """Start recording, discarding anything recorded before."""
        with self._lock:
            if self._buffer is None:
                raise RuntimeError("no recording buffer available")
            self._buffer.clear()
            self._entries = 0
            self._recording = True
        log.info("Recording started (buffer: %uKB)", self._capacity // 1024)

    def stop(self) -> None:
        """Stop recording; recorded data is kept."""
        with self._lock:
            self._recording = False
            entries, used = self._entries, self.buffer_used_unlocked()
        log.info("Recording stopped: %u entries, %uKB", entries, used // 1024)

    def buffer_used_unlocked(self) -> int:
        return len(self._buffer) if self._buffer is not None else 0

    def add(self, txn: Transaction) -> None:
        """Append a transaction while recording; stop when the buffer is full."""
        with self._lock:
            if not self._recording or self._buffer is None:
                return
            remaining = self._capacity - len(self._buffer)
            line = format_jsonl(txn).encode("utf-8")
            if remaining < _FULL_MARGIN or len(line) > remaining:
                full = True
            else:
                if line:
                    self._buffer += line
                    self._entries += 1
                full = len(self._buffer) >= self._capacity - _FULL_MARGIN
            if full:
                self._recording = False
                log.warning(
                    "Recording auto-stopped: buffer full (%uKB)",
                    len(self._buffer) // 1024,
                )
            callback = self._auto_stop if full else None
        if callback is not None:
            callback()

    def clear(self) -> None:
        """Discard all recorded data without changing the recording state."""
        with self._lock:
            if self._buffer is not None:
                self._buffer.clear()
            self._entries = 0
        log.info("Recording data cleared")

    def get_data(self) -> bytes:
        """Return the recorded JSON Lines data."""
        with self._lock:
            return bytes(self._buffer) if self._buffer is not None else b""

    def entry_count(self) -> int:
        """Number of recorded transactions."""
        with self._lock:
            return self._entries

    def buffer_used(self) -> int:
        """Bytes of the buffer in use."""
        with self._lock:
            return self.buffer_used_unlocked()

    def buffer_limit(self) -> int:
        """Capacity of the buffer in bytes (0 if none)."""
        return self._capacity

    def set_auto_stop_callback(self, callback: Callable[[], None] | None) -> None:
        """Set the function called when recording stops because the buffer is full."""
        with self._lock:
            self._auto_stop = callback