"""Passive Modbus RTU sniffer: frame extraction and request/response pairing."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import BinaryIO

import serial

log = logging.getLogger(__name__)

MAX_REGS = 64
"""Maximum number of register values held in one transaction."""

MAX_FRAME = 256
MAX_BLOB = 512
RESP_TIMEOUT_MS = 500
STATS_INTERVAL_MS = 10_000

_NTP_SYNCED_AFTER = 1577836800  # 2020-01-01, seconds since the epoch


def crc16(data: bytes) -> int:
    """Modbus CRC-16 (reflected polynomial 0xA001, initial value 0xFFFF)."""
    crc = 0xFFFF
    for byte in data:
        crc ^= byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0xA001 if crc & 1 else crc >> 1
    return crc


def _crc_ok(frame: bytes | bytearray) -> bool:
    if len(frame) < 4:
        return False
    received = frame[-2] | (frame[-1] << 8)
    return received == crc16(bytes(frame[:-2]))


def _is_known_fc(fc: int) -> bool:
    return fc in (0x03, 0x04, 0x06, 0x10) or bool(fc & 0x80)


def _u16(data: bytes, offset: int) -> int:
    return (data[offset] << 8) | data[offset + 1]


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


@dataclass
class Transaction:
    """A Modbus request paired with its response (if one was seen)."""

    timestamp_ms: int = 0
    slave_addr: int = 0
    fc: int = 0
    reg_addr: int = 0
    reg_count: int = 0
    values: list[int] = field(default_factory=lambda: [0] * MAX_REGS)
    has_response: bool = False
    error_code: int = 0


TransactionCallback = Callable[[Transaction], None]


class ModbusSniffer:
    """Extracts RTU frames from a byte stream and pairs requests with responses.

    ``clock`` returns a monotonic time in milliseconds; it drives the
    response timeout and stands in for wall-clock time when the system
    clock is obviously unset.
    """

    def __init__(
        self,
        callback: TransactionCallback | None = None,
        clock: Callable[[], int] = _monotonic_ms,
    ) -> None:
        self._callback = callback
        self._clock = clock
        self._buffer = bytearray()
        self._pending: Transaction | None = None
        self._pending_uptime_ms = 0
        self.frame_count = 0
        self.crc_errors = 0
        self.transaction_count = 0

    @property
    def buffered(self) -> int:
        """Number of bytes waiting in the accumulation buffer."""
        return len(self._buffer)

    @property
    def has_pending(self) -> bool:
        """True while a request is waiting for its response."""
        return self._pending is not None

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def feed(self, data: bytes) -> None:
        """Add received bytes and process every complete frame they finish."""
        view = memoryview(bytes(data))
        while view:
            room = MAX_BLOB - len(self._buffer)
            if room <= 0:
                self._extract_frames()
                continue
            self._buffer += view[:room]
            view = view[room:]
            self._extract_frames()
        if not data:
            self._extract_frames()

    def check_timeout(self) -> None:
        """Emit the pending request on its own if its response is overdue."""
        if self._pending is None:
            return
        if self._clock() - self._pending_uptime_ms > RESP_TIMEOUT_MS:
            pending = self._pending
            log.warning(
                "Response timeout for FC 0x%02X addr %u", pending.fc, pending.reg_addr
            )
            pending.has_response = False
            self._pending = None
            self._emit(pending)

    def discard_buffer(self) -> None:
        """Drop all bytes not yet assembled into frames (e.g. after an overrun)."""
        self._buffer.clear()

    def run(self, stream: BinaryIO) -> None:
        """Read from ``stream`` and sniff until it ends.

        A stream with a read timeout (such as a serial port) is read
        indefinitely; an empty read only means the bus was idle. A stream
        without one ends at its first empty read.
        """
        idle_means_eof = getattr(stream, "timeout", None) is None
        last_stats_ms = self._clock()
        while True:
            waiting = getattr(stream, "in_waiting", 0) or 1
            chunk = stream.read(min(max(waiting, 1), MAX_BLOB))
            if chunk:
                self.feed(chunk)
            elif idle_means_eof:
                self.check_timeout()
                return
            self.check_timeout()
            now = self._clock()
            if now - last_stats_ms >= STATS_INTERVAL_MS:
                log.info(
                    "Stats: frames=%d txn=%d crc_err=%d buf=%d",
                    self.frame_count,
                    self.transaction_count,
                    self.crc_errors,
                    len(self._buffer),
                )
                last_stats_ms = now

    # ------------------------------------------------------------------
    # Frame extraction
    # ------------------------------------------------------------------

    def _expected_frame_len(self) -> int:
        buf = self._buffer
        remaining = len(buf)
        if remaining < 2:
            return 0
        fc = buf[1]

        if fc in (0x03, 0x04):
            response_len = 3 + buf[2] + 2 if remaining >= 3 else 0
            response_fits = 5 <= response_len <= remaining
            if self._pending is not None:
                if response_fits:
                    return response_len
                return 8 if remaining >= 8 else 0
            if remaining >= 8:
                return 8
            return response_len if response_fits else 0

        if fc == 0x06:
            return 8 if remaining >= 8 else 0

        if fc == 0x10:
            if self._pending is not None:
                return 8 if remaining >= 8 else 0
            if remaining >= 7:
                request_len = 7 + buf[6] + 2
                if request_len <= remaining:
                    return request_len
            return 0

        if fc & 0x80 and remaining >= 5:
            return 5
        return 0

    def _take_frame(self, length: int) -> None:
        frame = bytes(self._buffer[:length])
        del self._buffer[:length]
        log.debug("Frame (%d bytes): %s", length, frame[:20].hex(" ").upper())
        self.frame_count += 1
        self._process_frame(frame)

    def _skip_byte(self) -> None:
        self.crc_errors += 1
        del self._buffer[0]

    def _extract_frames(self) -> None:
        buf = self._buffer
        while len(buf) >= 4:
            flen = self._expected_frame_len()
            if 0 < flen <= len(buf):
                if _crc_ok(buf[:flen]):
                    self._take_frame(flen)
                    continue
            elif flen > len(buf):
                break

            if not _is_known_fc(buf[1]):
                log.debug("Skip unknown FC 0x%02X at buf[0]=0x%02X", buf[1], buf[0])
                self._skip_byte()
                continue

            max_try = min(len(buf), MAX_FRAME)
            found = next(
                (n for n in range(4, max_try + 1) if _crc_ok(buf[:n])), None
            )
            if found is not None:
                log.debug("Brute-force frame len=%d", found)
                self._take_frame(found)
                continue

            if len(buf) > MAX_FRAME:
                self._skip_byte()
            else:
                break

    # ------------------------------------------------------------------
    # Request/response state machine
    # ------------------------------------------------------------------

    def _now_ms(self) -> int:
        wall = time.time_ns()
        if wall // 1_000_000_000 > _NTP_SYNCED_AFTER:
            return wall // 1_000_000
        return self._clock()

    def _emit(self, txn: Transaction) -> None:
        if self._callback is not None:
            self._callback(txn)
        self.transaction_count += 1

    def _process_frame(self, frame: bytes) -> None:
        if len(frame) < 4 or not _crc_ok(frame):
            return
        addr, fc = frame[0], frame[1]
        payload = frame[2:-2]
        if self._pending is None:
            self._handle_request(addr, fc, payload)
        else:
            self._handle_response(fc, payload)

    def _handle_request(self, addr: int, fc: int, payload: bytes) -> None:
        plen = len(payload)
        txn = Transaction(
            timestamp_ms=self._now_ms(), slave_addr=addr, fc=fc
        )
        uptime = self._clock()

        if fc == 0x03:
            if plen >= 4:
                txn.reg_addr = _u16(payload, 0)
                txn.reg_count = _u16(payload, 2)
        elif fc == 0x06:
            if plen >= 4:
                txn.reg_addr = _u16(payload, 0)
                txn.reg_count = 1
                txn.values[0] = _u16(payload, 2)
        elif fc == 0x10:
            if plen >= 5:
                txn.reg_addr = _u16(payload, 0)
                txn.reg_count = _u16(payload, 2)
                count = min(txn.reg_count, MAX_REGS)
                for i in range(count):
                    if 5 + i * 2 + 1 >= plen:
                        break
                    txn.values[i] = _u16(payload, 5 + i * 2)
        else:
            self._emit(txn)
            return

        self._pending = txn
        self._pending_uptime_ms = uptime

    def _handle_response(self, fc: int, payload: bytes) -> None:
        assert self._pending is not None
        txn = replace(self._pending, values=list(self._pending.values))
        txn.has_response = True
        self._pending = None
        plen = len(payload)

        if fc & 0x80:
            txn.error_code = payload[0] if plen >= 1 else 0xFF
        elif fc == 0x03:
            if plen >= 1:
                count = min(payload[0] // 2, MAX_REGS, txn.reg_count)
                for i in range(count):
                    if 1 + i * 2 + 1 >= plen:
                        break
                    txn.values[i] = _u16(payload, 1 + i * 2)
                txn.reg_count = count
        elif fc == 0x06:
            if plen >= 4:
                txn.values[0] = _u16(payload, 2)

        self._emit(txn)


def open_serial(port: str, baudrate: int = 9600) -> serial.Serial:
    """Open a serial port configured for Modbus RTU sniffing (8-E-1)."""
    return serial.Serial(
        port,
        baudrate=baudrate,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_EVEN,
        stopbits=serial.STOPBITS_ONE,
        timeout=0.01,
    )