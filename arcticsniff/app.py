"""Command-line entry point: sniff a serial Modbus bus and serve the web API."""

from __future__ import annotations

import argparse
import logging
import threading
from collections.abc import Callable, Sequence
from pathlib import Path

import serial
from aiohttp import web

from .api_server import ApiServer
from .recorder import DEFAULT_CAPACITY, Recorder
from .sniffer import ModbusSniffer, Transaction, open_serial

log = logging.getLogger(__name__)

DEFAULT_VERSION = "0.3.0"
DEFAULT_HTTP_PORT = 8080


class ButtonController:
    """Toggles in-memory recording each time the front button is pressed."""

    def __init__(self, recorder: Recorder) -> None:
        self.recorder = recorder

    def on_press(self) -> bool:
        """Start or stop recording; return whether recording is now active.

        Starting discards earlier data. Without a recording buffer the
        press is ignored.
        """
        recorder = self.recorder
        if not recorder.has_memory_recording():
            return False
        if recorder.is_recording():
            recorder.stop()
            log.info("Recording stopped (button)")
            return False
        recorder.clear()
        recorder.start()
        log.info("Recording started (button)")
        return True


def _make_transaction_handler(
    api: ApiServer, recorder: Recorder
) -> Callable[[Transaction], None]:
    def handle(txn: Transaction) -> None:
        api.broadcast_transaction(txn)
        if recorder.is_recording():
            recorder.add(txn)

    return handle


def _on_auto_stop() -> None:
    log.warning("Recording auto-stopped (buffer full)")


def _build_components(
    capacity: int | None, version: str, ip: str
) -> tuple[ModbusSniffer, Recorder, ApiServer]:
    """Create the recorder, sniffer and API server and wire them together."""
    recorder = Recorder(capacity)
    sniffer = ModbusSniffer()
    api = ApiServer(sniffer, recorder, ip=ip, version=version)
    recorder.set_auto_stop_callback(_on_auto_stop)
    sniffer._callback = _make_transaction_handler(api, recorder)
    return sniffer, recorder, api


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return value


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="arcticsniff",
        description="Passively sniff heat-pump Modbus RTU traffic and serve it over HTTP.",
    )
    parser.add_argument("port", help="serial device attached to the RS-485 bus")
    parser.add_argument("--baud", type=_non_negative_int, default=9600,
                        help="bus baud rate (default: 9600)")
    parser.add_argument("--host", default="0.0.0.0",
                        help="address the HTTP server listens on")
    parser.add_argument("--http-port", type=_non_negative_int, default=DEFAULT_HTTP_PORT,
                        help=f"HTTP port (default: {DEFAULT_HTTP_PORT})")
    parser.add_argument("--capacity", type=_non_negative_int, default=DEFAULT_CAPACITY,
                        help="recording buffer size in bytes; 0 disables recording")
    parser.add_argument("--dashboard", type=Path,
                        help="HTML page served at /")
    parser.add_argument("--ip", help="address reported by /api/status")
    parser.add_argument("--version", dest="app_version", default=DEFAULT_VERSION,
                        help="version reported by /api/status")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log every frame")
    return parser.parse_args(argv)


def _sniff(sniffer: ModbusSniffer, stream: serial.Serial) -> None:
    try:
        sniffer.run(stream)
    except (serial.SerialException, OSError) as exc:
        log.error("Serial read failed: %s", exc)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the sniffer on a serial port and serve the REST/WebSocket API."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    sniffer, recorder, api = _build_components(
        args.capacity or None, args.app_version, args.ip or args.host
    )
    if args.dashboard is not None:
        try:
            api.dashboard = args.dashboard.read_bytes()
        except OSError as exc:
            log.error("Cannot read dashboard %s: %s", args.dashboard, exc)
            return 1

    try:
        stream = open_serial(args.port, args.baud)
    except (serial.SerialException, OSError) as exc:
        log.error("Cannot open %s: %s", args.port, exc)
        return 1

    thread = threading.Thread(target=_sniff, args=(sniffer, stream),
                              name="sniffer", daemon=True)
    thread.start()
    log.info("Modbus sniffer running on %s at %d baud", args.port, args.baud)
    try:
        web.run_app(api.make_app(), host=args.host, port=args.http_port, print=None)
    finally:
        stream.close()
    return 0