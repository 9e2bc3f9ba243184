"""HTTP REST and WebSocket interface to the sniffer and the recorder."""

from __future__ import annotations

import asyncio
import gzip
import json
import logging
import threading
from collections import deque
from typing import Any

from aiohttp import web

from .recorder import Recorder
from .registers import format_value, function_code_name, register_lookup
from .sniffer import ModbusSniffer, Transaction

log = logging.getLogger(__name__)

LOG_CAPACITY = 100
"""Number of recent transactions kept for ``GET /api/log``."""

_CORS = {"Access-Control-Allow-Origin": "*"}
_PREFLIGHT = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,DELETE,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def transaction_to_json(txn: Transaction) -> str:
    """Describe a transaction, with each register decoded, as compact JSON."""
    count = min(txn.reg_count, len(txn.values))
    regs = []
    for i, raw in enumerate(txn.values[:count]):
        addr = (txn.reg_addr + i) & 0xFFFF
        info = register_lookup(addr)
        regs.append(
            {
                "addr": addr,
                "raw": raw,
                "name": info.name if info else "Unknown",
                "value": format_value(addr, raw),
            }
        )
    return _dumps(
        {
            "ts": txn.timestamp_ms,
            "slave": txn.slave_addr,
            "fc": txn.fc,
            "fc_name": function_code_name(txn.fc),
            "addr": txn.reg_addr,
            "count": txn.reg_count,
            "error": txn.error_code,
            "regs": regs,
        }
    )


class TransactionLog:
    """Thread-safe ring of the most recent transactions."""

    def __init__(self, capacity: int = LOG_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._items: deque[Transaction] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def add(self, txn: Transaction) -> None:
        """Append a transaction, dropping the oldest one when full."""
        with self._lock:
            self._items.append(txn)

    def entries(self) -> list[Transaction]:
        """Return the kept transactions, oldest first."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ApiServer:
    """Serves status, the transaction log, recording control and a live feed.

    Set ``dashboard`` to an HTML page to have it served (gzip-compressed)
    at ``/``.
    """

    def __init__(
        self,
        sniffer: ModbusSniffer,
        recorder: Recorder,
        ip: str = "0.0.0.0",
        version: str = "",
    ) -> None:
        self.sniffer = sniffer
        self.recorder = recorder
        self.ip = ip
        self.version = version
        self.dashboard: bytes | None = None
        self.log = TransactionLog()
        self._clients: list[web.WebSocketResponse] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Future] = set()

    @property
    def ws_client_count(self) -> int:
        """Number of connected WebSocket clients."""
        return len(self._clients)

    def make_app(self) -> web.Application:
        """Build the aiohttp application with every route registered."""
        app = web.Application()
        app.router.add_get("/", self._handle_root)
        app.router.add_get("/api/status", self._handle_status)
        app.router.add_get("/api/log", self._handle_log)
        app.router.add_post("/api/record/start", self._handle_record_start)
        app.router.add_post("/api/record/stop", self._handle_record_stop)
        app.router.add_get("/api/record/download", self._handle_record_download)
        app.router.add_delete("/api/record", self._handle_record_clear)
        app.router.add_route("OPTIONS", "/api/{tail:.*}", self._handle_options)
        app.router.add_get("/ws", self._handle_ws)
        app.on_startup.append(self._on_startup)
        app.on_shutdown.append(self._on_shutdown)
        return app

    def broadcast_transaction(self, txn: Transaction) -> None:
        """Log a transaction and push it to every WebSocket client.

        Safe to call from any thread.
        """
        self.log.add(txn)
        loop = self._loop
        if loop is None or loop.is_closed() or not self._clients:
            return
        text = transaction_to_json(txn)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._schedule(text)
            return
        try:
            loop.call_soon_threadsafe(self._schedule, text)
        except RuntimeError:
            log.debug("Event loop closed; broadcast dropped")

    # ------------------------------------------------------------------
    # Live feed
    # ------------------------------------------------------------------

    def _schedule(self, text: str) -> None:
        for ws in list(self._clients):
            task = asyncio.ensure_future(self._send(ws, text))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _send(ws: web.WebSocketResponse, text: str) -> None:
        try:
            await ws.send_str(text)
        except (ConnectionError, RuntimeError) as exc:
            log.warning("WS send failed: %s", exc)

    async def _on_startup(self, app: web.Application) -> None:
        self._loop = asyncio.get_running_loop()

    async def _on_shutdown(self, app: web.Application) -> None:
        for ws in list(self._clients):
            await ws.close()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    @staticmethod
    def _json(obj: Any, status: int = 200) -> web.Response:
        return web.Response(
            text=_dumps(obj),
            status=status,
            content_type="application/json",
            headers=_CORS,
        )

    async def _handle_root(self, request: web.Request) -> web.Response:
        if self.dashboard is None:
            raise web.HTTPNotFound()
        return web.Response(
            body=gzip.compress(self.dashboard),
            content_type="text/html",
            headers={"Content-Encoding": "gzip"},
        )

    async def _handle_status(self, request: web.Request) -> web.Response:
        return self._json(
            {
                "version": self.version,
                "ip": self.ip,
                "frames": self.sniffer.frame_count,
                "crc_errors": self.sniffer.crc_errors,
                "transactions": self.sniffer.transaction_count,
                "recording": self.recorder.is_recording(),
                "rec_entries": self.recorder.entry_count(),
                "rec_available": self.recorder.has_memory_recording(),
                "ws_clients": self.ws_client_count,
            }
        )

    async def _handle_log(self, request: web.Request) -> web.Response:
        body = "[" + ",".join(transaction_to_json(t) for t in self.log.entries()) + "]"
        return web.Response(
            text=body, content_type="application/json", headers=_CORS
        )

    async def _handle_record_start(self, request: web.Request) -> web.Response:
        if not self.recorder.has_memory_recording():
            return self._json(
                {"error": "No PSRAM — in-memory recording unavailable"}, status=409
            )
        self.recorder.start()
        return self._json({"status": "recording"})

    async def _handle_record_stop(self, request: web.Request) -> web.Response:
        self.recorder.stop()
        return self._json(
            {"status": "stopped", "entries": self.recorder.entry_count()}
        )

    async def _handle_record_download(self, request: web.Request) -> web.Response:
        return web.Response(
            body=self.recorder.get_data(),
            content_type="application/x-ndjson",
            headers={
                **_CORS,
                "Content-Disposition": 'attachment; filename="capture.jsonl"',
            },
        )

    async def _handle_record_clear(self, request: web.Request) -> web.Response:
        self.recorder.clear()
        return self._json({"status": "cleared"})

    async def _handle_options(self, request: web.Request) -> web.Response:
        return web.Response(status=204, headers=_PREFLIGHT)

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self._clients.append(ws)
        log.info("WS client connected (total=%d)", len(self._clients))
        try:
            async for _ in ws:
                pass  # clients are not expected to send anything
        finally:
            if ws in self._clients:
                self._clients.remove(ws)
            log.info("WS client disconnected (total=%d)", len(self._clients))
        return ws