"""Captive-portal DNS server that answers every query with one address."""

from __future__ import annotations

import asyncio
import ipaddress
import logging

log = logging.getLogger(__name__)

AP_ADDRESS = "192.168.4.1"
"""Address handed out for every name: the access point's gateway."""

_HEADER_LEN = 12
_MAX_PACKET = 512
_ANSWER_TTL = 60


def build_response(query: bytes, address: str = AP_ADDRESS) -> bytes | None:
    """Build a reply to ``query`` with one A record pointing at ``address``.

    Returns None for datagrams that are too short to be DNS queries, whose
    question runs past their end, or whose reply would exceed 512 bytes.
    """
    rdata = ipaddress.IPv4Address(address).packed
    n = len(query)
    if n < _HEADER_LEN:
        return None

    pos = _HEADER_LEN
    while pos < n and query[pos] != 0:
        pos += query[pos] + 1
    pos += 1 + 4  # QNAME terminator, QTYPE and QCLASS
    if pos > n:
        return None
    question = query[_HEADER_LEN:pos]
    if _HEADER_LEN + len(question) + 16 > _MAX_PACKET:
        return None

    header = (
        query[:2]
        + b"\x81\x80"  # response, authoritative, recursion available, no error
        + (1).to_bytes(2, "big")  # questions
        + (1).to_bytes(2, "big")  # answers
        + bytes(4)  # authority and additional
    )
    answer = (
        b"\xc0\x0c"  # pointer to the question name
        + (1).to_bytes(2, "big")  # type A
        + (1).to_bytes(2, "big")  # class IN
        + _ANSWER_TTL.to_bytes(4, "big")
        + len(rdata).to_bytes(2, "big")
        + rdata
    )
    return header + question + answer


class CaptiveDnsProtocol(asyncio.DatagramProtocol):
    """Answers every incoming DNS query with a fixed address."""

    def __init__(self, address: str = AP_ADDRESS) -> None:
        ipaddress.IPv4Address(address)
        self.address = address
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        reply = build_response(data, self.address)
        if reply is not None and self.transport is not None:
            self.transport.sendto(reply, addr)


async def start_dns_server(
    host: str = "0.0.0.0", port: int = 53, address: str = AP_ADDRESS
) -> tuple[asyncio.DatagramTransport, CaptiveDnsProtocol]:
    """Start the captive-portal DNS server on the running event loop."""
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: CaptiveDnsProtocol(address), local_addr=(host, port)
    )
    log.info("DNS server listening on %s:%d", host, port)
    return transport, protocol