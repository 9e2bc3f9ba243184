import asyncio
import ipaddress

import pytest

from arcticsniff.dns import AP_ADDRESS, CaptiveDnsProtocol, build_response, start_dns_server

QUESTION = b"\x07example\x03com\x00\x00\x01\x00\x01"
QUERY = b"\xab\xcd\x01\x00\x00\x01\x00\x00\x00\x00\x00\x00" + QUESTION


def test_response_structure():
    resp = build_response(QUERY)
    assert resp[:2] == QUERY[:2]
    assert resp[2:4] == b"\x81\x80"
    assert resp[4:6] == (1).to_bytes(2, "big")
    assert resp[6:8] == (1).to_bytes(2, "big")
    assert resp[8:12] == bytes(4)
    assert resp[12 : 12 + len(QUESTION)] == QUESTION
    answer = resp[12 + len(QUESTION) :]
    assert answer[:12] == b"\xc0\x0c\x00\x01\x00\x01\x00\x00\x00\x3c\x00\x04"
    assert answer[12:] == ipaddress.IPv4Address(AP_ADDRESS).packed
    assert len(resp) == 12 + len(QUESTION) + 16


def test_custom_address():
    resp = build_response(QUERY, "10.1.2.3")
    assert resp[-4:] == ipaddress.IPv4Address("10.1.2.3").packed


def test_short_datagram_ignored():
    assert build_response(QUERY[:11]) is None


def test_truncated_question_ignored():
    assert build_response(QUERY[:-3]) is None


def test_oversized_question_ignored():
    labels = b"\x3f" + b"a" * 63
    question = labels * 8 + b"\x00\x00\x01\x00\x01"
    assert build_response(QUERY[:12] + question) is None


def test_invalid_address_rejected():
    with pytest.raises(ValueError):
        CaptiveDnsProtocol("not-an-address")


class _RecordingTransport:
    def __init__(self):
        self.sent = []

    def sendto(self, data, addr):
        self.sent.append((data, addr))


def test_protocol_replies_to_sender():
    proto = CaptiveDnsProtocol("10.0.0.1")
    transport = _RecordingTransport()
    proto.connection_made(transport)
    proto.datagram_received(QUERY, ("127.0.0.1", 5555))
    proto.datagram_received(b"\x00\x01", ("127.0.0.1", 5556))
    assert transport.sent == [(build_response(QUERY, "10.0.0.1"), ("127.0.0.1", 5555))]


class _Client(asyncio.DatagramProtocol):
    def __init__(self):
        self.reply = asyncio.get_running_loop().create_future()

    def datagram_received(self, data, addr):
        if not self.reply.done():
            self.reply.set_result(data)


@pytest.mark.asyncio
async def test_server_answers_over_udp():
    server, _ = await start_dns_server("127.0.0.1", 0, "10.9.8.7")
    try:
        host, port = server.get_extra_info("sockname")[:2]
        loop = asyncio.get_running_loop()
        client_transport, client = await loop.create_datagram_endpoint(
            _Client, remote_addr=(host, port)
        )
        try:
            client_transport.sendto(QUERY)
            reply = await asyncio.wait_for(client.reply, timeout=5)
        finally:
            client_transport.close()
    finally:
        server.close()
    assert reply == build_response(QUERY, "10.9.8.7")
    assert reply[-4:] == ipaddress.IPv4Address("10.9.8.7").packed