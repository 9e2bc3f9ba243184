"""Passive Modbus RTU sniffer for Arctic heat pumps: register decoding, JSONL recording, web API."""

__version__ = "0.3.0"