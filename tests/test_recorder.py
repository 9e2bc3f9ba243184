import json

import pytest

from arcticsniff.recorder import Recorder, format_jsonl
from arcticsniff.sniffer import Transaction


def _write_single(ts=1, addr=2000, value=1):
    txn = Transaction(timestamp_ms=ts, fc=0x06, reg_addr=addr, reg_count=1)
    txn.values[0] = value
    return txn


def _read(ts, addr, values):
    txn = Transaction(timestamp_ms=ts, fc=0x03, reg_addr=addr, reg_count=len(values))
    txn.values[: len(values)] = values
    return txn


def test_format_read_holding():
    line = format_jsonl(_read(1700000000123, 2100, [25, 65535]))
    assert line == '{"t":1700000000123,"fc":3,"addr":2100,"count":2,"values":[25,65535]}\n'


def test_format_write_single():
    line = format_jsonl(_write_single(ts=-5, addr=2003, value=45))
    assert line == '{"t":-5,"fc":6,"addr":2003,"value":45}\n'


def test_format_write_multiple_round_trip():
    txn = Transaction(timestamp_ms=42, fc=0x10, reg_addr=2002, reg_count=3)
    txn.values[:3] = [7, 8, 9]
    record = json.loads(format_jsonl(txn))
    assert record == {"t": 42, "fc": 16, "addr": 2002, "count": 3, "values": [7, 8, 9]}


@pytest.mark.parametrize("fc", [0x04, 0x83, 0x01])
def test_format_unknown_fc_is_empty(fc):
    assert format_jsonl(Transaction(fc=fc)) == ""


def test_no_memory_recorder():
    rec = Recorder(None)
    assert rec.has_memory_recording() is False
    assert rec.buffer_limit() == 0
    with pytest.raises(RuntimeError):
        rec.start()
    rec.add(_write_single())
    assert rec.get_data() == b""


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        Recorder(-1)


def test_add_only_while_recording():
    rec = Recorder(4096)
    rec.add(_write_single())
    assert rec.entry_count() == 0
    rec.start()
    assert rec.is_recording() is True
    rec.add(_write_single(ts=1))
    rec.add(_read(2, 2100, [1, 2]))
    rec.stop()
    rec.add(_write_single(ts=3))
    assert rec.is_recording() is False
    assert rec.entry_count() == 2
    lines = rec.get_data().decode().splitlines()
    assert [json.loads(x)["t"] for x in lines] == [1, 2]
    assert rec.buffer_used() == len(rec.get_data())


def test_unrecordable_fc_is_not_counted():
    rec = Recorder(4096)
    rec.start()
    rec.add(Transaction(fc=0x04, reg_count=1))
    assert rec.entry_count() == 0
    assert rec.buffer_used() == 0


def test_start_discards_previous_data():
    rec = Recorder(4096)
    rec.start()
    rec.add(_write_single())
    rec.stop()
    rec.start()
    assert rec.entry_count() == 0
    assert rec.get_data() == b""


def test_clear_keeps_recording_state():
    rec = Recorder(4096)
    rec.start()
    rec.add(_write_single())
    rec.clear()
    assert rec.is_recording() is True
    assert rec.entry_count() == 0
    assert rec.buffer_used() == 0


def test_auto_stop_when_nearly_full():
    txn = _write_single()
    length = len(format_jsonl(txn))
    rec = Recorder(2 * length + 32)
    calls = []
    rec.set_auto_stop_callback(lambda: calls.append(rec.is_recording()))
    rec.start()
    rec.add(txn)
    assert rec.is_recording() is True
    assert calls == []
    rec.add(txn)
    assert rec.is_recording() is False
    assert calls == [False]
    assert rec.entry_count() == 2
    assert rec.buffer_used() <= rec.buffer_limit()


def test_auto_stop_when_line_does_not_fit():
    txn = _write_single()
    length = len(format_jsonl(txn))
    rec = Recorder(length + 40)
    calls = []
    rec.set_auto_stop_callback(lambda: calls.append(True))
    rec.start()
    rec.add(txn)
    rec.add(txn)
    assert rec.is_recording() is False
    assert calls == [True]
    assert rec.entry_count() == 1
    assert rec.buffer_used() == length