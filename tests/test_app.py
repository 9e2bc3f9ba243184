import logging

import pytest

from arcticsniff.app import ButtonController, _build_components, main
from arcticsniff.recorder import Recorder
from arcticsniff.sniffer import Transaction, crc16


def _frame(body: bytes) -> bytes:
    crc = crc16(body)
    return body + bytes((crc & 0xFF, crc >> 8))


def _read_txn(value: int = 1) -> Transaction:
    txn = Transaction(timestamp_ms=0, slave_addr=1, fc=0x03, reg_addr=2000, reg_count=1)
    txn.values[0] = value
    return txn


def test_button_toggles_recording():
    recorder = Recorder(4096)
    button = ButtonController(recorder)
    assert button.on_press() is True
    assert recorder.is_recording()
    assert button.on_press() is False
    assert not recorder.is_recording()


def test_button_start_discards_previous_data():
    recorder = Recorder(4096)
    button = ButtonController(recorder)
    button.on_press()
    recorder.add(_read_txn())
    button.on_press()
    assert recorder.entry_count() == 1
    button.on_press()
    assert recorder.entry_count() == 0
    assert recorder.get_data() == b""


def test_button_ignored_without_memory():
    recorder = Recorder(None)
    button = ButtonController(recorder)
    assert button.on_press() is False
    assert not recorder.is_recording()


def test_transactions_are_logged_and_recorded_only_while_recording():
    sniffer, recorder, api = _build_components(4096, "1.0", "127.0.0.1")
    sniffer._callback(_read_txn())
    assert len(api.log.entries()) == 1
    assert recorder.entry_count() == 0

    recorder.start()
    sniffer._callback(_read_txn(7))
    assert len(api.log.entries()) == 2
    assert recorder.entry_count() == 1
    assert b'"values":[7]' in recorder.get_data()


def test_sniffed_frames_flow_to_log_and_recording():
    sniffer, recorder, api = _build_components(4096, "1.0", "127.0.0.1")
    recorder.start()
    request = _frame(bytes((0x01, 0x03, 0x07, 0xD0, 0x00, 0x01)))
    response = _frame(bytes((0x01, 0x03, 0x02, 0x00, 0x01)))
    sniffer.feed(request + response)

    entries = api.log.entries()
    assert len(entries) == 1
    assert entries[0].reg_addr == 2000
    assert entries[0].values[0] == 1
    assert entries[0].has_response
    assert sniffer.transaction_count == 1
    assert recorder.entry_count() == 1


def test_auto_stop_is_reported(caplog):
    sniffer, recorder, api = _build_components(40, "1.0", "127.0.0.1")
    recorder.start()
    with caplog.at_level(logging.WARNING):
        sniffer._callback(_read_txn())
    assert not recorder.is_recording()
    assert any(r.name == "arcticsniff.app" for r in caplog.records)


def test_api_reports_given_version_and_ip():
    _, _, api = _build_components(None, "9.9.9", "10.0.0.5")
    assert api.version == "9.9.9"
    assert api.ip == "10.0.0.5"
    assert not api.recorder.has_memory_recording()


def test_main_help_exits_cleanly():
    with pytest.raises(SystemExit) as exc:
        main(["--help"])
    assert exc.value.code == 0


def test_main_rejects_negative_capacity():
    with pytest.raises(SystemExit) as exc:
        main(["/dev/null", "--capacity", "-1"])
    assert exc.value.code == 2


def test_main_fails_on_missing_serial_port(tmp_path):
    missing = tmp_path / "no-such-tty"
    assert main([str(missing)]) == 1


def test_main_fails_on_missing_dashboard(tmp_path):
    assert main([str(tmp_path / "tty"), "--dashboard", str(tmp_path / "none.html")]) == 1