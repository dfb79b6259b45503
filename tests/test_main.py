"""
Test code
"""

import threading
from unittest import mock

import pymcprotocol
import pytest

import main
from acquisition import ConnectionState
from conftest import FakeTransport, RecordingConsumer, make_config
from frame.codec import build_response


def test_main_exits_on_fault_without_restart():
    transport = FakeTransport(replies=[None])
    consumer = RecordingConsumer()

    exit_code = main.main(make_config(), transport, consumer)

    assert exit_code == 1
    assert consumer.states == [ConnectionState.CONNECTING, ConnectionState.FAULTED]
    assert transport.close_count == 1


def test_main_restarts_after_fault():
    good = build_response("5.000")
    # Probe fails, then the restarted session answers and keeps answering
    transport = FakeTransport(replies=[None], default=good)
    consumer = RecordingConsumer()
    stop_event = threading.Event()

    result = {}
    thread = threading.Thread(
        target=lambda: result.setdefault(
            "code", main.main(make_config(), transport, consumer, restart_delay=0.01, stop_event=stop_event)
        ),
    )
    thread.start()

    assert consumer.wait_for(lambda: len(consumer.readings) >= 2)
    stop_event.set()
    thread.join(timeout=5)

    assert not thread.is_alive(), "main.main() should complete and shut down"
    assert result["code"] == 0
    assert transport.open_count == 2
    assert transport.close_count == 2
    assert consumer.states == [
        ConnectionState.CONNECTING,
        ConnectionState.FAULTED,
        ConnectionState.CONNECTING,
        ConnectionState.POLLING,
        ConnectionState.DISCONNECTED,
    ]


def test_main_stop_event_during_restart_delay():
    transport = FakeTransport(replies=[None])
    consumer = RecordingConsumer()
    stop_event = threading.Event()
    threading.Timer(0.2, stop_event.set).start()

    exit_code = main.main(make_config(), transport, consumer, restart_delay=60, stop_event=stop_event)

    assert exit_code == 0
    assert transport.open_count == 1


def test_build_consumer_adds_plc_writer():
    pymc3e = mock.MagicMock(spec=pymcprotocol.Type3E)
    plc_config = mock.Mock(headdevice="D6364", bitunit="M3300")

    group = main.build_consumer(pymc3e, plc_config)
    assert [type(c).__name__ for c in group.consumers] == ["LoggingConsumer", "PlcWeightWriter"]

    group = main.build_consumer(None, None)
    assert [type(c).__name__ for c in group.consumers] == ["LoggingConsumer"]


def test_run_rejects_bad_config(monkeypatch):
    monkeypatch.delenv("SERIAL_PORT", raising=False)
    with pytest.raises(SystemExit) as excinfo:
        main.run()
    assert excinfo.value.code == 1


def test_run_wires_plc_and_closes_it(monkeypatch):
    monkeypatch.setenv("SERIAL_PORT", "/dev/ttyUSB0")
    monkeypatch.setenv("PLC_IP", "127.0.0.1")
    monkeypatch.setenv("PLC_PORT", "5000")
    pymc3e = mock.MagicMock(spec=pymcprotocol.Type3E)
    monkeypatch.setattr(main.connect, "initialize_connection", mock.Mock(return_value=pymc3e))
    fake_main = mock.Mock(return_value=0)
    monkeypatch.setattr(main, "main", fake_main)

    with pytest.raises(SystemExit) as excinfo:
        main.run()

    assert excinfo.value.code == 0
    session_config = fake_main.call_args.args[0]
    assert session_config.port == "/dev/ttyUSB0"
    pymc3e.close.assert_called_once()
