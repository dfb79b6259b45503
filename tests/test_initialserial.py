import errno
from unittest import mock

import pytest
import serial

from conftest import make_config
from utility.exceptions import OpenError, PortBusy, PortNotFound, PortPermissionDenied
from utility.initialserial import SerialTransport, classify_open_error


@pytest.mark.parametrize(
    "exc, expected",
    [
        (serial.SerialException(errno.ENOENT, "could not open port /dev/ttyUSB9"), PortNotFound),
        (serial.SerialException(errno.EACCES, "could not open port /dev/ttyUSB0"), PortPermissionDenied),
        (serial.SerialException(errno.EBUSY, "could not open port /dev/ttyUSB0"), PortBusy),
        (serial.SerialException("Could not exclusively lock port /dev/ttyUSB0"), PortBusy),
        (serial.SerialException("could not open port 'COM7': FileNotFoundError(2, 'The system cannot find the file specified.')"), PortNotFound),
        (serial.SerialException("could not open port 'COM3': PermissionError(13, 'Access is denied.')"), PortPermissionDenied),
        (serial.SerialException("something odd"), OpenError),
    ],
)
def test_classify_open_error(exc, expected):
    error = classify_open_error("/dev/ttyUSB0", exc)
    assert type(error) is expected
    assert error.port == "/dev/ttyUSB0"


def test_open_uses_8n1_at_configured_baud():
    serial_cls = mock.MagicMock()
    transport = SerialTransport(serial_cls=serial_cls)

    transport.open(make_config(baud_rate=19200))

    kwargs = serial_cls.call_args.kwargs
    assert kwargs["port"] == "/dev/ttyFAKE0"
    assert kwargs["baudrate"] == 19200
    assert kwargs["bytesize"] == serial.EIGHTBITS
    assert kwargs["parity"] == serial.PARITY_NONE
    assert kwargs["stopbits"] == serial.STOPBITS_ONE


def test_open_failure_raises_specific_kind():
    serial_cls = mock.MagicMock(side_effect=serial.SerialException(errno.ENOENT, "no such port"))
    transport = SerialTransport(serial_cls=serial_cls)

    with pytest.raises(PortNotFound) as excinfo:
        transport.open(make_config())
    assert excinfo.value.kind == "port_missing"
    assert isinstance(excinfo.value.__cause__, serial.SerialException)


def test_read_write_and_close():
    ser = mock.MagicMock()
    ser.in_waiting = 10
    ser.read.return_value = b"\x11\x42"
    ser.write.return_value = 5
    ser.is_open = True
    transport = SerialTransport(serial_cls=mock.MagicMock(return_value=ser))
    transport.open(make_config())

    assert transport.write(b"\x12\x42\x3f\x13\x0d") == 5
    assert transport.bytes_available() == 10
    assert transport.read(2) == b"\x11\x42"

    transport.close()
    transport.close()
    ser.close.assert_called_once()
