"""
Serial transport for the weighing transmitter.

The acquisition engine only needs the small capability set described by
``Transport``. ``SerialTransport`` implements it on top of pyserial; tests
substitute their own object with the same methods.
"""

import errno
import logging
from typing import Protocol

import serial

from utility.exceptions import OpenError, PortBusy, PortNotFound, PortPermissionDenied

logger = logging.getLogger(__name__)

# Map string values to the corresponding `serial` constants
bytesize_map = {
    'FIVEBITS': serial.FIVEBITS,
    'SIXBITS': serial.SIXBITS,
    'SEVENBITS': serial.SEVENBITS,
    'EIGHTBITS': serial.EIGHTBITS
}

parity_map = {
    'NONE': serial.PARITY_NONE,
    'EVEN': serial.PARITY_EVEN,
    'ODD': serial.PARITY_ODD,
    'MARK': serial.PARITY_MARK,
    'SPACE': serial.PARITY_SPACE
}

stopbits_map = {
    'ONE': serial.STOPBITS_ONE,
    'TWO': serial.STOPBITS_TWO
}

_NOT_FOUND_ERRNOS = {errno.ENOENT, errno.ENODEV, errno.ENXIO}
_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}
_BUSY_ERRNOS = {errno.EBUSY, errno.EAGAIN, errno.EWOULDBLOCK}


class Transport(Protocol):
    def open(self, config) -> None: ...

    def write(self, data: bytes) -> int: ...

    def bytes_available(self) -> int: ...

    def read(self, size: int) -> bytes: ...

    def close(self) -> None: ...


def classify_open_error(port, exc):
    """
    Turns a pyserial open failure into a specific OpenError.
    ----------
    Parameters
    ----------
    port : str
        The port that failed to open.
    exc : Exception
        The exception raised by pyserial (SerialException or OSError).

    Returns
    -------
    OpenError
        PortNotFound, PortPermissionDenied, PortBusy, or a plain OpenError.
    """
    message = str(exc)
    code = getattr(exc, "errno", None)
    lowered = message.lower()

    if code in _NOT_FOUND_ERRNOS or "filenotfound" in lowered or "could not find" in lowered:
        return PortNotFound(port, message)
    if code in _PERMISSION_ERRNOS or "permission" in lowered or "access is denied" in lowered:
        return PortPermissionDenied(port, message)
    if code in _BUSY_ERRNOS or "lock" in lowered or "in use" in lowered or "busy" in lowered:
        return PortBusy(port, message)
    return OpenError(port, message)


class SerialTransport:
    """pyserial-backed transport, 8 data bits, no parity, one stop bit."""

    def __init__(self, serial_cls=None, bytesize='EIGHTBITS', parity='NONE', stopbits='ONE', timeout=1):
        self._serial_cls = serial_cls or serial.Serial
        self._bytesize = bytesize_map[bytesize]
        self._parity = parity_map[parity]
        self._stopbits = stopbits_map[stopbits]
        self._timeout = timeout
        self._ser = None

    def open(self, config) -> None:
        """Opens ``config.port`` at ``config.baud_rate``; raises an OpenError kind on failure."""
        try:
            self._ser = self._serial_cls(
                port=config.port,
                baudrate=config.baud_rate,
                bytesize=self._bytesize,
                parity=self._parity,
                stopbits=self._stopbits,
                timeout=self._timeout,
                write_timeout=self._timeout,
                xonxoff=False,
                rtscts=False,
            )
        except (serial.SerialException, OSError) as e:
            self._ser = None
            raise classify_open_error(config.port, e) from e
        logger.info("Opened serial port %s at %d baud.", config.port, config.baud_rate)

    def write(self, data: bytes) -> int:
        return self._ser.write(data)

    def bytes_available(self) -> int:
        return self._ser.in_waiting

    def read(self, size: int) -> bytes:
        return self._ser.read(size)

    def close(self) -> None:
        ser, self._ser = self._ser, None
        if ser is not None and ser.is_open:
            ser.close()
            logger.info("Serial port %s closed.", ser.port)
