"""
Frame codec for the weighing transmitter.

Command frame (5 bytes)::

    [address, command, parameter, checksum, 0x0D]

Response frame (10 bytes)::

    [0x11, 0x42, d1, d2, d3, d4, d5, status, checksum, 0x0D]

The five digits are ASCII ``'0'..'9'``, most significant first. Status bit 2
is the sign, bits 0-1 the number of decimal places. Every function here is a
pure function of its arguments.
"""

import time
from decimal import Decimal

from frame.constants import (
    CHECKSUM_MASK,
    CHECKSUM_OFFSET,
    DIGIT_COUNT,
    DIGITS_OFFSET,
    MAX_DECIMAL_PLACES,
    RESPONSE_HEADER,
    RESPONSE_LENGTH,
    STATUS_DECIMALS_MASK,
    STATUS_OFFSET,
    STATUS_SIGN_BIT,
    TERMINATOR,
    TERMINATOR_OFFSET,
)
from frame.models import WeightReading
from utility.exceptions import ChecksumMismatch, FrameMalformed, FrameTooShort


def checksum(data):
    """
    Computes the 7-bit frame checksum.
    ----------
    Parameters
    ----------
    data : bytes or iterable of int
        The bytes covered by the checksum.

    Returns
    -------
    int
        ``sum(data) & 0x7F``, bumped by one when it would equal the terminator.
    """
    value = sum(data) & CHECKSUM_MASK
    if value == TERMINATOR:
        value += 1
    return value


def build_command(address, command_code, parameter):
    """Builds the 5-byte command frame for ``address``."""
    body = bytes([address & 0xFF, command_code & 0xFF, parameter & 0xFF])
    return body + bytes([checksum(body), TERMINATOR])


def decode_weight(digits, status):
    """
    Decodes five ASCII digit bytes and a status byte into a signed weight.
    ----------
    Parameters
    ----------
    digits : bytes
        Five digit bytes, most significant first.
    status : int
        Status byte; bit 2 is the sign, bits 0-1 the decimal places.

    Returns
    -------
    Decimal
        The weight, scaled exactly by ``10 ** -places``.
    """
    magnitude = 0
    for byte in digits:
        magnitude = magnitude * 10 + (byte - ord("0"))

    places = status & STATUS_DECIMALS_MASK
    weight = Decimal(magnitude).scaleb(-places)
    if status & STATUS_SIGN_BIT:
        weight = -weight
    return weight


def parse_response(frame, timestamp=None):
    """
    Validates a response frame and decodes the weight it carries.
    ----------
    Parameters
    ----------
    frame : bytes
        Raw bytes read from the port. Only the first 10 are looked at.
    timestamp : float, optional
        Receive time; defaults to ``time.time()``.

    Returns
    -------
    WeightReading

    Raises
    ------
    FrameTooShort
        Fewer than 10 bytes were supplied.
    FrameMalformed
        Header or terminator bytes are wrong, or a digit byte is not ``'0'..'9'``.
    ChecksumMismatch
        The checksum byte does not match the frame contents.
    """
    if len(frame) < RESPONSE_LENGTH:
        raise FrameTooShort(
            f"expected {RESPONSE_LENGTH} bytes, got {len(frame)}"
        )
    frame = bytes(frame[:RESPONSE_LENGTH])

    if (
        frame[: len(RESPONSE_HEADER)] != RESPONSE_HEADER
        or frame[TERMINATOR_OFFSET] != TERMINATOR
    ):
        raise FrameMalformed(f"bad header or terminator: {format_frame(frame)}")

    computed = checksum(frame[:CHECKSUM_OFFSET])
    if computed != frame[CHECKSUM_OFFSET]:
        raise ChecksumMismatch(computed, frame[CHECKSUM_OFFSET])

    digits = frame[DIGITS_OFFSET : DIGITS_OFFSET + DIGIT_COUNT]
    if not all(ord("0") <= byte <= ord("9") for byte in digits):
        raise FrameMalformed(f"non-digit weight bytes: {format_frame(digits)}")

    value = decode_weight(digits, frame[STATUS_OFFSET])
    if timestamp is None:
        timestamp = time.time()
    return WeightReading(value=value, timestamp=timestamp, raw=frame)


def build_response(value, decimal_places=MAX_DECIMAL_PLACES):
    """
    Builds a valid response frame carrying ``value``.

    Used by tests and by anything that needs to stand in for a transmitter.
    Raises ``ValueError`` when the value does not fit in five digits.
    """
    if not 0 <= decimal_places <= MAX_DECIMAL_PLACES:
        raise ValueError(f"decimal_places must be 0-3, got {decimal_places}")

    scaled = Decimal(str(value)).scaleb(decimal_places)
    magnitude = int(abs(scaled).to_integral_value())
    if magnitude >= 10 ** DIGIT_COUNT:
        raise ValueError(f"{value} does not fit in {DIGIT_COUNT} digits")

    status = decimal_places
    if scaled < 0:
        status |= STATUS_SIGN_BIT

    body = RESPONSE_HEADER + str(magnitude).zfill(DIGIT_COUNT).encode("ascii")
    body += bytes([status])
    return body + bytes([checksum(body), TERMINATOR])


def format_frame(data):
    """Renders bytes as ``11-42-30-...`` for log lines."""
    return "-".join(f"{byte:02X}" for byte in data)
