"""Wire constants for the weighing transmitter protocol."""

TERMINATOR = 0x0D
CHECKSUM_MASK = 0x7F

# Commands
CMD_READ_WEIGHT = 0x42  # ASCII 'B'
CMD_WAKE = 0x44  # ASCII 'D'
PARAM_DEFAULT = 0x3F

# Response: header(2) digits(5) status(1) checksum(1) terminator(1)
RESPONSE_HEADER = b"\x11\x42"
RESPONSE_LENGTH = 10
DIGITS_OFFSET = 2
DIGIT_COUNT = 5
STATUS_OFFSET = 7
CHECKSUM_OFFSET = 8
TERMINATOR_OFFSET = 9

# Status byte
STATUS_SIGN_BIT = 0x04
STATUS_DECIMALS_MASK = 0x03
MAX_DECIMAL_PLACES = 3
