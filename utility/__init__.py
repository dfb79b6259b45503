from utility.bitconvert import split_32bit_to_16bit, to_unsigned_32bit
from utility.initialserial import SerialTransport, Transport, classify_open_error
from utility.initialset import (
    PlcConfig,
    SessionConfig,
    load_plc_config,
    load_restart_delay,
    load_session_config,
)
from utility.waiting import collect_bytes, drain
