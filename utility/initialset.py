from dataclasses import dataclass
from typing import Mapping, Optional
import logging
import os

from frame.constants import CMD_READ_WEIGHT, CMD_WAKE

logger = logging.getLogger(__name__)

BAUD_RATES = (2400, 4800, 9600, 19200, 38400, 57600, 115200)
PROBE_COMMANDS = (CMD_READ_WEIGHT, CMD_WAKE)
TYPICAL_ADDRESSES = range(0x01, 0x33)


def parse_int(value: str, name: str) -> int:
    """Parses decimal or ``0x``-prefixed values from the environment."""
    try:
        return int(value.strip(), 0)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def validate_device_address(address: int) -> int:
    if not 0 <= address <= 0xFF:
        raise ValueError(f"device address must fit in one byte, got {address}")
    if address not in TYPICAL_ADDRESSES:
        logger.warning("Device address 0x%02X is outside the usual 0x01-0x32 range.", address)
    return address


def validate_sampling_interval(interval_ms: int) -> int:
    if interval_ms <= 0:
        raise ValueError(f"sampling interval must be > 0 ms, got {interval_ms}")
    return interval_ms


@dataclass
class SessionConfig:
    """
    Settings for one acquisition session.

    Only ``sampling_interval_ms`` and ``device_address`` may change while
    polling; the engine applies those changes between ticks.
    """

    port: str
    baud_rate: int = 9600
    sampling_interval_ms: int = 1000
    device_address: int = 0x12
    probe_command: int = CMD_READ_WEIGHT
    probe_timeout_ms: int = 1000
    response_timeout_ms: int = 1000
    poll_granularity_ms: int = 10
    max_misses: int = 3
    stale_after_ms: int = 3000

    def __post_init__(self) -> None:
        if not self.port:
            raise ValueError("port must not be empty")
        if self.baud_rate not in BAUD_RATES:
            raise ValueError(f"baud rate must be one of {BAUD_RATES}, got {self.baud_rate}")
        validate_sampling_interval(self.sampling_interval_ms)
        validate_device_address(self.device_address)
        if self.probe_command not in PROBE_COMMANDS:
            raise ValueError(f"probe command must be 0x42 or 0x44, got 0x{self.probe_command:02X}")
        for name in ("probe_timeout_ms", "response_timeout_ms", "poll_granularity_ms", "max_misses", "stale_after_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")


@dataclass
class PlcConfig:
    ip: str
    port: int
    plctype: str = "Q"
    headdevice: str = "D6364"
    bitunit: str = "M3300"


# Environment variable -> SessionConfig field
_SESSION_ENV = {
    "BAUD_RATE": "baud_rate",
    "SAMPLING_INTERVAL_MS": "sampling_interval_ms",
    "DEVICE_ADDRESS": "device_address",
    "PROBE_COMMAND": "probe_command",
    "PROBE_TIMEOUT_MS": "probe_timeout_ms",
    "RESPONSE_TIMEOUT_MS": "response_timeout_ms",
    "POLL_GRANULARITY_MS": "poll_granularity_ms",
    "MAX_MISSES": "max_misses",
    "STALE_AFTER_MS": "stale_after_ms",
}

# pymcprotocol plctype per PLC_CPU_MODEL
_PLC_TYPES = {
    "RCPU04": "iQ-R",
    "Q": "Q",
    "L": "L",
    "QnA": "QnA",
    "iQ-L": "iQ-L",
    "iQ-R": "iQ-R",
}


def load_session_config(environ: Optional[Mapping[str, str]] = None) -> SessionConfig:
    """
    Builds a SessionConfig from environment variables.
    ----------
    Parameters
    ----------
    environ : mapping, optional
        Defaults to ``os.environ``. ``SERIAL_PORT`` is required, the rest fall
        back to the SessionConfig defaults.

    Raises
    ------
    ValueError
        If a variable is missing or cannot be parsed.
    """
    if environ is None:
        environ = os.environ

    port = environ.get("SERIAL_PORT", "").strip()
    if not port:
        raise ValueError("SERIAL_PORT is not configured")

    kwargs = {}
    for env_name, field_name in _SESSION_ENV.items():
        value = environ.get(env_name, "")
        if value.strip():
            kwargs[field_name] = parse_int(value, env_name)
    return SessionConfig(port=port, **kwargs)


def load_plc_config(environ: Optional[Mapping[str, str]] = None) -> Optional[PlcConfig]:
    """Returns the PLC settings, or None when ``PLC_IP`` is unset."""
    if environ is None:
        environ = os.environ

    ip = environ.get("PLC_IP", "").strip()
    if not ip:
        return None

    port = parse_int(environ.get("PLC_PORT", "0"), "PLC_PORT")
    if not port:
        raise ValueError("PLC_PORT is not configured")

    model = environ.get("PLC_CPU_MODEL", "Q").strip()
    if model not in _PLC_TYPES:
        raise ValueError(f"PLC_CPU_MODEL must be one of {sorted(_PLC_TYPES)}, got {model!r}")

    return PlcConfig(
        ip=ip,
        port=port,
        plctype=_PLC_TYPES[model],
        headdevice=environ.get("PLC_HEADDEVICE", "D6364").strip().lstrip("/"),
        bitunit=environ.get("PLC_BITUNIT", "M3300").strip(),
    )


def load_restart_delay(environ: Optional[Mapping[str, str]] = None) -> float:
    if environ is None:
        environ = os.environ
    value = environ.get("RESTART_DELAY_S", "0")
    try:
        delay = float(value)
    except ValueError:
        raise ValueError(f"RESTART_DELAY_S must be a number, got {value!r}") from None
    return max(delay, 0.0)
