"""Engine states, health event kinds and the consumer callback surface."""

from enum import Enum
import logging

from utility.exceptions import OpenError

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    POLLING = "polling"
    FAULTED = "faulted"


class HealthKind(Enum):
    POLL_MISS = "PollMiss"
    OPEN_FAILED = "OpenError"
    PROBE_TIMEOUT = "ProbeTimeout"
    SENSOR_UNRESPONSIVE = "SensorUnresponsive"


class Consumer:
    """
    Receives engine events, in the order the engine produced them.

    Subclass and override what you need; every hook is a no-op by default.
    Hooks run on the dispatcher thread, never on the engine thread.

    ``on_health_event`` gets a text detail, except for ``OPEN_FAILED`` where
    the detail is the OpenError itself (PortNotFound, PortPermissionDenied,
    PortBusy), so callers can branch on its type or ``kind``.
    """

    def on_reading(self, reading):
        pass

    def on_health_event(self, kind, detail):
        pass

    def on_state_change(self, state):
        pass

    def on_log(self, message):
        pass


class ConsumerGroup(Consumer):
    """Fans every event out to several consumers."""

    def __init__(self, *consumers):
        self.consumers = list(consumers)

    def on_reading(self, reading):
        for consumer in self.consumers:
            consumer.on_reading(reading)

    def on_health_event(self, kind, detail):
        for consumer in self.consumers:
            consumer.on_health_event(kind, detail)

    def on_state_change(self, state):
        for consumer in self.consumers:
            consumer.on_state_change(state)

    def on_log(self, message):
        for consumer in self.consumers:
            consumer.on_log(message)


class LoggingConsumer(Consumer):
    """Writes readings and health events to the process log."""

    def on_reading(self, reading):
        logger.info("Weight: %.3f", reading.value)

    def on_health_event(self, kind, detail):
        if kind is HealthKind.POLL_MISS:
            logger.warning("%s: %s", kind.value, detail)
        elif isinstance(detail, OpenError):
            logger.error("%s (%s): %s", kind.value, detail.kind, detail)
        else:
            logger.error("%s: %s", kind.value, detail)

    def on_state_change(self, state):
        logger.info("Acquisition state: %s", state.value)
