from acquisition.engine import AcquisitionEngine
from acquisition.events import (
    ConnectionState,
    Consumer,
    ConsumerGroup,
    HealthKind,
    LoggingConsumer,
)
