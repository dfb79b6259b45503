from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class WeightReading:
    """A decoded weight and the time it was received."""

    value: Decimal
    timestamp: float
    raw: bytes = field(default=b"", repr=False, compare=False)
