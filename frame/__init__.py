from frame.codec import (
    build_command,
    build_response,
    checksum,
    decode_weight,
    format_frame,
    parse_response,
)
from frame.models import WeightReading
