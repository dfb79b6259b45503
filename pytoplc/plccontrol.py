"""
Forwards weight readings to a Mitsubishi PLC over MC protocol 3E.

Each reading is written as ``round(weight * 100)`` into two word devices
starting at ``headdevice`` (low word first, signed 32-bit), then ``bitunit``
is set to tell the PLC a fresh value is there. When the acquisition faults,
both are cleared so the PLC never acts on a stale weight.
"""

import logging
import socket

from acquisition.events import ConnectionState, Consumer
from utility.bitconvert import split_32bit_to_16bit, to_unsigned_32bit

logger = logging.getLogger(__name__)


def weight_to_words(value):
    """Scales a weight to hundredths and splits it into PLC words."""
    target_value = int((value * 100).to_integral_value())
    return split_32bit_to_16bit(to_unsigned_32bit(target_value))


class PlcWeightWriter(Consumer):
    """
    Consumer that mirrors readings into PLC devices.
    ----------
    Parameters
    ----------
    pymc3e : pymcprotocol.Type3E
        Connected PLC client.
    headdevice : str
        First word device for the weight, e.g. ``"D6364"``.
    bitunit : str
        Bit device raised after each write, e.g. ``"M3300"``.
    """

    def __init__(self, pymc3e, headdevice, bitunit):
        self.pymc3e = pymc3e
        self.headdevice = headdevice
        self.bitunit = bitunit

    def on_reading(self, reading):
        try:
            converted_values = weight_to_words(reading.value)
        except ValueError:
            logger.error("Weight out of PLC range: %s", reading.value)
            return

        try:
            self.pymc3e.batchwrite_wordunits(headdevice=self.headdevice, values=converted_values)
            self.pymc3e.batchwrite_bitunits(headdevice=self.bitunit, values=[1])
        except (socket.timeout, TimeoutError, OSError) as e:
            logger.error("Failed to write weight data to PLC: %s", e)
            return
        logger.debug("PLC updated with weight: %s (words %s).", reading.value, converted_values)

    def on_state_change(self, state):
        if state is ConnectionState.FAULTED:
            self.reset()

    def reset(self):
        try:
            self.pymc3e.batchwrite_wordunits(headdevice=self.headdevice, values=[0, 0])
            self.pymc3e.batchwrite_bitunits(headdevice=self.bitunit, values=[0])
            logger.info("Reset PLC data and bit unit.")
        except (socket.timeout, TimeoutError, OSError) as e:
            logger.error("Failed to reset PLC data: %s", e)
