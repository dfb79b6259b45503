import time

import pymcprotocol


def initialize_connection(plc_ip, plc_port, logger, plctype="Q", retries=5, delay=2):
    """Initialize connection to PLC with retries."""
    pymc3e = pymcprotocol.Type3E(plctype=plctype)
    for attempt in range(retries):
        try:
            pymc3e.connect(plc_ip, plc_port)
            logger.info("Connected to PLC %s:%d successfully.", plc_ip, plc_port)
            return pymc3e
        except (TimeoutError, ConnectionRefusedError) as e:
            logger.error(
                "Connection attempt %d failed (%s). Retrying in %d seconds...",
                attempt + 1,
                e,
                delay,
            )
            time.sleep(delay)
    raise ConnectionError("Failed to connect to PLC after multiple attempts.")


def close_connection(pymc3e, logger):
    try:
        pymc3e.close()
        logger.info("PLC connection closed.")
    except OSError as e:
        logger.warning("Error while closing PLC connection: %s", e)
