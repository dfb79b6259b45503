"""
This module reads live weights from a weighing transmitter over a serial port
and, when a PLC is configured, mirrors each weight into PLC word devices.

Modules:
- acquisition: The polling engine and its event consumers.
- utility: Configuration, serial transport and helpers.
- connect: PLC connection setup via pymcprotocol (MC Protocol 3E).
- pytoplc: Consumer that writes readings to the PLC.

Configuration comes from environment variables; see utility.initialset.
"""

import logging
import os
import queue
import sys
import threading

import acquisition
import connect
import pytoplc
import utility

# Logging config
logging.basicConfig(
    stream=sys.stdout,
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_consumer(pymc3e, plc_config):
    consumers = [acquisition.LoggingConsumer()]
    if pymc3e is not None:
        consumers.append(
            pytoplc.PlcWeightWriter(pymc3e, plc_config.headdevice, plc_config.bitunit)
        )
    return acquisition.ConsumerGroup(*consumers)


class StateWatcher(acquisition.Consumer):
    """Queues state changes for the watchdog loop."""

    def __init__(self):
        self.states = queue.Queue()

    def on_state_change(self, state):
        self.states.put(state)


def main(session_config, transport, consumer, restart_delay=0.0, stop_event=None):
    """Main orchestration logic. Returns the process exit code."""
    if stop_event is None:
        stop_event = threading.Event()
    watcher = StateWatcher()
    engine = acquisition.AcquisitionEngine(
        transport, acquisition.ConsumerGroup(watcher, consumer)
    )
    engine.start(session_config)
    exit_code = 0

    # Watchdog loop: the engine never retries by itself, restarts happen here
    try:
        while not stop_event.is_set():
            try:
                state = watcher.states.get(timeout=0.1)
            except queue.Empty:
                continue
            if state is not acquisition.ConnectionState.FAULTED:
                continue
            if restart_delay <= 0:
                logger.critical("Acquisition faulted. Shutting down...")
                exit_code = 1
                break
            logger.warning("Acquisition faulted. Restarting in %.1f seconds...", restart_delay)
            if stop_event.wait(restart_delay):
                break
            engine.start(session_config)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received. Shutting down...")
    except Exception as e:
        logger.critical("Unexpected error: %s", e)
        exit_code = 1

    # Shutdown
    engine.shutdown(timeout=5)
    logger.info("Shutdown complete.")
    return exit_code


def run():
    try:
        session_config = utility.load_session_config()
        plc_config = utility.load_plc_config()
        restart_delay = utility.load_restart_delay()
    except ValueError as e:
        logger.critical("Invalid configuration: %s", e)
        sys.exit(1)

    pymc3e = None
    try:
        if plc_config is not None:
            pymc3e = connect.initialize_connection(
                plc_config.ip, plc_config.port, logger, plctype=plc_config.plctype
            )
        consumer = build_consumer(pymc3e, plc_config)
        exit_code = main(session_config, utility.SerialTransport(), consumer, restart_delay)
    except Exception as e:
        logger.critical("Startup failed: %s", e)
        exit_code = 1
    finally:
        if pymc3e is not None:
            connect.close_connection(pymc3e, logger)

    sys.exit(exit_code)


if __name__ == "__main__":
    run()
