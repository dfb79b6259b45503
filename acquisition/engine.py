"""
Acquisition engine for the weighing transmitter.

One worker thread owns the transport and runs the connection state machine::

    DISCONNECTED --start--> CONNECTING --probe ok--> POLLING
                                |                       |
                      open error / no answer      too many misses
                                v                       v
                             FAULTED <------------------+

Control calls (``start``, ``stop``, ``set_sampling_interval``,
``set_device_address``) only queue a request for the worker, so they never
block. Everything the engine reports goes through one ordered event queue,
drained by a dispatcher thread that calls the consumer.

The engine never retries on its own: leaving FAULTED takes a new ``start``.
"""

import dataclasses
import logging
import queue
import threading
import time

from acquisition.events import ConnectionState, Consumer, HealthKind
from frame.codec import build_command, format_frame, parse_response
from frame.constants import CMD_READ_WEIGHT, PARAM_DEFAULT, RESPONSE_LENGTH
from utility.exceptions import (
    DecodeError,
    OpenError,
    ProbeTimeout,
    SensorUnresponsive,
    WaitCancelled,
)
from utility.initialset import validate_device_address, validate_sampling_interval
from utility.waiting import collect_bytes, drain

logger = logging.getLogger(__name__)

_START = "start"
_STOP = "stop"
_SET_INTERVAL = "set_interval"
_SET_ADDRESS = "set_address"
_SHUTDOWN = "shutdown"

_ACTIVE = (ConnectionState.CONNECTING, ConnectionState.POLLING)


class AcquisitionEngine:
    """
    Drives one transmitter over one transport.
    ----------
    Parameters
    ----------
    transport : Transport
        Object with ``open(config)``, ``write``, ``bytes_available``,
        ``read`` and ``close``. Only the worker thread touches it.
    consumer : Consumer, optional
        Receives readings, health events, state changes and log lines.
    clock : callable, optional
        Monotonic time source in seconds.
    """

    def __init__(self, transport, consumer=None, clock=time.monotonic):
        self._transport = transport
        self._consumer = consumer or Consumer()
        self._clock = clock

        self._requests = queue.Queue()
        self._events = queue.Queue()
        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._pending_stops = 0
        self._shut_down = False

        # Worker-owned session state
        self._state = ConnectionState.DISCONNECTED
        self._config = None
        self._transport_open = False
        self._misses = 0
        self._last_good = 0.0
        self._last_tick = 0.0
        self._last_reading = None

        self._worker = threading.Thread(target=self._run, name="AcquisitionEngine", daemon=True)
        self._dispatcher = threading.Thread(target=self._dispatch, name="EventDispatcher", daemon=True)
        self._worker.start()
        self._dispatcher.start()

    # ---------- control surface ----------
    @property
    def state(self):
        with self._lock:
            return self._state

    @property
    def last_reading(self):
        with self._lock:
            return self._last_reading

    def start(self, config):
        self._submit(_START, config)

    def stop(self):
        # Queue first, then cancel: a worker that sees the flag finds the request.
        with self._lock:
            if self._shut_down:
                raise RuntimeError("acquisition engine has been shut down")
            self._pending_stops += 1
            self._requests.put((_STOP, None))
            self._cancel.set()

    def set_sampling_interval(self, interval_ms):
        self._submit(_SET_INTERVAL, validate_sampling_interval(interval_ms))

    def set_device_address(self, address):
        self._submit(_SET_ADDRESS, validate_device_address(address))

    def shutdown(self, timeout=None):
        """Stops any session and ends the worker and dispatcher threads."""
        with self._lock:
            if self._shut_down:
                return
            self._shut_down = True
            self._cancel.set()
        self._requests.put((_SHUTDOWN, None))
        self._worker.join(timeout)
        self._dispatcher.join(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False

    def _submit(self, kind, arg=None):
        with self._lock:
            if self._shut_down:
                raise RuntimeError("acquisition engine has been shut down")
        self._requests.put((kind, arg))

    # ---------- worker thread ----------
    def _run(self):
        while True:
            try:
                kind, arg = self._requests.get(timeout=self._time_to_next_tick())
            except queue.Empty:
                kind, arg = None, None

            try:
                if kind == _SHUTDOWN:
                    self._end_session()
                    break
                if kind is None:
                    self._tick()
                else:
                    self._handle(kind, arg)
            except Exception as e:
                logger.critical("Unexpected error in acquisition loop: %s", e, exc_info=True)
                self._close_transport()
                self._set_state(ConnectionState.FAULTED)

        self._events.put(None)

    def _time_to_next_tick(self):
        if self._state is not ConnectionState.POLLING:
            return None
        interval = self._config.sampling_interval_ms / 1000
        return max(0.0, self._last_tick + interval - self._clock())

    def _handle(self, kind, arg):
        if kind == _START:
            self._start_session(arg)
        elif kind == _STOP:
            with self._lock:
                self._pending_stops -= 1
                if self._pending_stops == 0 and not self._shut_down:
                    self._cancel.clear()
            self._end_session()
        elif kind == _SET_INTERVAL:
            self._reconfigure(sampling_interval_ms=arg)
            self._log(logging.INFO, "Sampling interval set to %d ms", arg)
        elif kind == _SET_ADDRESS:
            self._reconfigure(device_address=arg)
            self._log(logging.INFO, "Device address set to 0x%02X", arg)

    def _reconfigure(self, **changes):
        if self._config is not None:
            self._config = dataclasses.replace(self._config, **changes)

    def _start_session(self, config):
        if self._state in _ACTIVE:
            self._log(logging.WARNING, "Start ignored: acquisition is already %s", self._state.value)
            return

        self._config = dataclasses.replace(config)
        self._misses = 0
        with self._lock:
            self._last_reading = None
        self._set_state(ConnectionState.CONNECTING)

        try:
            self._transport.open(self._config)
        except OpenError as e:
            self._log(logging.ERROR, "Connection failed (%s): %s", e.kind, e)
            self._health(HealthKind.OPEN_FAILED, e)
            self._set_state(ConnectionState.FAULTED)
            return
        self._transport_open = True
        self._log(logging.INFO, "Connected to %s", self._config.port)

        try:
            probe_reading = self._probe()
        except WaitCancelled:
            self._log(logging.INFO, "Connect cancelled")
            return
        except ProbeTimeout as e:
            self._probe_failed(str(e))
            return
        except OSError as e:
            self._probe_failed(f"I/O error: {type(e).__name__}: {e}")
            return

        self._last_good = self._clock()
        self._log(logging.INFO, "Acquisition started")
        self._set_state(ConnectionState.POLLING)
        if probe_reading is not None:
            self._accept(probe_reading)

    def _probe_failed(self, detail):
        self._log(logging.ERROR, "Device did not answer: %s", detail)
        self._health(HealthKind.PROBE_TIMEOUT, detail)
        self._close_transport()
        self._set_state(ConnectionState.FAULTED)

    def _probe(self):
        """Sends the wake/probe frame; returns its reading if the reply decodes."""
        config = self._config
        started = self._clock()
        data = self._exchange(config.probe_command, config.probe_timeout_ms)
        self._last_tick = started

        if len(data) < RESPONSE_LENGTH:
            raise ProbeTimeout(
                f"device 0x{config.device_address:02X} sent {len(data)} of "
                f"{RESPONSE_LENGTH} bytes within {config.probe_timeout_ms} ms"
            )
        self._log(logging.DEBUG, "Probe response: %s", format_frame(data))
        try:
            return parse_response(data)
        except DecodeError as e:
            self._log(logging.WARNING, "Probe response not decodable: %s", e)
            return None

    def _tick(self):
        config = self._config
        self._last_tick = self._clock()

        try:
            data = self._exchange(CMD_READ_WEIGHT, config.response_timeout_ms)
        except WaitCancelled:
            return
        except OSError as e:
            self._log(logging.ERROR, "Error reading weight: %s", e)
            self._miss(f"I/O error: {e}")
            return

        if not data:
            self._miss(f"timeout: no response within {config.response_timeout_ms} ms")
            return

        self._log(logging.DEBUG, "Response frame: %s", format_frame(data))
        try:
            reading = parse_response(data)
        except DecodeError as e:
            self._log(logging.WARNING, "Response frame rejected: %s", e)
            self._miss(f"{type(e).__name__}: {e}")
            return

        self._misses = 0
        self._last_good = self._clock()
        self._accept(reading)

    def _exchange(self, command_code, timeout_ms):
        """Sends one command and waits for its response; no pipelining."""
        config = self._config
        stale = drain(self._transport)
        if stale:
            self._log(logging.DEBUG, "Discarded stale bytes: %s", format_frame(stale))

        command = build_command(config.device_address, command_code, PARAM_DEFAULT)
        self._transport.write(command)
        return collect_bytes(
            self._transport,
            RESPONSE_LENGTH,
            timeout_ms / 1000,
            config.poll_granularity_ms / 1000,
            self._cancel,
            clock=self._clock,
        )

    def _miss(self, detail):
        config = self._config
        self._misses += 1
        self._health(HealthKind.POLL_MISS, detail)

        silent_for = self._clock() - self._last_good
        if self._misses >= config.max_misses:
            error = SensorUnresponsive(f"{self._misses} consecutive polls missed")
        elif silent_for * 1000 > config.stale_after_ms:
            error = SensorUnresponsive(f"no good response for {silent_for:.1f} s")
        else:
            return

        self._log(logging.ERROR, "Sensor unresponsive: %s", error)
        self._health(HealthKind.SENSOR_UNRESPONSIVE, str(error))
        self._close_transport()
        self._set_state(ConnectionState.FAULTED)

    def _accept(self, reading):
        with self._lock:
            self._last_reading = reading
        self._events.put(("reading", reading))
        self._log(logging.DEBUG, "Weight: %.3f", reading.value)

    def _end_session(self):
        if self._state not in _ACTIVE:
            return
        self._close_transport()
        self._log(logging.INFO, "Acquisition stopped")
        self._set_state(ConnectionState.DISCONNECTED)

    def _close_transport(self):
        if not self._transport_open:
            return
        self._transport_open = False
        try:
            self._transport.close()
            self._log(logging.INFO, "Serial connection closed")
        except OSError as e:
            self._log(logging.WARNING, "Error closing serial port: %s", e)

    # ---------- events ----------
    def _set_state(self, state):
        with self._lock:
            if self._state is state:
                return
            self._state = state
        self._events.put(("state", state))

    def _health(self, kind, detail):
        self._events.put(("health", (kind, detail)))

    def _log(self, level, message, *args):
        logger.log(level, message, *args)
        self._events.put(("log", message % args if args else message))

    def _dispatch(self):
        while True:
            event = self._events.get()
            if event is None:
                break
            kind, payload = event
            try:
                if kind == "reading":
                    self._consumer.on_reading(payload)
                elif kind == "health":
                    self._consumer.on_health_event(*payload)
                elif kind == "state":
                    self._consumer.on_state_change(payload)
                elif kind == "log":
                    self._consumer.on_log(payload)
            except Exception:
                logger.exception("Consumer failed handling %s event", kind)
