import time

from utility.exceptions import WaitCancelled


def collect_bytes(transport, count, timeout, granularity, cancel_event, clock=time.monotonic):
    """
    Reads from ``transport`` until ``count`` bytes arrive or ``timeout`` runs out.

    Sleeps ``granularity`` seconds between polls of ``bytes_available`` using
    ``cancel_event.wait`` so a stop request ends the wait early.
    ----------
    Parameters
    ----------
    transport : Transport
        Open transport to read from.
    count : int
        Number of bytes wanted. Never reads past it.
    timeout : float
        Hard ceiling in seconds for the whole wait.
    granularity : float
        Seconds between polls.
    cancel_event : threading.Event
        Set by whoever wants the wait abandoned.

    Returns
    -------
    bytes
        The collected bytes; shorter than ``count`` if the deadline passed.

    Raises
    ------
    WaitCancelled
        If ``cancel_event`` was set before the bytes arrived.
    """
    deadline = clock() + timeout
    buffer = bytearray()

    while True:
        if cancel_event.is_set():
            raise WaitCancelled(f"wait cancelled after {len(buffer)} of {count} bytes")

        available = transport.bytes_available()
        if available > 0:
            buffer += transport.read(min(available, count - len(buffer)))
            if len(buffer) >= count:
                return bytes(buffer)

        remaining = deadline - clock()
        if remaining <= 0:
            return bytes(buffer)
        if cancel_event.wait(min(granularity, remaining)):
            raise WaitCancelled(f"wait cancelled after {len(buffer)} of {count} bytes")


def drain(transport):
    """Discards whatever is already waiting in the input buffer and returns it."""
    available = transport.bytes_available()
    if available > 0:
        return transport.read(available)
    return b""
