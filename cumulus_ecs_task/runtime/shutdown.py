"""Process-wide termination state of the polling loops, and the signal handlers that set it."""
import logging
import signal
import threading
from typing import Iterable

LOG = logging.getLogger(__name__)


class LoopState:
    """
    Tracks whether the process has been asked to terminate. Termination, once requested, is never revoked. The
    loops only look at the flag between two iterations, so work that is in progress is always completed.
    """

    def __init__(self):
        self.running = False
        self._termination_requested = threading.Event()

    @property
    def termination_requested(self) -> bool:
        return self._termination_requested.is_set()

    def request_termination(self) -> None:
        self._termination_requested.set()

    def wait(self, timeout: float) -> bool:
        """Sleeps for the given number of seconds, returning early (with True) once termination is requested."""
        return self._termination_requested.wait(timeout)


LOOP_STATE = LoopState()


def install_signal_handlers(
    loop_state: LoopState = LOOP_STATE, signals: Iterable[int] = (signal.SIGTERM, signal.SIGINT)
) -> bool:
    """
    Installs handlers that request termination of the given loop state. A second SIGINT raises a
    ``KeyboardInterrupt`` as usual. Signal handlers can only be installed from the main thread, elsewhere this
    is a no-op.

    :return: whether the handlers were installed
    """
    if threading.current_thread() is not threading.main_thread():
        LOG.debug("Not in the main thread, skipping installation of signal handlers")
        return False

    def _request_termination(signum: int, frame):
        if signum == signal.SIGINT and loop_state.termination_requested:
            raise KeyboardInterrupt()
        LOG.info("Received %s, will stop polling for new work", signal.Signals(signum).name)
        loop_state.request_termination()

    for signum in signals:
        signal.signal(signum, _request_termination)
    return True
