import logging
import signal
import threading
import typing as t
from contextlib import contextmanager

from click import Abort

logger = logging.getLogger(__name__)


class Cancelled(Abort):
    """The invocation was interrupted by a signal."""


class CancelToken:
    """Process-wide cancellation flag, set once by a signal handler.

    Blocking loops should call :meth:`check` between steps.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.signum: t.Optional[int] = None

    @property
    def cancelled(self):
        return self._event.is_set()

    def cancel(self, signum: t.Optional[int] = None):
        if not self._event.is_set():
            self.signum = signum
            self._event.set()

    def check(self):
        if self._event.is_set():
            logger.debug("Operation cancelled, aborting...")
            raise Cancelled

    def wait(self, timeout: t.Optional[float] = None):
        return self._event.wait(timeout)


_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM") if hasattr(signal, name)
)


@contextmanager
def signal_context(signals: t.Iterable[int] = _SIGNALS):
    """Install signal handlers that cancel the yielded :class:`CancelToken`.

    The handler also raises :class:`Cancelled` in the main thread, so blocking
    calls in progress are interrupted.
    """
    token = CancelToken()

    def handler(signum, frame):
        token.cancel(signum)
        raise Cancelled

    previous = {}
    for sig in signals:
        try:
            previous[sig] = signal.signal(sig, handler)
        except ValueError:
            # not in the main thread
            logger.debug(f"Unable to install handler for signal {sig}.")
    try:
        yield token
    finally:
        for sig, prev in previous.items():
            signal.signal(sig, prev)
