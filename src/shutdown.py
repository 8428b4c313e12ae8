"""
Rolling Logger Shutdown
One-shot coordinator that drains pending records and closes the active file
on SIGINT, SIGTERM or interpreter exit.
"""

import atexit
import signal
import threading
from enum import Enum
from typing import Callable, Dict, Iterable, Optional

import structlog

from file_handles import FileHandleManager
from write_serializer import WriteSerializer

logger = structlog.get_logger()

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownState(Enum):
    """Shutdown states; each is entered at most once, in order."""
    RUNNING = "running"    # Accepting records
    DRAINING = "draining"  # Writing out queued records
    CLOSED = "closed"      # File closed, terminal


class ShutdownCoordinator:
    """Drain the serializer and close the file exactly once."""

    def __init__(
        self,
        serializer: WriteSerializer,
        file_manager: FileHandleManager,
        announce: Optional[Callable[[str], None]] = None,
        drain_timeout: Optional[float] = 10.0,
    ):
        self.serializer = serializer
        self.file_manager = file_manager
        self.announce = announce
        self.drain_timeout = drain_timeout
        self.state = ShutdownState.RUNNING
        self.trigger_reason: Optional[str] = None

        # Re-entrant: a signal may land while the main thread holds it
        self._lock = threading.RLock()
        self._previous_handlers: Dict[int, object] = {}
        self._atexit_registered = False

    def register(self, signals: Iterable[int] = DEFAULT_SIGNALS) -> None:
        """Hook interpreter exit and, from the main thread, termination signals."""
        if not self._atexit_registered:
            atexit.register(self._on_exit)
            self._atexit_registered = True

        if threading.current_thread() is not threading.main_thread():
            logger.warning("shutdown_signals_not_installed", reason="not_main_thread")
            return

        for signum in signals:
            if signum in self._previous_handlers:
                continue
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)

    def unregister(self) -> None:
        """
        Detach the exit hook and restore the signal handlers found at register().

        A signal whose handler was replaced after register() is left alone, so
        the newer handler can still chain through this one.
        """
        if self._atexit_registered:
            atexit.unregister(self._on_exit)
            self._atexit_registered = False

        if not self._previous_handlers:
            return
        if threading.current_thread() is not threading.main_thread():
            logger.warning("shutdown_signals_not_restored", reason="not_main_thread")
            return

        for signum, previous in list(self._previous_handlers.items()):
            if signal.getsignal(signum) != self._on_signal:
                # A later registration sits on top and chains back into us
                continue
            # None means the previous handler was not installed from Python
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
            del self._previous_handlers[signum]

    def trigger(self, reason: str, announce: bool = True) -> bool:
        """
        Run the shutdown sequence if it has not started yet.

        Args:
            reason: Signal name, "exit" or "close"
            announce: Emit the final Critical record before draining

        Returns:
            True if this call performed the shutdown, False if it was ignored
        """
        with self._lock:
            if self.state != ShutdownState.RUNNING:
                logger.debug("shutdown_trigger_ignored", trigger=reason, state=self.state.value)
                return False
            self.state = ShutdownState.DRAINING
            self.trigger_reason = reason

        drained = False
        try:
            if announce and self.announce is not None:
                self.announce(f"Logger shutting down. Received signal: {reason}")
            drained = self.serializer.stop(self.drain_timeout)
            self.file_manager.close()
        finally:
            with self._lock:
                self.state = ShutdownState.CLOSED
            # Reported only once the file is closed
            logger.info("logger_shutdown_completed", trigger=reason, drained=drained, timeout=self.drain_timeout)
        return True

    def _on_exit(self) -> None:
        self.trigger("exit")

    def _on_signal(self, signum, frame) -> None:
        previous = self._previous_handlers.get(signum)
        performed = self.trigger(signal.Signals(signum).name)
        if not performed and self.state == ShutdownState.DRAINING:
            # Second signal while the first one is still draining
            return

        self.unregister()
        self._terminate(signum, frame, previous)

    def _terminate(self, signum, frame, previous) -> None:
        """Hand the signal to whoever held it before, or to the default action."""
        if callable(previous):
            previous(signum, frame)
            return
        if previous == signal.SIG_IGN:
            return
        signal.signal(signum, signal.SIG_DFL)
        signal.raise_signal(signum)
