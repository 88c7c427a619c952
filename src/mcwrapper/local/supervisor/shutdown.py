import sys
import signal
import logging
import threading
from typing import Callable, Dict, Optional

log = logging.getLogger(__name__)


def _interrupt_signals():
    """Signals that mean 'stop the wrapper' on this platform."""
    signals = [signal.SIGINT, signal.SIGTERM]
    if hasattr(signal, "SIGHUP"):
        signals.append(signal.SIGHUP)
    if sys.platform == "win32" and hasattr(signal, "SIGBREAK"):
        # Delivered when the console window is closed
        signals.append(signal.SIGBREAK)
    return signals


class ShutdownToken:
    """
    Single-fire guard shared by the normal exit path and the interrupt path.

    The guard is a lock that is acquired without blocking and never released:
    the first fire() wins, every later one returns False. Because it never
    blocks, it is safe to fire from a signal handler that interrupted the main
    thread in the middle of its own shutdown.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self.interrupted = False
        self.signum: Optional[int] = None

    def fire(self) -> bool:
        return self._guard.acquire(blocking=False)

    @property
    def fired(self) -> bool:
        return self._guard.locked()


class ShutdownCoordinator:
    """
    Routes process-wide termination signals to the callbacks registered by the
    supervisor, running them at most once per token.
    """

    def __init__(self, token: ShutdownToken, signals=None):
        self.token = token
        self.signals = list(signals) if signals is not None else _interrupt_signals()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_handle = 0
        self._previous_handlers: Dict[int, object] = {}

    def register_on_interrupt(self, callback: Callable[[], None]) -> int:
        """
        Registers a callback to run when an interrupt signal arrives.

        :return: A handle for unregister().
        """
        self._next_handle += 1
        self._callbacks[self._next_handle] = callback
        if len(self._callbacks) == 1:
            self._install_handlers()
        return self._next_handle

    def unregister(self, handle: int) -> None:
        """
        Removes a callback. A no-op if the handle is unknown or the callback
        is already running or has run.
        """
        if self.token.fired and self.token.interrupted:
            log.debug("Interrupt teardown already started; leaving its hook in place.")
            return
        if self._callbacks.pop(handle, None) is not None and not self._callbacks:
            self._restore_handlers()

    def interrupt(self, signum: int = signal.SIGINT) -> bool:
        """
        Runs the registered callbacks if nobody has started shutdown yet.

        :return: True if this call performed the teardown.
        """
        if not self.token.fire():
            log.debug(f"Ignoring signal {signum}: shutdown is already in progress.")
            return False

        self.token.interrupted = True
        self.token.signum = signum
        log.warning(f"Received signal {signum}. Starting interrupt teardown...")
        for handle, callback in list(self._callbacks.items()):
            try:
                callback()
            except Exception as e:
                log.error(f"Interrupt callback #{handle} failed: {e}", exc_info=True)
        return True

    def _handle_signal(self, signum, frame) -> None:
        self.interrupt(signum)

    def _install_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            log.warning("Signal handlers can only be installed from the main thread; interrupts will not be intercepted.")
            return
        for sig in self.signals:
            try:
                self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)
            except (OSError, ValueError) as e:
                log.debug(f"Could not install handler for signal {sig}: {e}")

    def _restore_handlers(self) -> None:
        for sig, previous in self._previous_handlers.items():
            try:
                signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
            except (OSError, ValueError) as e:
                log.debug(f"Could not restore handler for signal {sig}: {e}")
        self._previous_handlers.clear()
