import logging
import signal
import threading

log = logging.getLogger("airmouse.session")


class CtrlCHandler:
    """
    Handle Ctrl+C for clean shutdown so sockets are released and the
    pointer loop is joined instead of killed mid-move.
    """
    def __init__(self):
        self.should_stop = False
        self._event = threading.Event()
        signal.signal(signal.SIGINT, self._signal_handler)

    def _signal_handler(self, sig, frame):
        """Callback executed when Ctrl+C is detected"""
        log.info("Interrupt signal detected, closing cleanly...")
        self.should_stop = True
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; True once Ctrl+C was pressed."""
        return self._event.wait(timeout)
