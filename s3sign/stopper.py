"""Cancellation token shared by one or more in-flight requests."""

import logging
import threading

logger = logging.getLogger(__name__)


class Stopper:
    """
    Terminates every request it has been attached to.

    Once stopped a Stopper stays stopped: requests that consult it afterwards
    end as cancelled without transmitting anything.
    """

    def __init__(self):
        self._handles = set()
        self._stopped = False
        # stop() may be called from a signal handler
        self._lock = threading.RLock()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def __len__(self) -> int:
        return len(self._handles)

    def stop(self) -> None:
        """Abort all live transport handles and mark the token stopped"""
        with self._lock:
            handles = list(self._handles)
            self._handles.clear()
            self._stopped = True
        if handles:
            logger.debug(f"Stopper aborting {len(handles)} request(s)")
        for handle in handles:
            handle.abort()

    def connect(self, handle) -> bool:
        """
        Attach a live transport handle.

        Returns False and aborts the handle when the token is already stopped.
        """
        with self._lock:
            if not self._stopped:
                self._handles.add(handle)
                return True
        handle.abort()
        return False

    def disconnect(self, handle) -> None:
        with self._lock:
            self._handles.discard(handle)
