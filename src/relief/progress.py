"""
Progress reporting and cooperative cancellation for long grid operations.

Long-running operations (grid reading, contour rendering) accept either a
plain callback ``progress(percent) -> bool | None`` or a ProgressMonitor. A
callback returning ``False`` requests cancellation; the operation stops at its
next cooperative check.
"""

import logging
import threading

from tqdm import tqdm

logger = logging.getLogger(__name__)


class ProgressMonitor:
    """
    Thread-safe progress sink with an optional tqdm console bar.

    Worker threads call ``update`` with a completion percentage; the monitor
    forwards it to the callback and tracks cancellation in ``cancel_event``.

    Args:
        callback: Optional ``(percent) -> bool | None``; ``False`` cancels
        label: Description shown on the console bar
        show_bar: Display a tqdm progress bar
        cancel: Optional shared threading.Event used as the cancel flag
    """

    def __init__(self, callback=None, label="Processing", show_bar=False, cancel=None):
        self.callback = callback
        self.label = label
        self.cancel_event = cancel if cancel is not None else threading.Event()
        self._lock = threading.Lock()
        self._percent = 0
        self._bar = tqdm(total=100, desc=label, unit="%") if show_bar else None

    @property
    def percent(self):
        return self._percent

    @property
    def cancelled(self):
        return self.cancel_event.is_set()

    def cancel(self):
        """Request cancellation of the monitored operation."""
        if not self.cancel_event.is_set():
            logger.info(f"{self.label}: cancellation requested")
        self.cancel_event.set()

    def update(self, percent):
        """
        Report progress.

        Args:
            percent: Completion in percent, clipped to [0, 100]

        Returns:
            bool: False if the operation has been cancelled, True otherwise
        """
        percent = int(max(0, min(100, percent)))
        with self._lock:
            if percent > self._percent:
                if self._bar is not None:
                    self._bar.update(percent - self._percent)
                self._percent = percent

        if self.callback is not None and self.callback(percent) is False:
            self.cancel()
        return not self.cancelled

    def close(self):
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def as_monitor(progress=None, cancel=None, label="Processing"):
    """
    Wrap a progress argument into a ProgressMonitor.

    Args:
        progress: None, a callback, or an existing ProgressMonitor
        cancel: Optional threading.Event shared with the caller
        label: Label for a newly created monitor

    Returns:
        ProgressMonitor: ``progress`` itself if it already is a monitor
    """
    if isinstance(progress, ProgressMonitor):
        if cancel is not None and cancel.is_set():
            progress.cancel()
        return progress
    return ProgressMonitor(callback=progress, label=label, cancel=cancel)
