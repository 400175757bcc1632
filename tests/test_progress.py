"""
Tests for progress reporting and cancellation.
"""

import threading


class TestProgressMonitor:
    """Tests for ProgressMonitor."""

    def test_update_forwards_to_callback(self):
        """Test that percentages reach the callback clipped to [0, 100]."""
        from src.relief.progress import ProgressMonitor

        reported = []
        monitor = ProgressMonitor(callback=reported.append)

        assert monitor.update(12.7)
        assert monitor.update(150)

        assert reported == [12, 100]
        assert monitor.percent == 100

    def test_callback_returning_false_cancels(self):
        """Test that a False return value requests cancellation."""
        from src.relief.progress import ProgressMonitor

        monitor = ProgressMonitor(callback=lambda percent: percent < 50)

        assert monitor.update(10)
        assert not monitor.cancelled
        assert not monitor.update(60)
        assert monitor.cancelled

    def test_shared_cancel_event(self):
        """Test that the monitor reports cancellation of a caller's event."""
        from src.relief.progress import ProgressMonitor

        cancel = threading.Event()
        monitor = ProgressMonitor(cancel=cancel)
        cancel.set()

        assert monitor.cancelled
        assert not monitor.update(5)

    def test_console_bar(self):
        """Test that the tqdm bar is created and closed."""
        from src.relief.progress import ProgressMonitor

        with ProgressMonitor(label="Test", show_bar=True) as monitor:
            monitor.update(40)
            monitor.update(30)
            assert monitor._bar.n == 40

        assert monitor._bar is None

    def test_concurrent_updates(self):
        """Test that updates from several threads keep the maximum."""
        from src.relief.progress import ProgressMonitor

        monitor = ProgressMonitor()
        threads = [threading.Thread(target=monitor.update, args=(p,)) for p in range(0, 101, 5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert monitor.percent == 100


class TestAsMonitor:
    """Tests for as_monitor."""

    def test_wraps_callback(self):
        from src.relief.progress import ProgressMonitor, as_monitor

        callback = lambda percent: None
        monitor = as_monitor(callback, label="Reading")

        assert isinstance(monitor, ProgressMonitor)
        assert monitor.callback is callback
        assert monitor.label == "Reading"

    def test_passes_monitor_through(self):
        """Test that an existing monitor is reused and picks up cancellation."""
        from src.relief.progress import ProgressMonitor, as_monitor

        existing = ProgressMonitor()
        cancel = threading.Event()
        cancel.set()

        assert as_monitor(existing, cancel) is existing
        assert existing.cancelled
