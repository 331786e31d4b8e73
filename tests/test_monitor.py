"""Tests for the TerminalMonitor class."""

from queue import Queue

from termidle.config import TermidleConfig
from termidle.models import ActiveProcess, ProcessMetrics
from termidle.monitor import TerminalMonitor, TerminalSnapshot


def active_at(cpu: float) -> ActiveProcess:
    return ActiveProcess(
        pid=10,
        ppid=1,
        pgid=10,
        name="node",
        command="node",
        state="S+",
        command_chain=("bash", "node"),
        metrics=ProcessMetrics(total_cpu_percent=cpu, total_memory_mb=30.0),
    )


class StubResolver:
    """Resolver replaying CPU readings; None means no active process."""

    def __init__(self, readings):
        self.readings = list(readings)
        self.calls = 0
        self.config = TermidleConfig()

    def get_active_process(self, device):
        reading = self.readings[min(self.calls, len(self.readings) - 1)]
        self.calls += 1
        return None if reading is None else active_at(reading)


class TestTerminalSnapshot:
    """Tests for TerminalSnapshot dataclass."""

    def test_terminal_snapshot_creation(self):
        """Test TerminalSnapshot can be created with all fields."""
        snapshot = TerminalSnapshot(device="/dev/pts/1", active=None, idle=True, below_threshold_ms=0)
        assert snapshot.device == "/dev/pts/1"
        assert snapshot.active is None
        assert snapshot.idle is True

    def test_terminal_snapshot_uses_slots(self):
        """Test TerminalSnapshot uses __slots__ for memory efficiency."""
        snapshot = TerminalSnapshot(device="/dev/pts/1", active=None, idle=True, below_threshold_ms=0)
        # Slots-based dataclasses don't have __dict__
        assert not hasattr(snapshot, "__dict__")


class TestTerminalMonitor:
    """Tests for TerminalMonitor class."""

    def test_monitor_creation(self):
        """Test TerminalMonitor can be instantiated."""
        queue: Queue[TerminalSnapshot] = Queue()
        monitor = TerminalMonitor("/dev/pts/1", queue, resolver=StubResolver([None]))

        assert monitor.device == "/dev/pts/1"
        assert monitor.poll_rate == 0.35
        assert not monitor.is_running

    def test_poll_rate_minimum(self):
        """Test poll rate has a minimum value."""
        queue: Queue[TerminalSnapshot] = Queue()
        monitor = TerminalMonitor("/dev/pts/1", queue, resolver=StubResolver([None]))

        monitor.poll_rate = 0.01  # Very small value
        assert monitor.poll_rate >= 0.1  # Should be clamped to minimum

    def test_poll_without_process_is_idle(self):
        """Test a terminal with nothing in the foreground is idle."""
        monitor = TerminalMonitor("/dev/pts/1", Queue(), resolver=StubResolver([None]))
        snapshot = monitor.poll()

        assert snapshot.active is None
        assert snapshot.idle is True

    def test_poll_accumulates_idle_time(self):
        """Test idle is reported after enough quiet polls."""
        monitor = TerminalMonitor("/dev/pts/1", Queue(), poll_rate=0.35, resolver=StubResolver([0.5]))

        results = [monitor.poll() for _ in range(3)]
        assert [r.idle for r in results] == [False, False, True]
        assert results[-1].below_threshold_ms == 1050

    def test_poll_busy_resets(self):
        """Test a busy poll resets the idle accumulator."""
        monitor = TerminalMonitor("/dev/pts/1", Queue(), resolver=StubResolver([0.5, 0.5, 20.0]))

        results = [monitor.poll() for _ in range(3)]
        assert results[-1].below_threshold_ms == 0
        assert results[-1].idle is False

    def test_reset(self):
        """Test reset clears the accumulator."""
        monitor = TerminalMonitor("/dev/pts/1", Queue(), resolver=StubResolver([0.5]))
        monitor.poll()
        monitor.reset()
        assert monitor.poll().below_threshold_ms == 350

    def test_reset_during_resolve(self):
        """Test a reset requested while a poll is resolving is not lost."""
        resolver = StubResolver([0.5])
        monitor = TerminalMonitor("/dev/pts/1", Queue(), resolver=resolver)
        monitor.poll()

        resolve = resolver.get_active_process

        def resolve_then_reset(device):
            active = resolve(device)
            monitor.reset()
            return active

        resolver.get_active_process = resolve_then_reset
        assert monitor.poll().below_threshold_ms == 350
        resolver.get_active_process = resolve
        assert monitor.poll().below_threshold_ms == 700

    def test_monitor_start_stop(self):
        """Test TerminalMonitor can be started and stopped."""
        queue: Queue[TerminalSnapshot] = Queue()
        monitor = TerminalMonitor("/dev/pts/1", queue, poll_rate=0.1, resolver=StubResolver([None]))

        assert not monitor.is_running

        monitor.start()
        assert monitor.is_running

        monitor.stop()
        assert not monitor.is_running

    def test_monitor_start_idempotent(self):
        """Test starting an already running monitor is safe."""
        queue: Queue[TerminalSnapshot] = Queue()
        monitor = TerminalMonitor("/dev/pts/1", queue, poll_rate=0.1, resolver=StubResolver([None]))

        monitor.start()
        thread1 = monitor._thread

        monitor.start()  # Should not create a new thread
        thread2 = monitor._thread

        assert thread1 is thread2
        monitor.stop()

    def test_monitor_collects_data(self):
        """Test TerminalMonitor pushes snapshots onto the queue."""
        queue: Queue[TerminalSnapshot] = Queue()
        monitor = TerminalMonitor("/dev/pts/1", queue, poll_rate=0.1, resolver=StubResolver([12.0]))

        monitor.start()

        try:
            snapshot1 = queue.get(timeout=2.0)
            snapshot2 = queue.get(timeout=2.0)
            assert isinstance(snapshot1, TerminalSnapshot)
            assert snapshot1.active.name == "node"
            assert snapshot2.idle is False
        finally:
            monitor.stop()

    def test_monitor_survives_resolver_errors(self):
        """Test the loop keeps running when a poll raises."""

        class FlakyResolver(StubResolver):
            def get_active_process(self, device):
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("boom")
                return None

        queue: Queue[TerminalSnapshot] = Queue()
        monitor = TerminalMonitor("/dev/pts/1", queue, poll_rate=0.1, resolver=FlakyResolver([None]))

        monitor.start()
        try:
            snapshot = queue.get(timeout=2.0)
            assert snapshot.idle is True
        finally:
            monitor.stop()

    def test_independent_monitors(self):
        """Test monitors for different devices keep separate state."""
        first = TerminalMonitor("/dev/pts/1", Queue(), resolver=StubResolver([0.5]))
        second = TerminalMonitor("/dev/pts/2", Queue(), resolver=StubResolver([50.0]))

        first.poll()
        second.poll()
        assert first.poll().below_threshold_ms == 700
        assert second.poll().below_threshold_ms == 0

    def test_daemon_thread(self):
        """Test monitor thread is a daemon thread."""
        queue: Queue[TerminalSnapshot] = Queue()
        monitor = TerminalMonitor("/dev/pts/1", queue, poll_rate=0.1, resolver=StubResolver([None]))

        monitor.start()

        try:
            assert monitor._thread is not None
            assert monitor._thread.daemon is True
            assert monitor._thread.name == "TerminalMonitor[/dev/pts/1]"
        finally:
            monitor.stop()
