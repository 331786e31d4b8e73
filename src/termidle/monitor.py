"""Background terminal monitoring for termidle."""

import logging
import threading
from dataclasses import dataclass
from queue import Queue

from termidle.models import ActiveProcess, IdleState
from termidle.resolver import ActiveProcessResolver

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TerminalSnapshot:
    """State of one terminal at one poll."""

    device: str
    active: ActiveProcess | None
    idle: bool
    below_threshold_ms: int


class TerminalMonitor:
    """
    Terminal monitor that tracks the active process on one device.

    Runs in a separate daemon thread and pushes updates to a thread-safe Queue.
    Monitors for different devices share no state.
    """

    def __init__(
        self,
        device: str,
        update_queue: Queue[TerminalSnapshot],
        poll_rate: float = 0.35,
        resolver: ActiveProcessResolver | None = None,
    ) -> None:
        """
        Initialize the TerminalMonitor.

        Args:
            device: Terminal device path to watch.
            update_queue: Thread-safe queue to push updates to.
            poll_rate: How often to poll the terminal (in seconds). Default 0.35s.
            resolver: Resolver used for every poll.
        """
        self._device = device
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._resolver = resolver or ActiveProcessResolver()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = IdleState()
        # Only the polling thread touches _state; other threads request a reset.
        self._reset_requested = threading.Event()

    @property
    def device(self) -> str:
        return self._device

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name=f"TerminalMonitor[{self._device}]",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def reset(self) -> None:
        """
        Restart idle accounting, e.g. after a new command was sent.

        Safe to call from any thread. The next poll starts from a fresh state.
        """
        self._reset_requested.set()

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.poll())
            except Exception:
                logger.exception(f"Polling {self._device} failed")

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)

    def poll(self) -> TerminalSnapshot:
        """Resolve the terminal once and fold the result into the idle state."""
        idle_config = self._resolver.config.idle
        active = self._resolver.get_active_process(self._device)

        state = self._state
        if self._reset_requested.is_set():
            self._reset_requested.clear()
            state = IdleState()

        if active is None:
            state = IdleState()
            idle = True
        else:
            state = state.observe(
                active.metrics.total_cpu_percent,
                round(self._poll_rate * 1000),
                idle_config.cpu_threshold,
            )
            idle = state.is_idle(idle_config.idle_duration_ms)
        self._state = state

        return TerminalSnapshot(
            device=self._device,
            active=active,
            idle=idle,
            below_threshold_ms=state.below_threshold_ms,
        )
