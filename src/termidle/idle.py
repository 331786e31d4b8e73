"""
Idle detection for a terminal after a command has been sent to it.

The detector polls the active process on a fixed cadence and reports the
terminal idle once total CPU has stayed below a threshold for long enough,
or as soon as nothing is running in the foreground. Polling failures fail
open: a terminal that cannot be inspected is reported idle rather than
blocking the caller.
"""

import logging
import os
import threading
import time
from collections.abc import Callable

from termidle.config import IdleConfig, TermidleConfig
from termidle.models import IdleOutcome, IdleState
from termidle.resolver import ActiveProcessResolver

logger = logging.getLogger(__name__)


def probe_device(device: str) -> None:
    """
    Check that ``device`` can be opened for reading.

    Raises:
        OSError: If the device is missing or unreadable.
    """
    fd = os.open(device, os.O_RDONLY | os.O_NONBLOCK | os.O_NOCTTY)
    os.close(fd)


def _wait_on_event(event: threading.Event, seconds: float) -> bool:
    return event.wait(timeout=seconds)


class IdleDetector:
    """
    Poll a terminal until it is idle, cancelled, or a deadline passes.

    Each call to ``wait`` owns its own ``IdleState``; a detector can be used
    for several devices, including from several threads at once.
    """

    def __init__(
        self,
        resolver: ActiveProcessResolver | None = None,
        config: IdleConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        waiter: Callable[[threading.Event, float], bool] = _wait_on_event,
        opener: Callable[[str], None] = probe_device,
    ) -> None:
        """
        Initialize the IdleDetector.

        Args:
            resolver: Resolver queried on every poll.
            config: Timing thresholds. Defaults to the resolver's idle config.
            clock: Monotonic clock used for deadlines.
            waiter: Blocks between polls; returns True if cancelled.
            opener: Verifies the device is readable before polling starts.
        """
        self._resolver = resolver or ActiveProcessResolver()
        self._config = config or self._resolver.config.idle
        self._clock = clock
        self._waiter = waiter
        self._opener = opener

    @property
    def config(self) -> IdleConfig:
        return self._config

    def wait(
        self,
        device: str,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> IdleOutcome:
        """
        Block until ``device`` is idle.

        Args:
            device: Terminal device path.
            timeout: Seconds before giving up with ``TIMED_OUT``. Defaults to
                ``IdleConfig.timeout_seconds``; None waits indefinitely.
            cancel_event: Setting this event ends the wait with ``CANCELLED``.

        Returns:
            The outcome of the wait. Errors are reported as ``IDLE``.
        """
        try:
            return self._poll(device, timeout, cancel_event or threading.Event())
        except Exception:
            logger.exception(f"Idle detection for {device} failed; treating terminal as idle")
            return IdleOutcome.IDLE

    def _poll(self, device: str, timeout: float | None, cancel_event: threading.Event) -> IdleOutcome:
        config = self._config
        if timeout is None:
            timeout = config.timeout_seconds
        deadline = None if timeout is None else self._clock() + timeout

        try:
            self._opener(device)
        except OSError as e:
            logger.debug(f"Cannot open {device} ({e}); treating terminal as idle")
            return IdleOutcome.IDLE

        state = IdleState()
        cadence_seconds = config.cadence_ms / 1000

        while True:
            if cancel_event.is_set():
                return IdleOutcome.CANCELLED

            active = self._resolver.get_active_process(device)
            if active is None:
                logger.debug(f"No active process on {device}")
                return IdleOutcome.IDLE

            state = state.observe(active.metrics.total_cpu_percent, config.cadence_ms, config.cpu_threshold)
            if state.is_idle(config.idle_duration_ms):
                logger.debug(f"{device} idle after {state.below_threshold_ms}ms below {config.cpu_threshold}% CPU")
                return IdleOutcome.IDLE

            if deadline is not None and self._clock() >= deadline:
                logger.warning(f"Timed out waiting for {device} to become idle")
                return IdleOutcome.TIMED_OUT

            if self._waiter(cancel_event, cadence_seconds):
                return IdleOutcome.CANCELLED

    def is_idle(self, device: str, timeout: float | None = None, cancel_event: threading.Event | None = None) -> bool:
        """Wait on ``device`` and report whether it actually became idle."""
        return self.wait(device, timeout, cancel_event) is IdleOutcome.IDLE


def wait_for_idle(
    device: str,
    timeout: float | None = None,
    cancel_event: threading.Event | None = None,
    config: TermidleConfig | None = None,
) -> IdleOutcome:
    """Wait for ``device`` to become idle using the default OS queries."""
    resolver = ActiveProcessResolver(config=config)
    return IdleDetector(resolver).wait(device, timeout, cancel_event)


def is_idle(device: str, timeout: float | None = None, config: TermidleConfig | None = None) -> bool:
    """Block until ``device`` is idle; False only on timeout or cancellation."""
    return wait_for_idle(device, timeout, config=config) is IdleOutcome.IDLE
