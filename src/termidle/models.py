"""Data models for termidle."""

import re
from dataclasses import dataclass
from enum import Enum

_VERSION_SUFFIX = re.compile(r"^(?P<family>.*?[A-Za-z])[-_]?\d+(?:\.\d+)*$")


def process_name(command: str) -> str:
    """Return the short process name for a command line.

    The name is the basename of the first whitespace-delimited token. A
    leading ``-`` (login shells, e.g. ``-zsh``) is dropped.
    """
    parts = command.split()
    if not parts:
        return ""
    name = parts[0].rstrip("/").rsplit("/", 1)[-1]
    return name.lstrip("-") or name


def name_family(name: str) -> str:
    """Strip a trailing interpreter version: ``python3.11`` -> ``python``."""
    match = _VERSION_SUFFIX.match(name)
    return match.group("family") if match else name


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable record of one process attached to a terminal."""

    pid: int
    ppid: int
    pgid: int
    sid: int
    state: str  # 'R', 'S+', 'Ss', etc.
    cpu_percent: float
    rss_kb: int
    cpu_time: str
    command: str

    @property
    def name(self) -> str:
        """Short process name derived from the command line."""
        return process_name(self.command)

    @property
    def run_state(self) -> str:
        """Single-character run state code."""
        return self.state[:1]

    @property
    def memory_mb(self) -> float:
        return self.rss_kb / 1024


@dataclass(slots=True, frozen=True)
class BreakdownEntry:
    """One contributor to a ProcessMetrics rollup."""

    name: str
    pid: int
    cpu_percent: float
    memory_kb: int

    @property
    def memory_mb(self) -> float:
        return self.memory_kb / 1024


@dataclass(slots=True, frozen=True)
class ProcessMetrics:
    """Resource rollup for a process and all of its descendants."""

    total_cpu_percent: float
    total_memory_mb: float
    breakdown: tuple[BreakdownEntry, ...] = ()


@dataclass(slots=True, frozen=True)
class ActiveProcess:
    """The process currently holding the foreground of a terminal."""

    pid: int
    ppid: int
    pgid: int
    name: str
    command: str
    state: str
    command_chain: tuple[str, ...]
    metrics: ProcessMetrics
    environment: str | None = None
    application_context: str | None = None

    @property
    def command_chain_text(self) -> str:
        """Command chain rendered as ``outer -> ... -> active``."""
        return " -> ".join(self.command_chain)


class IdleOutcome(Enum):
    """Result of waiting for a terminal to become idle."""

    IDLE = "idle"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(slots=True, frozen=True)
class IdleState:
    """
    Accumulator of consecutive low-CPU observation time.

    Each observation returns a new state; the accumulator is never shared
    between detector loops.
    """

    below_threshold_ms: int = 0

    def observe(self, cpu_percent: float, cadence_ms: int, cpu_threshold: float) -> "IdleState":
        """Fold one CPU observation into the accumulator."""
        if cpu_percent < cpu_threshold:
            return IdleState(self.below_threshold_ms + cadence_ms)
        return IdleState(0)

    def is_idle(self, idle_duration_ms: int) -> bool:
        return self.below_threshold_ms >= idle_duration_ms
