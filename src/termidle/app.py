"""termidle - Textual viewer for the active process on a terminal."""

import os
import sys
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from termidle.models import ActiveProcess, BreakdownEntry
from termidle.monitor import TerminalMonitor, TerminalSnapshot
from termidle.resolver import ActiveProcessResolver


def format_kilobytes(size_kb: float) -> str:
    """Format a kilobyte count as a human-readable string."""
    size = float(size_kb)
    for unit in ["K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


class ActiveProcessPanel(Static):
    """Panel describing the active process and whether the terminal is idle."""

    DEFAULT_CSS = """
    ActiveProcessPanel {
        height: auto;
        min-height: 6;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, device: str, *args, **kwargs) -> None:
        """Initialize ActiveProcessPanel."""
        super().__init__(*args, **kwargs)
        self._device = device
        self._active: ActiveProcess | None = None
        self._idle = False
        self._below_threshold_ms = 0
        self._received = False

    def on_mount(self) -> None:
        self.update(self.panel_text())

    def update_snapshot(self, snapshot: TerminalSnapshot) -> None:
        """Update the panel from a terminal snapshot."""
        self._active = snapshot.active
        self._idle = snapshot.idle
        self._below_threshold_ms = snapshot.below_threshold_ms
        self._received = True
        self.update(self.panel_text())

    def panel_text(self) -> str:
        """Build the panel markup."""
        if not self._received:
            return f"Watching {self._device}..."

        status = "[green]IDLE[/green]" if self._idle else f"[yellow]BUSY[/yellow] ({self._below_threshold_ms}ms quiet)"
        if self._active is None:
            return f"{self._device}  {status}\nNo active process"

        active = self._active
        lines = [
            f"{self._device}  {status}",
            f"Process: {active.name} (PID {active.pid}, state {active.state})",
            f"Chain: {active.command_chain_text}",
        ]
        if active.environment:
            context = f" - {active.application_context}" if active.application_context else ""
            lines.append(f"Environment: {active.environment}{context}")
        lines.append(
            f"Total CPU: {active.metrics.total_cpu_percent:.1f}%  "
            f"Total Memory: {active.metrics.total_memory_mb:.1f} MB"
        )
        return "\n".join(lines)


class BreakdownTable(Container):
    """Container for the per-process resource breakdown."""

    DEFAULT_CSS = """
    BreakdownTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize BreakdownTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()

    def compose(self) -> ComposeResult:
        """Compose the breakdown table."""
        yield DataTable(id="breakdown-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#breakdown-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=20)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("RES", key="rss", width=8)

    def update_breakdown(self, entries: tuple[BreakdownEntry, ...]) -> None:
        """
        Replace the table contents with a new breakdown.

        Rows are rebuilt so the table keeps the breakdown's CPU ordering.
        """
        table = self.query_one("#breakdown-table", DataTable)
        table.clear()
        for entry in entries:
            table.add_row(
                str(entry.pid),
                entry.name[:20],
                f"{entry.cpu_percent:5.1f}",
                format_kilobytes(entry.memory_kb),
                key=str(entry.pid),
            )
        self._current_pids = {entry.pid for entry in entries}

    @property
    def row_count(self) -> int:
        return len(self._current_pids)


class TermidleApp(App):
    """Main termidle application."""

    TITLE = "termidle"
    SUB_TITLE = "Terminal Activity Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #active-panel {
        dock: top;
        height: auto;
        min-height: 6;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "reset", "Reset idle timer"),
    ]

    def __init__(
        self,
        device: str,
        poll_rate: float = 0.35,
        resolver: ActiveProcessResolver | None = None,
    ) -> None:
        """Initialize the TermidleApp."""
        super().__init__()
        self._device = device
        self._update_queue: Queue[TerminalSnapshot] = Queue()
        self._monitor = TerminalMonitor(device, self._update_queue, poll_rate=poll_rate, resolver=resolver)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield ActiveProcessPanel(self._device, id="active-panel")
        yield BreakdownTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the terminal monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.25, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: TerminalSnapshot) -> None:
        """Update the UI with a new terminal snapshot."""
        self.query_one("#active-panel", ActiveProcessPanel).update_snapshot(snapshot)
        entries = snapshot.active.metrics.breakdown if snapshot.active else ()
        self.query_one(BreakdownTable).update_breakdown(entries)

    def action_reset(self) -> None:
        """Restart idle accounting."""
        self._monitor.reset()
        self.notify("Idle timer reset")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point: watch the terminal given as the first argument, or our own."""
    if len(sys.argv) > 1:
        device = sys.argv[1]
    else:
        try:
            device = os.ttyname(sys.stdin.fileno())
        except OSError:
            sys.exit("termidle: stdin is not a terminal; pass a device path such as /dev/pts/3")

    app = TermidleApp(device)
    app.run()


if __name__ == "__main__":
    main()
