"""
Process table snapshots and foreground group lookup for a terminal device.

Two process sources are provided: ``PsProcessSource`` parses the output of
``ps -t`` and ``PsutilProcessSource`` builds the same records with psutil.
Both degrade to an empty list on failure, and ``ForegroundResolver``
degrades to ``None``; callers treat either as "no active process".
"""

import logging
import os
import subprocess
from typing import Protocol

import psutil

from termidle.errors import ProcessQueryError
from termidle.models import ProcessRecord

logger = logging.getLogger(__name__)

PS_FIELDS = "pid,ppid,pgid,sess,state,%cpu,rss,time,command"
PS_FIELD_COUNT = 9

# psutil status strings mapped to ps state codes
_PSUTIL_STATE_CODES = {
    psutil.STATUS_RUNNING: "R",
    psutil.STATUS_SLEEPING: "S",
    psutil.STATUS_DISK_SLEEP: "D",
    psutil.STATUS_STOPPED: "T",
    psutil.STATUS_TRACING_STOP: "t",
    psutil.STATUS_ZOMBIE: "Z",
    psutil.STATUS_DEAD: "X",
    psutil.STATUS_IDLE: "I",
}


class ProcessSource(Protocol):
    """Anything that can list the processes attached to a terminal."""

    def snapshot(self, device: str) -> list[ProcessRecord]: ...


def tty_name(device: str) -> str:
    """Terminal name as ``ps -t`` expects it: ``/dev/pts/3`` -> ``pts/3``."""
    if device.startswith("/dev/"):
        return device[len("/dev/"):]
    return os.path.basename(device)


def run_ps(args: list[str], timeout: float = 5.0) -> str:
    """
    Run ``ps`` and return its stdout.

    Args:
        args: Arguments passed after ``ps``.
        timeout: Seconds before the query is abandoned.

    Raises:
        ProcessQueryError: If ps is missing, times out, or exits non-zero.
    """
    command = ["ps", *args]
    logger.debug(f"Executing command: '{' '.join(command)}'")
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
            # Keep %cpu formatted with a '.' decimal separator
            env={**os.environ, "LC_ALL": "C"},
        )
    except FileNotFoundError as e:
        raise ProcessQueryError("Command not found: ps", command) from e
    except subprocess.TimeoutExpired as e:
        raise ProcessQueryError(f"ps timed out after {timeout}s", command) from e

    if result.returncode != 0:
        raise ProcessQueryError(
            f"ps exited with status {result.returncode}: {result.stderr.strip()}",
            command,
            result.returncode,
        )
    return result.stdout


def parse_ps_output(output: str) -> list[ProcessRecord]:
    """
    Parse ``ps -o pid,ppid,pgid,sess,state,%cpu,rss,time,command`` output.

    The first line is treated as a header. Rows with fewer fields than
    expected, or with numeric fields that do not parse, are skipped.
    """
    lines = output.strip().splitlines()
    records: list[ProcessRecord] = []

    for line in lines[1:]:
        parts = line.split(None, PS_FIELD_COUNT - 1)
        if len(parts) < PS_FIELD_COUNT:
            continue
        pid, ppid, pgid, sess, state, cpu, rss, cpu_time, command = parts
        try:
            records.append(
                ProcessRecord(
                    pid=int(pid),
                    ppid=int(ppid),
                    pgid=int(pgid),
                    sid=int(sess),
                    state=state,
                    cpu_percent=float(cpu),
                    rss_kb=int(rss),
                    cpu_time=cpu_time,
                    command=command.strip(),
                )
            )
        except ValueError:
            logger.debug(f"Skipping malformed ps row: {line!r}")
            continue

    return records


class PsProcessSource:
    """Snapshot processes on a terminal with ``ps -t``."""

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout

    def snapshot(self, device: str) -> list[ProcessRecord]:
        try:
            output = run_ps(["-t", tty_name(device), "-o", PS_FIELDS, "-ww"], self._timeout)
        except ProcessQueryError as e:
            logger.debug(f"Process snapshot for {device} failed: {e}")
            return []
        return parse_ps_output(output)


def _format_cpu_time(seconds: float) -> str:
    """Format accumulated CPU seconds the way ps does (HH:MM:SS)."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class PsutilProcessSource:
    """
    Snapshot processes on a terminal with psutil.

    CPU percentages come from psutil's per-process sampling, so the first
    snapshot of a newly seen process reports 0.0.
    Handles NoSuchProcess, AccessDenied and ZombieProcess per process.
    """

    def snapshot(self, device: str) -> list[ProcessRecord]:
        target = os.path.normpath(device)
        attrs = ["pid", "ppid", "status", "cpu_percent", "memory_info", "cpu_times", "cmdline", "name", "terminal"]
        records: list[ProcessRecord] = []

        try:
            processes = psutil.process_iter(attrs=attrs)
            for proc in processes:
                try:
                    with proc.oneshot():
                        info = proc.info
                        terminal = info.get("terminal")
                        if not terminal or os.path.normpath(terminal) != target:
                            continue

                        pid = info["pid"]
                        cmdline = info.get("cmdline") or []
                        command = " ".join(cmdline) if cmdline else info.get("name") or ""
                        mem_info = info.get("memory_info")
                        cpu_times = info.get("cpu_times")
                        cpu_seconds = cpu_times.user + cpu_times.system if cpu_times else 0.0

                        records.append(
                            ProcessRecord(
                                pid=pid,
                                ppid=info.get("ppid") or 0,
                                pgid=os.getpgid(pid),
                                sid=os.getsid(pid),
                                state=_PSUTIL_STATE_CODES.get(info.get("status"), "?"),
                                cpu_percent=info.get("cpu_percent") or 0.0,
                                rss_kb=(mem_info.rss // 1024) if mem_info else 0,
                                cpu_time=_format_cpu_time(cpu_seconds),
                                command=command,
                            )
                        )
                except (
                    psutil.NoSuchProcess,
                    psutil.AccessDenied,
                    psutil.ZombieProcess,
                    ProcessLookupError,
                    PermissionError,
                ):
                    # Process exited mid-poll or is not ours to inspect
                    continue
        except OSError as e:
            logger.debug(f"psutil snapshot for {device} failed: {e}")
            return []

        return records


class ForegroundResolver:
    """Look up the process group that owns a terminal's foreground."""

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout

    def resolve(self, device: str) -> int | None:
        """
        Return the foreground process group id of ``device``.

        Returns:
            The pgid, or None if it cannot be determined.
        """
        try:
            output = run_ps(["-o", "tpgid=", "-t", tty_name(device)], self._timeout)
        except ProcessQueryError as e:
            logger.debug(f"Foreground lookup for {device} failed: {e}")
            return None

        for line in output.splitlines():
            value = line.strip()
            if not value:
                continue
            try:
                pgid = int(value)
            except ValueError:
                logger.debug(f"Unexpected tpgid value for {device}: {value!r}")
                return None
            # ps reports -1 when the terminal has no foreground group
            return pgid if pgid > 0 else None
        return None
