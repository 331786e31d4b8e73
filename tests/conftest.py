"""Shared fixtures for the termidle test suite."""

import pytest

from termidle.models import ProcessRecord


def record(
    pid: int,
    command: str,
    *,
    ppid: int = 1,
    pgid: int | None = None,
    sid: int = 100,
    state: str = "S",
    cpu: float = 0.0,
    rss_kb: int = 0,
    cpu_time: str = "00:00:00",
) -> ProcessRecord:
    """Build a ProcessRecord with test-friendly defaults."""
    return ProcessRecord(
        pid=pid,
        ppid=ppid,
        pgid=pid if pgid is None else pgid,
        sid=sid,
        state=state,
        cpu_percent=cpu,
        rss_kb=rss_kb,
        cpu_time=cpu_time,
        command=command,
    )


@pytest.fixture
def make_record():
    """Factory fixture for ProcessRecord."""
    return record


@pytest.fixture
def shell_session():
    """A login shell running a python REPL that spawned a worker."""
    return [
        record(100, "-zsh", ppid=1, pgid=100, state="Ss", rss_kb=4096),
        record(200, "python3 manage.py shell", ppid=100, pgid=200, state="S+", cpu=2.5, rss_kb=40960),
        record(300, "python3 -c work", ppid=200, pgid=200, state="R+", cpu=40.0, rss_kb=8192),
        record(400, "sleep 100", ppid=300, pgid=200, state="S+", rss_kb=512),
    ]
