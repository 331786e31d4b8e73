"""Parent/child process tree built from a flat terminal snapshot."""

from collections import defaultdict
from collections.abc import Iterable, Iterator

from termidle.models import ProcessRecord


class ProcessTree:
    """
    Read-only process tree keyed by pid.

    A record whose parent is not in the snapshot is a root. Walks are guarded
    against revisiting a pid, so inconsistent parent links (a process listed
    as its own parent, or a parent cycle) never loop forever.
    """

    def __init__(self, records: Iterable[ProcessRecord]) -> None:
        self._by_pid: dict[int, ProcessRecord] = {}
        self._children: dict[int, list[ProcessRecord]] = defaultdict(list)

        for record in records:
            # pids are unique per snapshot; keep the first if ps repeats one
            if record.pid not in self._by_pid:
                self._by_pid[record.pid] = record

        for record in self._by_pid.values():
            if record.ppid in self._by_pid and record.ppid != record.pid:
                self._children[record.ppid].append(record)

    def __len__(self) -> int:
        return len(self._by_pid)

    def __iter__(self) -> Iterator[ProcessRecord]:
        return iter(self._by_pid.values())

    def __contains__(self, pid: object) -> bool:
        return pid in self._by_pid

    @property
    def records(self) -> list[ProcessRecord]:
        """Records in snapshot order."""
        return list(self._by_pid.values())

    def get(self, pid: int) -> ProcessRecord | None:
        return self._by_pid.get(pid)

    def parent(self, record: ProcessRecord) -> ProcessRecord | None:
        if record.ppid == record.pid:
            return None
        return self._by_pid.get(record.ppid)

    def children(self, pid: int) -> list[ProcessRecord]:
        return list(self._children.get(pid, ()))

    def roots(self) -> list[ProcessRecord]:
        """Records with no represented parent."""
        return [record for record in self._by_pid.values() if self.parent(record) is None]

    def descendants(self, pid: int) -> list[ProcessRecord]:
        """
        Collect every descendant of ``pid``, depth first.

        The result never includes ``pid`` itself and never repeats a pid.
        """
        collected: list[ProcessRecord] = []
        visited = {pid}
        stack = list(reversed(self._children.get(pid, ())))

        while stack:
            record = stack.pop()
            if record.pid in visited:
                continue
            visited.add(record.pid)
            collected.append(record)
            stack.extend(reversed(self._children.get(record.pid, ())))

        return collected

    def ancestors(self, pid: int, max_hops: int) -> list[ProcessRecord]:
        """
        Walk from ``pid`` towards the root.

        Returns:
            At most ``max_hops`` records, starting with ``pid`` itself and
            ending with the outermost ancestor reached.
        """
        chain: list[ProcessRecord] = []
        visited: set[int] = set()
        current = self._by_pid.get(pid)

        while current is not None and current.pid not in visited and len(chain) < max_hops:
            visited.add(current.pid)
            chain.append(current)
            current = self.parent(current)

        return chain
