"""Resolve the active process on a terminal and what it is costing."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor

from termidle.classifier import EnvironmentClassifier, build_command_chain
from termidle.config import TermidleConfig
from termidle.metrics import calculate_metrics
from termidle.models import ActiveProcess
from termidle.scoring import find_most_interesting
from termidle.snapshot import ForegroundResolver, ProcessSource, PsProcessSource
from termidle.tree import ProcessTree

logger = logging.getLogger(__name__)


class ActiveProcessResolver:
    """
    Answer "what is running in the foreground of this terminal?".

    Never raises for anticipated failures: a missing device, an empty
    snapshot, an unknown foreground group and any unexpected error all
    resolve to ``None``.
    """

    def __init__(
        self,
        source: ProcessSource | None = None,
        foreground: ForegroundResolver | None = None,
        config: TermidleConfig | None = None,
    ) -> None:
        self._config = config or TermidleConfig()
        timeout = self._config.idle.query_timeout_seconds
        self._source = source or PsProcessSource(timeout=timeout)
        self._foreground = foreground or ForegroundResolver(timeout=timeout)
        self._classifier = EnvironmentClassifier(self._config.classifier)

    @property
    def config(self) -> TermidleConfig:
        return self._config

    def get_active_process(self, device: str) -> ActiveProcess | None:
        """
        Resolve the active process on ``device``.

        Args:
            device: Terminal device path, e.g. ``/dev/pts/3``.

        Returns:
            The active process with its metrics, or None.
        """
        try:
            return self._resolve(device)
        except Exception:
            logger.exception(f"Error getting active process for {device}")
            return None

    def _resolve(self, device: str) -> ActiveProcess | None:
        if not os.path.exists(device):
            logger.debug(f"TTY path does not exist: {device}")
            return None

        # The two OS queries are independent; both must finish before scoring
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="termidle-query") as pool:
            snapshot_future = pool.submit(self._source.snapshot, device)
            foreground_future = pool.submit(self._foreground.resolve, device)
            processes = snapshot_future.result()
            fg_pgid = foreground_future.result()

        if not processes:
            return None
        if fg_pgid is None:
            return None

        candidates = [p for p in processes if p.pgid == fg_pgid]
        if not candidates:
            logger.debug(f"No process on {device} in foreground group {fg_pgid}")
            return None

        tree = ProcessTree(processes)
        active = find_most_interesting(candidates, self._config.scoring)
        classification = self._classifier.classify(active, tree)

        return ActiveProcess(
            pid=active.pid,
            ppid=active.ppid,
            pgid=active.pgid,
            name=active.name,
            command=active.command,
            state=active.state,
            command_chain=build_command_chain(active, tree, self._config.classifier.max_chain_length),
            metrics=calculate_metrics(active, tree, self._config.metrics),
            environment=classification.environment,
            application_context=classification.application_context,
        )


def get_active_process(device: str, config: TermidleConfig | None = None) -> ActiveProcess | None:
    """Resolve the active process on ``device`` with the default OS queries."""
    return ActiveProcessResolver(config=config).get_active_process(device)
