"""Heuristic selection of the most interesting process in a foreground group."""

from collections.abc import Sequence

from termidle.config import ScoringConfig
from termidle.models import ProcessRecord, name_family

DEFAULT_SCORING = ScoringConfig()


def score_process(record: ProcessRecord, config: ScoringConfig = DEFAULT_SCORING) -> float:
    """
    Score how interesting a process is to someone watching the terminal.

    Live, CPU-consuming interpreters score high; idle shells score low so
    that whatever a shell is running wins over the shell itself.
    """
    name = record.name
    family = name_family(name)
    score = 0.0

    if record.run_state == "R":
        score += config.running_bonus
    elif record.run_state == "S":
        score += config.sleeping_bonus

    score += min(record.cpu_percent / config.cpu_divisor, config.cpu_cap)

    if name in config.shell_names or family in config.shell_names:
        score -= config.shell_penalty

    if name in config.repl_names or family in config.repl_names:
        score += config.repl_bonus

    if name in config.package_manager_names and record.cpu_percent > 0:
        score += config.package_manager_bonus

    return score


def find_most_interesting(
    candidates: Sequence[ProcessRecord],
    config: ScoringConfig = DEFAULT_SCORING,
) -> ProcessRecord:
    """
    Pick the highest scoring candidate.

    Ties go to the candidate seen first.

    Raises:
        ValueError: If ``candidates`` is empty.
    """
    if not candidates:
        raise ValueError("find_most_interesting() requires at least one candidate")

    best = candidates[0]
    best_score = score_process(best, config)
    for candidate in candidates[1:]:
        candidate_score = score_process(candidate, config)
        if candidate_score > best_score:
            best, best_score = candidate, candidate_score
    return best
