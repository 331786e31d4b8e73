"""
Tunable constants for termidle.

Every heuristic weight, name table and timing threshold lives here so the
detection mechanism can be tuned without code changes. Defaults reproduce
the reference behaviour; ``load_config`` overlays values from a TOML file.
"""

import dataclasses
import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from termidle.errors import ConfigError

logger = logging.getLogger(__name__)

SHELL_NAMES = frozenset({"bash", "zsh", "sh", "fish", "csh", "tcsh"})

REPL_NAMES = frozenset(
    {
        "irb",
        "pry",
        "rails",
        "node",
        "python",
        "ipython",
        "scala",
        "ghci",
        "iex",
        "lein",
        "clj",
        "julia",
        "R",
        "php",
        "lua",
    }
)

REPL_DISPLAY_NAMES = {
    "irb": "Ruby IRB",
    "pry": "Pry Console",
    "node": "Node.js REPL",
    "python": "Python REPL",
    "ipython": "IPython Console",
}


@dataclass(frozen=True)
class ScoringConfig:
    """Weights used by the interest scorer."""

    running_bonus: float = 2.0
    sleeping_bonus: float = 1.0
    cpu_divisor: float = 10.0
    cpu_cap: float = 5.0
    shell_penalty: float = 1.0
    repl_bonus: float = 3.0
    package_manager_bonus: float = 2.0
    shell_names: frozenset[str] = SHELL_NAMES
    repl_names: frozenset[str] = REPL_NAMES
    # pip is labelled by the classifier but never boosted here.
    package_manager_names: frozenset[str] = frozenset({"brew", "npm", "yarn"})


@dataclass(frozen=True)
class ClassifierConfig:
    """Name tables used by the environment classifier."""

    repl_names: frozenset[str] = REPL_NAMES
    # (name, label) pairs, kept as a tuple so the config stays hashable.
    repl_display_names: tuple[tuple[str, str], ...] = tuple(REPL_DISPLAY_NAMES.items())
    package_manager_names: frozenset[str] = frozenset({"brew", "npm", "yarn", "pip"})
    default_rails_env: str = "development"
    default_rails_app: str = "Rails App"
    max_chain_length: int = 10

    def __post_init__(self) -> None:
        if isinstance(self.repl_display_names, Mapping):
            object.__setattr__(self, "repl_display_names", tuple(self.repl_display_names.items()))

    def repl_display_name(self, name: str) -> str | None:
        """Label for a REPL, or None when the table has no entry."""
        for key, label in self.repl_display_names:
            if key == name:
                return label
        return None


@dataclass(frozen=True)
class MetricsConfig:
    """Thresholds deciding which processes appear in a metrics breakdown."""

    breakdown_min_cpu_percent: float = 0.1
    breakdown_min_memory_mb: float = 5.0


@dataclass(frozen=True)
class IdleConfig:
    """Timing of the idle detector."""

    cpu_threshold: float = 1.0
    idle_duration_ms: int = 1000
    cadence_ms: int = 350
    # None waits until idle or cancelled.
    timeout_seconds: float | None = None
    query_timeout_seconds: float = 5.0


@dataclass(frozen=True)
class TermidleConfig:
    """Aggregate configuration."""

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    idle: IdleConfig = field(default_factory=IdleConfig)


def _check_value(value: Any, default: Any, key: str, section: str) -> Any:
    """Validate one TOML value against the type of its default."""
    where = f"[{section}].{key}"

    if isinstance(default, frozenset):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ConfigError(f"{where} must be a list of names")
        return frozenset(value)

    if isinstance(default, tuple):
        if not isinstance(value, dict) or not all(isinstance(label, str) for label in value.values()):
            raise ConfigError(f"{where} must be a table of names to labels")
        return tuple({**dict(default), **value}.items())

    # TOML booleans are ints to isinstance
    if isinstance(value, bool):
        raise ConfigError(f"{where} must not be a boolean")

    if default is None or isinstance(default, float):
        if not isinstance(value, (int, float)):
            raise ConfigError(f"{where} must be a number, got {value!r}")
        return float(value)
    if isinstance(default, int):
        if not isinstance(value, int):
            raise ConfigError(f"{where} must be an integer, got {value!r}")
        return value
    if isinstance(default, str) and not isinstance(value, str):
        raise ConfigError(f"{where} must be a string, got {value!r}")
    return value


def _build_section(cls: type, data: Any, section: str) -> Any:
    """Instantiate one config dataclass from a TOML table."""
    if not isinstance(data, dict):
        raise ConfigError(f"[{section}] must be a table, got {data!r}")

    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in [{section}]: {', '.join(unknown)}")

    defaults = cls()
    values = {key: _check_value(value, getattr(defaults, key), key, section) for key, value in data.items()}
    return cls(**values)


def load_config(path: Path | None = None) -> TermidleConfig:
    """
    Load configuration, overlaying a TOML file on the defaults.

    Args:
        path: Optional TOML file with ``[scoring]``, ``[classifier]``,
            ``[metrics]`` and ``[idle]`` tables.

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If the file is missing or malformed, or holds unknown
            keys or values of the wrong type.
    """
    if path is None:
        return TermidleConfig()

    logger.info(f"Loading configuration from: {path}")
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed configuration file {path}: {e}") from e

    sections = {
        "scoring": ScoringConfig,
        "classifier": ClassifierConfig,
        "metrics": MetricsConfig,
        "idle": IdleConfig,
    }
    unknown = sorted(set(data) - set(sections))
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {', '.join(unknown)}")

    return TermidleConfig(
        **{name: _build_section(cls, data.get(name, {}), name) for name, cls in sections.items()}
    )
