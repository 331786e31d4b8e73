"""
Execution-context classification for the active process.

The classifier walks an ordered table of rules and returns the label of the
first rule that matches. Name tables come from ``ClassifierConfig`` so new
REPLs or package managers are configuration, not code.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from termidle.config import ClassifierConfig
from termidle.models import ProcessRecord, name_family
from termidle.tree import ProcessTree

logger = logging.getLogger(__name__)

_RAILS_ENV = re.compile(r"RAILS_ENV=(\w+)", re.IGNORECASE)
_RAILS_APP = re.compile(r"/([^/\s]+)/config/environment")


@dataclass(slots=True, frozen=True)
class Classification:
    """Human-readable execution context of a process."""

    environment: str | None = None
    application_context: str | None = None


@dataclass(slots=True, frozen=True)
class ClassificationContext:
    """Everything a rule may inspect."""

    record: ProcessRecord
    tree: ProcessTree
    config: ClassifierConfig

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def family(self) -> str:
        return name_family(self.record.name)

    @property
    def command_lower(self) -> str:
        return self.record.command.lower()


@dataclass(slots=True, frozen=True)
class ClassificationRule:
    """One entry of the classification table."""

    name: str
    predicate: Callable[[ClassificationContext], bool]
    produce: Callable[[ClassificationContext], Classification]


def _is_rails(ctx: ClassificationContext) -> bool:
    cmd = ctx.command_lower
    return "rails console" in cmd or (ctx.family == "ruby" and "rails server" in cmd)


def _rails_classification(ctx: ClassificationContext) -> Classification:
    env_match = _RAILS_ENV.search(ctx.record.command)
    rails_env = env_match.group(1) if env_match else ctx.config.default_rails_env

    app_name = ctx.config.default_rails_app
    # The app path may only appear on a parent (e.g. a spring server)
    for record in ctx.tree.ancestors(ctx.record.pid, ctx.config.max_chain_length) or [ctx.record]:
        app_match = _RAILS_APP.search(record.command)
        if app_match:
            app_name = app_match.group(1)
            break

    return Classification("Rails Console", f"{app_name} ({rails_env})")


def _is_repl(ctx: ClassificationContext) -> bool:
    return ctx.name in ctx.config.repl_names or ctx.family in ctx.config.repl_names


def _repl_classification(ctx: ClassificationContext) -> Classification:
    key = ctx.name if ctx.name in ctx.config.repl_names else ctx.family
    display = ctx.config.repl_display_name(key)
    return Classification(display or f"{key.upper()} REPL")


def _is_package_manager(ctx: ClassificationContext) -> bool:
    return ctx.family in ctx.config.package_manager_names


def _package_manager_classification(ctx: ClassificationContext) -> Classification:
    return Classification(f"{ctx.family.capitalize()} Package Manager")


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("rails", _is_rails, _rails_classification),
    ClassificationRule("repl", _is_repl, _repl_classification),
    ClassificationRule("package-manager", _is_package_manager, _package_manager_classification),
)


class EnvironmentClassifier:
    """Label a process with the environment it runs in."""

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        rules: tuple[ClassificationRule, ...] = DEFAULT_RULES,
    ) -> None:
        self._config = config or ClassifierConfig()
        self._rules = rules

    @property
    def rules(self) -> tuple[ClassificationRule, ...]:
        return self._rules

    def classify(self, record: ProcessRecord, tree: ProcessTree) -> Classification:
        """Return the first matching rule's label, or an empty Classification."""
        ctx = ClassificationContext(record, tree, self._config)
        for rule in self._rules:
            if rule.predicate(ctx):
                logger.debug(f"Process {record.pid} ({record.name}) matched rule '{rule.name}'")
                return rule.produce(ctx)
        return Classification()


def _chain_label(record: ProcessRecord) -> str:
    name = record.name
    if name_family(name) == "ruby" and "rails console" in record.command:
        return "rails console"
    if name == "brew" and "install" in record.command:
        return f"brew install {record.command.split('install', 1)[1].strip()}"
    return name


def build_command_chain(record: ProcessRecord, tree: ProcessTree, max_length: int = 10) -> tuple[str, ...]:
    """
    Names of ``record`` and its ancestors, outermost first.

    At most ``max_length`` entries are kept, counted from ``record`` upwards.
    """
    chain = tree.ancestors(record.pid, max_length) or [record]
    return tuple(_chain_label(p) for p in reversed(chain))
