"""Exceptions raised inside termidle.

None of these escape the resolver or the idle detector; they mark the
boundaries where a degraded OS query is turned into "no information".
"""


class TermidleError(Exception):
    """Base class for termidle errors."""


class ConfigError(TermidleError):
    """Raised when a configuration file cannot be loaded."""


class ProcessQueryError(TermidleError):
    """Raised when an OS process query fails or returns unusable output."""

    def __init__(self, message: str, command: list[str] | None = None, returncode: int | None = None):
        super().__init__(message)
        self.command = command
        self.returncode = returncode
