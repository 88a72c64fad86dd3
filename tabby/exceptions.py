"""Tabby exception hierarchy.

All tabby exceptions inherit from TabbyError and support cause chaining.
Completion itself never raises to the caller; these cover load-time and
command-time failures.
"""


class TabbyError(Exception):
    """Base exception for all tabby errors.

    Wraps original errors as __cause__ for proper exception chaining.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class ConfigError(TabbyError):
    """Raised when a config file or environment override is invalid."""

    pass


class KnowledgeBaseError(TabbyError):
    """Raised when signature data cannot be read or validated.

    Examples: missing data file, TOML syntax errors, unparseable
    type expressions.
    """

    pass


class CommandError(TabbyError):
    """Raised when a shell command cannot run with the given argument."""

    def __init__(self, message: str, *, command: str = "", cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.command = command
