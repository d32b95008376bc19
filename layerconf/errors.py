"""Exception hierarchy for configuration loading.

Every error raised by the loader derives from ``ConfigError``. When the
sequential loader gives up on a source it records that source on the error
(``err.source``) and re-raises the same object, so callers can still match on
the concrete class.
"""

from typing import Optional


class ConfigError(Exception):
    """Base exception for configuration errors."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class SourceReadError(ConfigError):
    """Exception raised when a source cannot be read."""

    pass


class ExpansionError(ConfigError):
    """Base exception for template expansion failures."""

    pass


class TemplateParseError(ExpansionError):
    """Exception raised when a source is not a valid template."""

    pass


class TemplateExecutionError(ExpansionError):
    """Exception raised when a template fails while rendering."""

    pass


class RequiredVariableMissingError(TemplateExecutionError):
    """Exception raised by ``must_env`` for an undefined variable.

    The expander re-raises this unchanged instead of folding it into a
    generic ``TemplateExecutionError``.
    """

    def __init__(self, key: str, source: Optional[str] = None):
        super().__init__(
            f"must_env: environment variable {key} is not defined", source
        )
        self.key = key


class DecodeError(ConfigError):
    """Exception raised when decoded data does not fit the target."""

    pass


class EncodeError(ConfigError):
    """Exception raised when a value cannot be serialized."""

    pass


class MaxRetriesExceededError(ConfigError):
    """Exception raised when a data fetcher runs out of retries."""

    pass
