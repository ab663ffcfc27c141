"""Exceptions raised by api-scramble."""


class ScrambleError(Exception):
    """Base class for all api-scramble errors."""


class ConfigError(ScrambleError):
    """Invalid configuration values."""


class ScanError(ScrambleError):
    """A source file could not be read or parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class EmitError(ScrambleError):
    """A generated document could not be serialized."""
