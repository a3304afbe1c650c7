"""Custom exception hierarchy for stageload."""

from __future__ import annotations


class StageLoadError(Exception):
    """Base exception for all stageload errors.

    Every error raised deliberately by the engine inherits from this class,
    so callers can treat any fatal run problem with a single except clause.
    """


class ConfigError(StageLoadError):
    """Raised when a run configuration is invalid.

    Examples:
        - A stage has a negative duration or a negative target.
        - The stage list is empty.
        - An environment variable has a value of the wrong type.
    """


class SetupError(StageLoadError):
    """Raised when a run cannot start.

    Examples:
        - The target host refuses connections at start.
        - The target host name does not resolve.
    """


class EngineError(StageLoadError):
    """Raised when the engine fails unexpectedly while a run is in progress."""
