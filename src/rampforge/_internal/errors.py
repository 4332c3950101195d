"""Custom exception hierarchy for RampForge."""

from __future__ import annotations


class RampForgeError(Exception):
    """Base exception for all RampForge errors.

    All custom exceptions in RampForge inherit from this class, so any
    harness-specific failure can be caught with a single except clause.
    """


class ConfigurationError(RampForgeError):
    """Raised when a run configuration is invalid.

    Always raised before any virtual user starts.

    Examples:
        - Zero (or negative) concurrency.
        - An empty endpoint table.
        - A non-positive endpoint weight.
        - An environment variable or endpoint file with an invalid value.
    """


class ReportingError(RampForgeError):
    """Raised when a finished report cannot be persisted.

    The computed statistics stay valid; callers fall back to printing the
    report on standard output.
    """


class EngineError(RampForgeError):
    """Raised when a load test session fails for an unexpected reason."""
