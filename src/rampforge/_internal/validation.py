"""Small validation helpers shared by the configuration dataclasses."""

from __future__ import annotations

from rampforge._internal.errors import ConfigurationError


def _validate_positive(value: float, name: str) -> None:
    """Raise :class:`ConfigurationError` if *value* is not strictly positive.

    Args:
        value: The numeric value to validate.
        name: Parameter name used in the error message.

    Raises:
        ConfigurationError: If *value* is not > 0.
    """
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigurationError(msg)


def _validate_non_negative(value: float, name: str) -> None:
    """Raise :class:`ConfigurationError` if *value* is negative.

    Args:
        value: The numeric value to validate.
        name: Parameter name used in the error message.

    Raises:
        ConfigurationError: If *value* is < 0.
    """
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigurationError(msg)


def _validate_int(value: object, name: str) -> None:
    """Raise :class:`ConfigurationError` unless *value* is a plain int."""
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an integer, got {value!r}"
        raise ConfigurationError(msg)
