"""
Utility functions for the Asterion package.
"""

import math
import warnings
from typing import Type
from .config import config


def validation_error(message: str, error_class: Type[Exception] = ValueError):
    """
    Raise error or warn based on config.STRICT_VALIDATION.

    This function provides consistent validation behavior across the package
    for configuration problems that do not prevent drawing (duplicate group
    names, a configuration whose groups are all switched off).
    When STRICT_VALIDATION is True (default), raises the specified exception.
    When False, issues a UserWarning instead.

    Parameters
    ----------
    message : str
        Validation error message
    error_class : Type[Exception], optional
        Exception class to raise if STRICT_VALIDATION is True.
        Default: ValueError

    Raises
    ------
    Exception (of type error_class)
        If config.STRICT_VALIDATION is True

    Warns
    -----
    UserWarning
        If config.STRICT_VALIDATION is False

    Examples
    --------
    >>> from asterion.utils import validation_error
    >>> from asterion import config, ConfigurationError
    >>> config.STRICT_VALIDATION = True
    >>> validation_error("Duplicate group 'belt'", ConfigurationError)  # Raises

    >>> config.STRICT_VALIDATION = False
    >>> validation_error("Duplicate group 'belt'", ConfigurationError)  # Warns
    """
    if config.STRICT_VALIDATION:
        raise error_class(message)
    else:
        warnings.warn(message, UserWarning, stacklevel=2)


def wrap_degrees(angle: float) -> float:
    """Wrap an angle in degrees to [0, 360)."""
    wrapped = math.fmod(angle, 360.0)
    if wrapped < 0.0:
        wrapped += 360.0
    # fmod of a tiny negative value can round up to exactly 360
    if wrapped >= 360.0:
        wrapped = 0.0
    return wrapped


def wrap_radians(angle: float) -> float:
    """Wrap an angle in radians to [0, 2pi)."""
    wrapped = math.fmod(angle, 2.0 * math.pi)
    if wrapped < 0.0:
        wrapped += 2.0 * math.pi
    if wrapped >= 2.0 * math.pi:
        wrapped = 0.0
    return wrapped
