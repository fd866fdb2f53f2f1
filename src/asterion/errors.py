"""
Error taxonomy for Asterion
===========================

Two families of errors exist:

- ``ConfigurationError`` covers structurally invalid configuration (unknown
  bodies or properties, malformed expressions, bad distribution parameters,
  degenerate reference frames). These are raised while a configuration is
  validated against a body table, before any draw happens.
- ``SamplingError`` covers failures of a single draw (nothing to choose from,
  a drawn orbit that cannot exist). A draw never partially succeeds.

Every error carries ``source``, the name of the population, group or
distribution that caused it (``None`` when there is no such name).
"""

from typing import Optional


class AsterionError(Exception):
    """Base class for all errors raised by Asterion."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source is not None:
            message = f"[{source}] {message}"
        super().__init__(message)


# ========== CONFIGURATION ERRORS ==========
class ConfigurationError(AsterionError, ValueError):
    """Configuration cannot be interpreted against the current body table."""


class UnknownBody(ConfigurationError):
    """An expression or group refers to a body missing from the body table."""


class UnknownProperty(ConfigurationError):
    """A property code is not recognized, or not available for that body."""


class MalformedExpression(ConfigurationError):
    """Expression text could not be parsed."""


class InvalidResonance(ConfigurationError):
    """A resonance ratio has a non-positive term."""


class InvalidDistributionParameters(ConfigurationError):
    """Parameters are outside the domain of the distribution family."""


class InvalidRange(InvalidDistributionParameters):
    """A range is unusable for the family (e.g. log-uniform with min <= 0)."""


class DegenerateReferenceFrame(ConfigurationError):
    """Reference plane vectors are zero or parallel."""


class UnknownReference(ConfigurationError):
    """A named reference plane, classification or group does not exist."""


class NegativeWeight(ConfigurationError):
    """Weighted selection with a negative weight."""


# ========== SAMPLING ERRORS ==========
class SamplingError(AsterionError, RuntimeError):
    """A single draw could not be completed."""


class NoPopulationsConfigured(SamplingError):
    """The loaded configuration has no groups to draw from."""


class NoValidChoice(SamplingError):
    """Weighted selection over an empty set or weights summing to zero."""


class InvalidOrbitShape(SamplingError):
    """Drawn elements do not describe a representable orbit."""
