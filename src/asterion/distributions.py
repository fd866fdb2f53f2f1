"""
Distribution sampler
====================

Draws one number from a statistical family whose parameters are
Expressions, resolved against the body table at draw time.

The random source is any object with a ``random()`` method returning floats
in [0, 1): ``numpy.random.Generator`` and ``random.Random`` both qualify.
Every draw makes exactly one ``random()`` call and maps it through the
family's inverse CDF (``scipy.special`` for the Gaussian, Gamma and Beta
families), so a seeded source reproduces a sequence of draws exactly.

Parameter roles per family:

=============== ===================================================
Family          Parameters
=============== ===================================================
Uniform         min, max
LogUniform      min > 0, max
LogNormal       avg > 0 (median), stddev >= 0
Gaussian        avg, stddev >= 0
Rayleigh        avg > 0 (mean)
Beta            avg, stddev > 0, on [min, max] (default [0, 1])
Isotropic       none; angle [deg] with uniform cosine
Exponential     avg >= 0 (mean)
Gamma           avg > 0 (mean), stddev > 0
=============== ===================================================
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

import numpy as np
from scipy import special

from .bodies import BodyTable
from .errors import InvalidDistributionParameters, InvalidRange
from .expressions import Expression, ExpressionLike, parse_expression, resolve


class DistType(Enum):
    UNIFORM = 'Uniform'
    LOG_UNIFORM = 'LogUniform'
    LOG_NORMAL = 'LogNormal'
    GAUSSIAN = 'Gaussian'
    RAYLEIGH = 'Rayleigh'
    BETA = 'Beta'
    ISOTROPIC = 'Isotropic'
    EXPONENTIAL = 'Exponential'
    GAMMA = 'Gamma'


# families whose draws never exceed the resolved max
_BOUNDED = (DistType.UNIFORM, DistType.LOG_UNIFORM, DistType.BETA)
# families that use stddev
_WIDTH_FAMILIES = (DistType.GAUSSIAN, DistType.LOG_NORMAL, DistType.GAMMA, DistType.BETA)


@dataclass(frozen=True)
class DistributionSpec:
    """
    Immutable description of one random quantity.

    Parameters
    ----------
    dist : DistType or str
        Distribution family
    min, max, avg : Expression, str or float
        Family parameters (see module table). Unused slots are ignored
    stddev : Expression, str or float
        Width parameter; a plain number in most configurations
    name : str, optional
        Label used in error messages (e.g. ``'belt.eccentricity'``)

    Examples
    --------
    >>> DistributionSpec('Uniform', min='Ratio(Kerbin.sma, 0.5)', max=2e10)
    >>> DistributionSpec.rayleigh(0.1, name='eccentricity')
    """
    dist: DistType = DistType.UNIFORM
    min: Expression = field(default_factory=lambda: Expression.literal(0.0))
    max: Expression = field(default_factory=lambda: Expression.literal(1.0))
    avg: Expression = field(default_factory=lambda: Expression.literal(0.0))
    stddev: Expression = field(default_factory=lambda: Expression.literal(0.0))
    name: Optional[str] = None

    def __post_init__(self):
        # frozen, so normalise through object.__setattr__
        object.__setattr__(self, 'dist', self._parse_dist_type(self.dist))
        for slot in ('min', 'max', 'avg', 'stddev'):
            object.__setattr__(self, slot, parse_expression(getattr(self, slot)))

        # checks that need no body table
        if self.stddev.is_literal and self.stddev.value < 0:
            raise InvalidDistributionParameters(
                f"Standard deviation cannot be negative (gave {self.stddev.value})",
                source=self.name)
        if (self.dist in _BOUNDED and self.min.is_literal and self.max.is_literal
                and self.min.value > self.max.value):
            raise InvalidDistributionParameters(
                f"{self.dist.value} distribution needs min <= max "
                f"(gave {self.min.value} > {self.max.value})", source=self.name)

    # ========== ALTERNATE CONSTRUCTORS ==========
    @classmethod
    def uniform(cls, min: ExpressionLike, max: ExpressionLike, name=None):
        return cls(DistType.UNIFORM, min=min, max=max, name=name)

    @classmethod
    def fixed(cls, value: ExpressionLike, name=None):
        """Uniform distribution with min == max."""
        return cls(DistType.UNIFORM, min=value, max=value, name=name)

    @classmethod
    def log_uniform(cls, min: ExpressionLike, max: ExpressionLike, name=None):
        return cls(DistType.LOG_UNIFORM, min=min, max=max, name=name)

    @classmethod
    def log_normal(cls, avg: ExpressionLike, stddev: ExpressionLike, name=None):
        return cls(DistType.LOG_NORMAL, avg=avg, stddev=stddev, name=name)

    @classmethod
    def gaussian(cls, avg: ExpressionLike, stddev: ExpressionLike, name=None):
        return cls(DistType.GAUSSIAN, avg=avg, stddev=stddev, name=name)

    @classmethod
    def rayleigh(cls, avg: ExpressionLike, name=None):
        return cls(DistType.RAYLEIGH, avg=avg, name=name)

    @classmethod
    def beta(cls, avg: ExpressionLike, stddev: ExpressionLike,
             min: ExpressionLike = 0.0, max: ExpressionLike = 1.0, name=None):
        return cls(DistType.BETA, min=min, max=max, avg=avg, stddev=stddev, name=name)

    @classmethod
    def isotropic(cls, name=None):
        return cls(DistType.ISOTROPIC, name=name)

    @classmethod
    def exponential(cls, avg: ExpressionLike, name=None):
        return cls(DistType.EXPONENTIAL, avg=avg, name=name)

    @classmethod
    def gamma(cls, avg: ExpressionLike, stddev: ExpressionLike, name=None):
        return cls(DistType.GAMMA, avg=avg, stddev=stddev, name=name)

    @classmethod
    def from_dict(cls, node: Mapping[str, Any], name: Optional[str] = None):
        """
        Build from a configuration node.

        Recognised keys: ``dist``, ``min``, ``max``, ``avg``, ``stddev``.
        Missing keys keep their defaults (Uniform on [0, 1]).
        """
        kwargs = {key: node[key] for key in ('dist', 'min', 'max', 'avg', 'stddev')
                  if key in node}
        return cls(name=name, **kwargs)

    def with_name(self, name: str) -> "DistributionSpec":
        """Copy of this spec with a different error label."""
        return DistributionSpec(self.dist, self.min, self.max, self.avg, self.stddev, name)

    @staticmethod
    def _parse_dist_type(dist):
        """Convert string or enum to DistType enum"""
        if isinstance(dist, DistType):
            return dist
        elif isinstance(dist, str):
            type_map = {
                'uniform': DistType.UNIFORM,
                'loguniform': DistType.LOG_UNIFORM,
                'lognormal': DistType.LOG_NORMAL,
                'gaussian': DistType.GAUSSIAN,
                'normal': DistType.GAUSSIAN,
                'rayleigh': DistType.RAYLEIGH,
                'beta': DistType.BETA,
                'isotropic': DistType.ISOTROPIC,
                'exponential': DistType.EXPONENTIAL,
                'gamma': DistType.GAMMA,
            }
            key = dist.strip().lower().replace('_', '').replace('-', '')
            if key in type_map:
                return type_map[key]
            raise InvalidDistributionParameters(
                f"Unknown distribution '{dist}'. Use: {[t.value for t in DistType]}")
        else:
            raise TypeError(f"dist must be DistType or str, got {type(dist)}")


# ========== SAMPLING ==========
def sample(spec: DistributionSpec, rng, bodies: BodyTable) -> float:
    """
    Draw one value from a distribution.

    Parameters
    ----------
    spec : DistributionSpec
        Distribution to draw from; its expressions are resolved now
    rng : object with ``random()``
        Uniform [0, 1) source; advanced by every call
    bodies : BodyTable
        Body snapshot used to resolve the parameters

    Returns
    -------
    float

    Raises
    ------
    InvalidDistributionParameters
        If the resolved parameters are outside the family's domain
    InvalidRange
        For LogUniform with min <= 0
    UnknownBody, UnknownProperty
        If a parameter refers to a missing body or property
    """
    lo, hi, avg, sd = _resolved_parameters(spec, bodies)
    dist = spec.dist

    if dist == DistType.UNIFORM:
        return _uniform(rng, lo, hi)
    if dist == DistType.LOG_UNIFORM:
        if lo == hi:
            return lo
        return math.exp(_uniform(rng, math.log(lo), math.log(hi)))
    if dist == DistType.GAUSSIAN:
        return avg + sd * _standard_normal(rng)
    if dist == DistType.LOG_NORMAL:
        sigma = math.sqrt(math.log1p((sd / avg)**2))
        return avg * math.exp(sigma * _standard_normal(rng))
    if dist == DistType.RAYLEIGH:
        sigma = avg * math.sqrt(2.0 / math.pi)
        return sigma * math.sqrt(-2.0 * math.log(_open_unit(rng)))
    if dist == DistType.EXPONENTIAL:
        return -avg * math.log(_open_unit(rng))
    if dist == DistType.GAMMA:
        k = (avg / sd)**2
        theta = sd**2 / avg
        return theta * float(special.gammaincinv(k, rng.random()))
    if dist == DistType.BETA:
        alpha, beta = _beta_shape(lo, hi, avg, sd)
        return lo + (hi - lo) * float(special.betaincinv(alpha, beta, rng.random()))
    # ISOTROPIC
    return math.degrees(math.acos(1.0 - 2.0 * rng.random()))


def check(spec: DistributionSpec, bodies: BodyTable) -> None:
    """
    Validate a distribution against a body table without drawing.

    Raises the same errors ``sample`` would raise for the current body state.
    """
    _resolved_parameters(spec, bodies)


def upper_bound(spec: DistributionSpec, bodies: BodyTable) -> float:
    """
    Supremum of the values ``spec`` can produce.

    Returns ``inf`` for families without an upper bound.
    """
    if spec.dist == DistType.ISOTROPIC:
        return 180.0
    if spec.dist in _BOUNDED:
        _, hi, _, _ = _resolved_parameters(spec, bodies)
        return hi
    return math.inf


def _resolved_parameters(spec: DistributionSpec, bodies: BodyTable):
    """Resolve and validate (min, max, avg, stddev) for the distribution's family."""
    dist = spec.dist
    if dist == DistType.ISOTROPIC:
        return 0.0, 180.0, 0.0, 0.0

    lo = hi = avg = sd = math.nan
    if dist in _BOUNDED:
        lo = resolve(spec.min, bodies)
        hi = resolve(spec.max, bodies)
    if dist not in (DistType.UNIFORM, DistType.LOG_UNIFORM):
        avg = resolve(spec.avg, bodies)
    if dist in _WIDTH_FAMILIES:
        sd = resolve(spec.stddev, bodies)

    def fail(message, error=InvalidDistributionParameters):
        raise error(f"{dist.value} distribution: {message}", source=spec.name)

    if dist in _BOUNDED:
        if not (math.isfinite(lo) and math.isfinite(hi)):
            fail(f"range must be finite (gave [{lo}, {hi}])")
        if lo > hi:
            fail(f"min must be no more than max (gave {lo} > {hi})")
    if dist == DistType.LOG_UNIFORM and lo <= 0:
        fail(f"min must be positive (gave {lo})", InvalidRange)
    if dist in (DistType.LOG_NORMAL, DistType.RAYLEIGH, DistType.GAMMA) and not avg > 0:
        fail(f"avg must be positive (gave {avg})")
    if dist == DistType.EXPONENTIAL and not avg >= 0:
        fail(f"avg cannot be negative (gave {avg})")
    if dist == DistType.GAUSSIAN and math.isnan(avg):
        fail("avg is not a number")
    if dist in _WIDTH_FAMILIES and not sd >= 0:
        fail(f"stddev cannot be negative (gave {sd})")
    if dist == DistType.GAMMA and sd == 0:
        fail("stddev must be positive")
    if dist == DistType.BETA:
        if not lo < avg < hi:
            fail(f"avg must lie strictly between min and max (gave {lo} < {avg} < {hi})")
        if sd == 0:
            fail("stddev must be positive")
        m = (avg - lo) / (hi - lo)
        if (sd / (hi - lo))**2 >= m * (1 - m):
            fail(f"stddev {sd} too large for mean {avg} on [{lo}, {hi}]")
    return lo, hi, avg, sd


def _beta_shape(lo, hi, avg, sd):
    """Method-of-moments (alpha, beta) for a Beta on [lo, hi]."""
    m = (avg - lo) / (hi - lo)
    var = (sd / (hi - lo))**2
    factor = m * (1 - m) / var - 1
    return m * factor, (1 - m) * factor


# ========== RANDOM PRIMITIVES ==========
_TINY = np.finfo(float).tiny


def _uniform(rng, lo: float, hi: float) -> float:
    return lo + (hi - lo) * rng.random()


def _open_unit(rng) -> float:
    """Uniform in (0, 1], safe to take the log of."""
    return 1.0 - rng.random()


def _standard_normal(rng) -> float:
    # inverse CDF; u = 0 would map to -inf
    return float(special.ndtri(max(rng.random(), _TINY)))
