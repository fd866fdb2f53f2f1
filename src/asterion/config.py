"""
Global Configuration for Asterion Package
=========================================

This module provides package-wide configuration settings that users can modify
to control numerical tolerances, validation behavior, and default plotting options.

Examples
--------
View current configuration:

>>> import asterion
>>> print(asterion.config)

Modify settings:

>>> asterion.config.KEPLER_TOL = 1e-14  # Stricter Kepler solver
>>> asterion.config.STRICT_VALIDATION = False  # Warn on soft config problems

Reset to defaults:

>>> asterion.config.reset()

Temporarily modify settings:

>>> with asterion.temp_config(DEGENERATE_VECTOR_TOL=1e-6):
...     # Stricter degeneracy check for this block only
...     plane = ReferencePlane.from_vectors('tilted', normal, reference)

Notes
-----
These settings affect package-wide behavior. Modifying them will impact
all subsequent operations until changed again or reset.
"""

from dataclasses import dataclass
from contextlib import contextmanager


@dataclass
class AsterionConfig:
    """
    Global configuration for Asterion package.

    Attributes
    ----------
    EQUALITY_RTOL : float
        Relative tolerance for floating-point equality comparisons.
        Default: 1e-12
    EQUALITY_ATOL : float
        Absolute tolerance for floating-point equality comparisons.
        Default: 1e-14
    DEGENERATE_VECTOR_TOL : float
        Vectors shorter than this are treated as zero when building
        reference planes from a normal and a reference direction.
        Default: 1e-8
    ROTATION_ATOL : float
        Absolute tolerance used to confirm a reference plane matrix is a
        proper rotation (orthonormal, determinant +1).
        Default: 1e-9
    SNAP_TO_CIRCULAR : float
        Eccentricity below this threshold treated as circular orbit (e=0)
        when rebuilding elements from state vectors.
        Default: 1e-10
    SNAP_TO_EQUATORIAL : float
        Inclination [rad] below this threshold (or this close to pi) treated
        as equatorial when rebuilding elements from state vectors.
        Default: 1e-10
    KEPLER_TOL : float
        Convergence tolerance [rad] for Kepler's equation.
        Default: 1e-12
    KEPLER_MAX_ITER : int
        Iteration cap for Kepler's equation.
        Default: 50
    STRICT_VALIDATION : bool
        If True, soft configuration problems raise exceptions.
        If False, they issue warnings.
        Default: True
    DEFAULT_SAMPLE_SIZE : int
        Number of bodies drawn by ``OrbitAssembler.draw_many`` when no
        count is given.
        Default: 1000
    DEFAULT_MARKER_SIZE : int
        Marker size for sample scatter plots.
        Default: 4
    DEFAULT_BODY_COLOR : str
        Default color for the central body in plots.
        Default: 'gold'
    DEFAULT_BODY_OPACITY : float
        Default opacity for central body spheres (0.0 to 1.0).
        Default: 0.6
    """

    # Numerical tolerance for equality comparisons
    EQUALITY_RTOL: float = 1e-12
    EQUALITY_ATOL: float = 1e-14

    # Geometry
    DEGENERATE_VECTOR_TOL: float = 1e-8
    ROTATION_ATOL: float = 1e-9

    # Snapping behavior thresholds
    SNAP_TO_CIRCULAR: float = 1e-10
    SNAP_TO_EQUATORIAL: float = 1e-10

    # Kepler's equation
    KEPLER_TOL: float = 1e-12
    KEPLER_MAX_ITER: int = 50

    # Validation behavior
    STRICT_VALIDATION: bool = True

    # Sampling and plotting defaults
    DEFAULT_SAMPLE_SIZE: int = 1000
    DEFAULT_MARKER_SIZE: int = 4
    DEFAULT_BODY_COLOR: str = 'gold'
    DEFAULT_BODY_OPACITY: float = 0.6

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import asterion
        >>> asterion.config.KEPLER_MAX_ITER = 5  # Modify
        >>> asterion.config.reset()  # Back to defaults
        >>> asterion.config.KEPLER_MAX_ITER
        50
        """
        defaults = AsterionConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["AsterionConfig:"]
        lines.append("  Numerical Tolerances:")
        lines.append(f"    EQUALITY_RTOL = {self.EQUALITY_RTOL}")
        lines.append(f"    EQUALITY_ATOL = {self.EQUALITY_ATOL}")
        lines.append("  Geometry:")
        lines.append(f"    DEGENERATE_VECTOR_TOL = {self.DEGENERATE_VECTOR_TOL}")
        lines.append(f"    ROTATION_ATOL = {self.ROTATION_ATOL}")
        lines.append("  Snapping Thresholds:")
        lines.append(f"    SNAP_TO_CIRCULAR = {self.SNAP_TO_CIRCULAR}")
        lines.append(f"    SNAP_TO_EQUATORIAL = {self.SNAP_TO_EQUATORIAL}")
        lines.append("  Kepler Solver:")
        lines.append(f"    KEPLER_TOL = {self.KEPLER_TOL}")
        lines.append(f"    KEPLER_MAX_ITER = {self.KEPLER_MAX_ITER}")
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        lines.append("  Sampling & Plotting:")
        lines.append(f"    DEFAULT_SAMPLE_SIZE = {self.DEFAULT_SAMPLE_SIZE}")
        lines.append(f"    DEFAULT_MARKER_SIZE = {self.DEFAULT_MARKER_SIZE}")
        lines.append(f"    DEFAULT_BODY_COLOR = '{self.DEFAULT_BODY_COLOR}'")
        lines.append(f"    DEFAULT_BODY_OPACITY = {self.DEFAULT_BODY_OPACITY}")
        return "\n".join(lines)


# Global configuration instance
config = AsterionConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import asterion
    >>> with asterion.temp_config(STRICT_VALIDATION=False):
    ...     # Duplicate group names only warn here
    ...     engine.reload(configuration)
    >>> # Original config restored here
    >>> asterion.config.STRICT_VALIDATION
    True

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"AsterionConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)
