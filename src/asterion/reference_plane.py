"""
Reference planes
================

A reference plane is a fixed rotation from a named local frame into the
simulation's base frame. Populations draw their elements relative to a
reference plane, then the assembled state is rotated into the base frame.

Two ways to define one:

- three angles (ascending node, inclination, argument of reference), with
  the same composition as an orbit's perifocal frame:
  R = Rz(lan) @ Rx(inc) @ Rz(arg)
- a normal vector and a reference direction in the base frame
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

import numpy as np

from .bodies import BodyTable
from .config import config
from .errors import DegenerateReferenceFrame, MalformedExpression
from .expressions import Expression, ExpressionLike, parse_expression, resolve
from .orbital_elements import perifocal_to_inertial

logger = logging.getLogger(__name__)


class ReferencePlane:
    """
    Immutable rotation from a local frame into the base frame.

    Parameters
    ----------
    name : str
        Plane name
    matrix : array-like, shape (3, 3)
        Rotation matrix; columns are the local axes expressed in the base frame

    Raises
    ------
    DegenerateReferenceFrame
        If ``matrix`` is not a proper rotation (orthonormal, determinant +1)
    """

    def __init__(self, name: str, matrix):
        self._name = name
        matrix = np.array(matrix, dtype=float)
        if matrix.shape != (3, 3) or not np.all(np.isfinite(matrix)):
            raise DegenerateReferenceFrame("Reference plane needs a finite 3x3 matrix",
                                           source=name)
        atol = config.ROTATION_ATOL
        if not np.allclose(matrix @ matrix.T, np.eye(3), atol=atol):
            raise DegenerateReferenceFrame("Reference plane matrix is not orthonormal",
                                           source=name)
        if not math.isclose(np.linalg.det(matrix), 1.0, abs_tol=atol):
            raise DegenerateReferenceFrame("Reference plane matrix is a reflection",
                                           source=name)
        matrix.flags.writeable = False
        self._matrix = matrix

    # ========== CONSTRUCTORS ==========
    @classmethod
    def identity(cls, name: str = 'default') -> "ReferencePlane":
        """The base frame itself."""
        return cls(name, np.eye(3))

    @classmethod
    def from_angles(cls, name: str, lan: float, inclination: float,
                    arg_reference: float) -> "ReferencePlane":
        """
        Build a plane from three angles [deg].

        The rotation is applied argument first, then inclination, then
        ascending node, as for an orbit's perifocal frame.

        Parameters
        ----------
        name : str
            Plane name
        lan : float
            Longitude of the plane's ascending node on the base plane [deg]
        inclination : float
            Tilt of the plane relative to the base plane [deg]
        arg_reference : float
            Angle from the ascending node to the plane's reference
            direction [deg]
        """
        matrix = perifocal_to_inertial(math.radians(lan), math.radians(inclination),
                                       math.radians(arg_reference))
        return cls(name, matrix)

    @classmethod
    def from_vectors(cls, name: str, normal, reference) -> "ReferencePlane":
        """
        Build a plane from its normal and a reference direction.

        The local z axis maps to ``normal``; the local x axis maps to the
        component of ``reference`` perpendicular to ``normal``.

        Parameters
        ----------
        name : str
            Plane name
        normal : array-like, shape (3,)
            Plane normal in the base frame; need not be a unit vector
        reference : array-like, shape (3,)
            Reference direction in the base frame; need not lie in the plane

        Raises
        ------
        DegenerateReferenceFrame
            If ``normal`` or the in-plane part of ``reference`` is shorter than
            ``config.DEGENERATE_VECTOR_TOL``
        """
        normal = np.asarray(normal, dtype=float)
        reference = np.asarray(reference, dtype=float)
        if normal.shape != (3,) or reference.shape != (3,):
            raise DegenerateReferenceFrame("Normal and reference must be 3-vectors", source=name)
        tol = config.DEGENERATE_VECTOR_TOL
        n_mag = np.linalg.norm(normal)
        if not n_mag >= tol:
            raise DegenerateReferenceFrame("Normal vector is zero", source=name)
        n_hat = normal / n_mag
        # only the component in the plane is useful
        in_plane = reference - np.dot(reference, n_hat) * n_hat
        r_mag = np.linalg.norm(in_plane)
        if not r_mag >= tol:
            raise DegenerateReferenceFrame(
                "Reference vector is zero or parallel to the normal", source=name)
        r_hat = in_plane / r_mag

        pole = _align(np.array([0.0, 0.0, 1.0]), n_hat)
        # twist about the normal so the base x axis lands on the reference
        x_rot = pole @ np.array([1.0, 0.0, 0.0])
        theta = math.atan2(np.dot(np.cross(x_rot, r_hat), n_hat), np.dot(x_rot, r_hat))
        return cls(name, _axis_angle(n_hat, theta) @ pole)

    # ========== TRANSFORMS ==========
    def to_base_frame(self, vector) -> np.ndarray:
        """
        Rotate vectors from this plane's frame into the base frame.

        Parameters
        ----------
        vector : array-like, shape (3,) or (n, 3)

        Returns
        -------
        np.ndarray
            Same shape as the input
        """
        return np.asarray(vector, dtype=float) @ self._matrix.T

    def to_local_frame(self, vector) -> np.ndarray:
        """Inverse of ``to_base_frame``."""
        return np.asarray(vector, dtype=float) @ self._matrix

    @property
    def name(self) -> str:
        return self._name

    @property
    def matrix(self) -> np.ndarray:
        """Read-only 3x3 rotation matrix"""
        return self._matrix

    @property
    def is_identity(self) -> bool:
        return np.array_equal(self._matrix, np.eye(3))

    def __eq__(self, other):
        if not isinstance(other, ReferencePlane):
            return False
        return np.allclose(self._matrix, other._matrix,
                           rtol=config.EQUALITY_RTOL, atol=config.EQUALITY_ATOL)

    __hash__ = None

    def __repr__(self):
        return f"ReferencePlane({self._name!r}, {self._matrix.tolist()})"


def _axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    """Rotation by ``angle`` [rad] about unit vector ``axis`` (Rodrigues)."""
    K = np.array([
        [0.0,      -axis[2],  axis[1]],
        [axis[2],   0.0,     -axis[0]],
        [-axis[1],  axis[0],  0.0    ]
    ])
    return np.eye(3) + math.sin(angle) * K + (1 - math.cos(angle)) * (K @ K)


def _align(source: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Shortest-arc rotation taking unit vector ``source`` to unit vector ``target``."""
    axis = np.cross(source, target)
    s = np.linalg.norm(axis)
    c = np.dot(source, target)
    if s < config.DEGENERATE_VECTOR_TOL:
        if c > 0:
            return np.eye(3)
        # antiparallel: half turn about any axis perpendicular to source
        perp = np.cross(source, [1.0, 0.0, 0.0])
        if np.linalg.norm(perp) < 0.5:
            perp = np.cross(source, [0.0, 1.0, 0.0])
        return _axis_angle(perp / np.linalg.norm(perp), math.pi)
    return _axis_angle(axis / s, math.atan2(s, c))


@dataclass(frozen=True)
class ReferencePlaneDef:
    """
    Configured reference plane, resolved into a ``ReferencePlane`` on demand.

    Exactly one of the two forms is given:

    - ``lan``, ``inclination``, ``arg_reference``: Expressions [deg]
    - ``normal``, ``reference``: 3-vectors in the base frame

    Angle expressions may refer to bodies (``Offset(Jool.lan, 0)``), so the
    plane can follow the body table.
    """
    name: str
    lan: Optional[Expression] = None
    inclination: Optional[Expression] = None
    arg_reference: Optional[Expression] = None
    normal: Optional[Tuple[float, float, float]] = None
    reference: Optional[Tuple[float, float, float]] = None

    def __post_init__(self):
        if not self.name:
            raise MalformedExpression("Reference plane needs a name")
        angles = (self.lan, self.inclination, self.arg_reference)
        vectors = (self.normal, self.reference)
        has_angles = any(a is not None for a in angles)
        has_vectors = any(v is not None for v in vectors)
        if has_angles == has_vectors:
            raise MalformedExpression(
                "Reference plane needs either three angles or a normal and reference vector",
                source=self.name)
        if has_angles:
            for slot in ('lan', 'inclination', 'arg_reference'):
                value = getattr(self, slot)
                object.__setattr__(self, slot,
                                   parse_expression(0.0 if value is None else value))
        else:
            if self.normal is None or self.reference is None:
                raise MalformedExpression("Reference plane needs both a normal and a reference",
                                          source=self.name)
            object.__setattr__(self, 'normal', _parse_vector(self.normal, self.name))
            object.__setattr__(self, 'reference', _parse_vector(self.reference, self.name))
            # vector planes do not depend on the body table, check now
            ReferencePlane.from_vectors(self.name, self.normal, self.reference)

    @classmethod
    def from_angles(cls, name: str, lan: ExpressionLike = 0.0, inclination: ExpressionLike = 0.0,
                    arg_reference: ExpressionLike = 0.0) -> "ReferencePlaneDef":
        return cls(name, lan=lan, inclination=inclination, arg_reference=arg_reference)

    @classmethod
    def from_vectors(cls, name: str, normal, reference) -> "ReferencePlaneDef":
        return cls(name, normal=normal, reference=reference)

    @classmethod
    def from_dict(cls, node: Mapping[str, Any]) -> "ReferencePlaneDef":
        """
        Build from a configuration node.

        Angle form keys: ``name``, ``longAscNode``, ``inclination``,
        ``argReference``. Vector form keys: ``name``, ``normVector``,
        ``refVector`` (sequences or whitespace/comma separated strings).
        """
        name = node.get('name')
        if 'normVector' in node or 'refVector' in node:
            return cls(name, normal=node.get('normVector'), reference=node.get('refVector'))
        return cls(name, lan=node.get('longAscNode', 0.0),
                   inclination=node.get('inclination', 0.0),
                   arg_reference=node.get('argReference', 0.0))

    @property
    def uses_angles(self) -> bool:
        return self.lan is not None

    def build(self, bodies: BodyTable) -> ReferencePlane:
        """Resolve the definition against the current body table."""
        if self.uses_angles:
            plane = ReferencePlane.from_angles(self.name, resolve(self.lan, bodies),
                                               resolve(self.inclination, bodies),
                                               resolve(self.arg_reference, bodies))
        else:
            plane = ReferencePlane.from_vectors(self.name, self.normal, self.reference)
        logger.debug("Resolved reference plane %s", self.name)
        return plane


def _parse_vector(value, name) -> Tuple[float, float, float]:
    if isinstance(value, str):
        value = value.replace(',', ' ').split()
    try:
        vector = tuple(float(x) for x in value)
    except (TypeError, ValueError):
        raise MalformedExpression(f"Cannot parse {value!r} as a 3-vector", source=name) from None
    if len(vector) != 3:
        raise MalformedExpression(f"Expected 3 components, got {len(vector)}", source=name)
    return vector
