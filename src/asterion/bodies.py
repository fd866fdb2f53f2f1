"""
Celestial body records and the body-property table
==================================================

The host simulation owns its planets; Asterion only reads a snapshot of them.
A ``BodyTable`` maps body names to immutable ``CelestialBody`` records and
carries the simulation time the snapshot belongs to. Expressions in a
configuration refer to body properties by short codes (``Kerbin.sma``,
``Jool.lpe``), which ``BodyTable.property_of`` resolves.

Units: distances in metres, speeds in m/s, times in seconds, angles in
degrees. The one exception is ``mean_anomaly_at_epoch``, stored in radians as
host simulations usually keep it.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Optional

import numpy as np

from .errors import UnknownBody, UnknownProperty
from .orbital_elements import OrbitalElements, mean_to_true_anomaly
from .utils import wrap_degrees


# Property codes that are distances, speeds, times or ratios
SIZE_PROPERTIES = frozenset([
    'rad', 'soi', 'sma', 'per', 'apo', 'ecc', 'porb', 'prot', 'psol',
    'vesc', 'vorb', 'vmin', 'vmax',
])
# Property codes that are angles [deg]
ANGLE_PROPERTIES = frozenset(['inc', 'ape', 'lpe', 'lan', 'mna0', 'mnl0'])
ALL_PROPERTIES = SIZE_PROPERTIES | ANGLE_PROPERTIES

# codes a body without an orbit still answers
_INTRINSIC_PROPERTIES = frozenset(['rad', 'soi', 'prot', 'psol', 'vesc'])


@dataclass(frozen=True)
class CelestialBody:
    """
    Immutable snapshot of one celestial body.

    Attributes
    ----------
    name : str
        Unique body name
    mu : float
        Gravitational parameter [m³/s²]
    radius : float
        Mean radius [m]
    sphere_of_influence : float
        Sphere of influence radius [m]; infinite for the root body
    rotation_period : float, optional
        Sidereal rotation period [s]. None for a non-rotating body
    solar_day : float, optional
        Solar day length [s]. None if the body has no solar day
    parent : str, optional
        Name of the body this one orbits. None for the root body, in which
        case all orbital fields are ignored
    semimajor_axis : float
        Orbit semimajor axis [m]
    eccentricity : float
        Orbit eccentricity, 0 <= e < 1
    inclination : float
        Orbit inclination [deg]
    lan : float
        Longitude of ascending node [deg]
    arg_periapsis : float
        Argument of periapsis [deg]
    mean_anomaly_at_epoch : float
        Mean anomaly [rad] at ``epoch``
    epoch : float
        Reference time of ``mean_anomaly_at_epoch`` [s]
    """
    name: str
    mu: float
    radius: float
    sphere_of_influence: float = math.inf
    rotation_period: Optional[float] = None
    solar_day: Optional[float] = None
    parent: Optional[str] = None
    semimajor_axis: float = 0.0
    eccentricity: float = 0.0
    inclination: float = 0.0
    lan: float = 0.0
    arg_periapsis: float = 0.0
    mean_anomaly_at_epoch: float = 0.0
    epoch: float = 0.0

    def __post_init__(self):
        #Validate parameters
        if not self.name:
            raise ValueError("Body name cannot be empty")
        if self.mu <= 0:
            raise ValueError(f"Gravitational parameter must be positive, got {self.mu}")
        if self.radius <= 0:
            raise ValueError(f"Radius must be positive, got {self.radius}")
        if self.sphere_of_influence <= 0:
            raise ValueError(f"Sphere of influence must be positive, "
                             f"got {self.sphere_of_influence}")
        if self.parent is not None:
            if self.parent == self.name:
                raise ValueError(f"Body '{self.name}' cannot orbit itself")
            if self.semimajor_axis <= 0:
                raise ValueError(f"Semimajor axis of '{self.name}' must be positive, "
                                 f"got {self.semimajor_axis}")
            if not 0 <= self.eccentricity < 1:
                raise ValueError(f"Eccentricity of '{self.name}' must be in [0, 1), "
                                 f"got {self.eccentricity}")

    @property
    def has_orbit(self) -> bool:
        return self.parent is not None


class BodyTable(Mapping):
    """
    Read-only table of celestial bodies at one simulation time.

    Parameters
    ----------
    bodies : iterable of CelestialBody
        Bodies in the system. Every ``parent`` must name a body in the table
    ut : float, optional
        Simulation time the snapshot is valid for [s] (default 0)

    Examples
    --------
    >>> table = BodyTable([SUN, KERBIN], ut=0.0)
    >>> table.property_of('Kerbin', 'sma')
    13599840256.0
    """

    def __init__(self, bodies: Iterable[CelestialBody], ut: float = 0.0):
        self._bodies: Dict[str, CelestialBody] = {}
        for body in bodies:
            if body.name in self._bodies:
                raise ValueError(f"Duplicate body name '{body.name}'")
            self._bodies[body.name] = body
        for body in self._bodies.values():
            if body.parent is not None and body.parent not in self._bodies:
                raise ValueError(f"Body '{body.name}' orbits unknown body '{body.parent}'")
        self._ut = float(ut)

    # ========== MAPPING INTERFACE ==========
    def __getitem__(self, name: str) -> CelestialBody:
        try:
            return self._bodies[name]
        except KeyError:
            raise UnknownBody(f"No celestial body named '{name}'") from None

    def __contains__(self, name) -> bool:
        return name in self._bodies

    def get(self, name, default=None):
        return self._bodies.get(name, default)

    def __iter__(self) -> Iterator[str]:
        return iter(self._bodies)

    def __len__(self) -> int:
        return len(self._bodies)

    def __repr__(self):
        return f"BodyTable({list(self._bodies)}, ut={self._ut})"

    @property
    def ut(self) -> float:
        """Simulation time of this snapshot [s]"""
        return self._ut

    def at(self, ut: float) -> "BodyTable":
        """Return the same bodies at a different simulation time."""
        return BodyTable(self._bodies.values(), ut=ut)

    # ========== PROPERTY LOOKUP ==========
    def property_of(self, name: str, code: str) -> float:
        """
        Look up a body property by short code.

        Parameters
        ----------
        name : str
            Body name
        code : str
            One of ``SIZE_PROPERTIES`` or ``ANGLE_PROPERTIES`` (case-insensitive)

        Returns
        -------
        float
            Property value; distances in metres, angles in degrees

        Raises
        ------
        UnknownBody
            If no body has that name
        UnknownProperty
            If the code is not recognized, or the body lacks that property
            (orbital codes on the root body, ``psol`` without a solar day)
        """
        body = self[name]
        code = code.lower()
        if code not in ALL_PROPERTIES:
            raise UnknownProperty(f"Celestial bodies do not have a '{code}' value")

        if code == 'rad':
            return body.radius
        if code == 'soi':
            return body.sphere_of_influence
        if code == 'prot':
            return body.rotation_period if body.rotation_period else math.inf
        if code == 'psol':
            if body.solar_day is None:
                raise UnknownProperty(f"Celestial body '{name}' does not have a solar day")
            return body.solar_day
        if code == 'vesc':
            return math.sqrt(2 * body.mu / body.radius)

        if not body.has_orbit:
            raise UnknownProperty(f"Celestial body '{name}' does not have an orbit "
                                  f"(requested '{code}')")
        a = body.semimajor_axis
        e = body.eccentricity
        if code == 'sma':
            return a
        if code == 'per':
            return a * (1 - e)
        if code == 'apo':
            return a * (1 + e)
        if code == 'ecc':
            return e
        if code == 'inc':
            return body.inclination
        if code == 'ape':
            return body.arg_periapsis
        if code == 'lpe':
            # longitude of periapsis ignores inclination
            return wrap_degrees(body.lan + body.arg_periapsis)
        if code == 'lan':
            return body.lan
        if code == 'mna0':
            return math.degrees(self._mean_anomaly(body, 0.0))
        if code == 'mnl0':
            return anomaly_to_longitude(math.degrees(self._mean_anomaly(body, 0.0)),
                                        body.inclination, body.arg_periapsis, body.lan)
        if code == 'porb':
            return self.orbital_period(name)
        if code == 'vorb':
            return _ellipse_circumference(a, e) / self.orbital_period(name)
        if code == 'vmin':
            return self._vis_viva(body, a * (1 + e))
        # vmax
        return self._vis_viva(body, a * (1 - e))

    # ========== ORBITAL STATE ==========
    def parent_of(self, name: str) -> Optional[CelestialBody]:
        """Return the body ``name`` orbits, or None for the root body."""
        body = self[name]
        return None if body.parent is None else self._bodies[body.parent]

    def orbital_period(self, name: str) -> float:
        """Sidereal orbital period of a body around its parent [s]."""
        body = self[name]
        if not body.has_orbit:
            raise UnknownProperty(f"Celestial body '{name}' does not have an orbit")
        return 2 * math.pi * math.sqrt(body.semimajor_axis**3 / self._bodies[body.parent].mu)

    def state_at(self, name: str, ut: Optional[float] = None) -> OrbitalElements:
        """
        Orbital state of a body relative to its parent.

        Parameters
        ----------
        name : str
            Body name; the body must have an orbit
        ut : float, optional
            Time of the state [s]. Defaults to the table's ``ut``

        Returns
        -------
        OrbitalElements
            Cartesian state in the base frame, with the parent's mu
        """
        body = self[name]
        if not body.has_orbit:
            raise UnknownProperty(f"Celestial body '{name}' does not have an orbit")
        if ut is None:
            ut = self._ut
        M = self._mean_anomaly(body, ut)
        nu = mean_to_true_anomaly(M, body.eccentricity)
        kep = OrbitalElements.keplerian(
            [body.semimajor_axis, body.eccentricity,
             np.radians(body.inclination), np.radians(body.lan),
             np.radians(body.arg_periapsis), nu],
            mu=self._bodies[body.parent].mu)
        return kep.to_cartesian()

    def _mean_anomaly(self, body: CelestialBody, ut: float) -> float:
        n = math.sqrt(self._bodies[body.parent].mu / body.semimajor_axis**3)
        return (body.mean_anomaly_at_epoch + n * (ut - body.epoch)) % (2 * math.pi)

    def _vis_viva(self, body: CelestialBody, r: float) -> float:
        mu = self._bodies[body.parent].mu
        return math.sqrt(mu * (2 / r - 1 / body.semimajor_axis))


def anomaly_to_longitude(anomaly: float, i: float, argp: float, lan: float) -> float:
    """
    Convert an anomaly measured in the orbit plane to a longitude.

    The longitude is the angle between the reference x-axis and the projection
    of the position onto the reference plane. All angles in degrees; the
    result is in [0, 360).
    """
    i = math.radians(i)
    u = math.radians(anomaly + argp)
    # tan(l - lan) = cos(i) tan(u), keeping the quadrant of u
    return wrap_degrees(math.degrees(math.atan2(math.cos(i) * math.sin(u), math.cos(u))) + lan)


def longitude_to_anomaly(longitude: float, i: float, argp: float, lan: float) -> float:
    """
    Inverse of ``anomaly_to_longitude``.

    All angles in degrees; the result is in [0, 360). At i = 90 every
    anomaly projects onto the node line, so the result is only defined up to
    that ambiguity.
    """
    cos_i = math.cos(math.radians(i))
    dl = math.radians(longitude - lan)
    # tan(u) = tan(l - lan) / cos(i), keeping the quadrant when cos(i) < 0
    u = math.atan2(math.copysign(1.0, cos_i) * math.sin(dl), abs(cos_i) * math.cos(dl))
    return wrap_degrees(math.degrees(u) - argp)


def _ellipse_circumference(a: float, e: float, terms: int = 10) -> float:
    """Ellipse circumference by the Gauss-Kummer series."""
    b = a * math.sqrt(1 - e**2)
    h = ((a - b) / (a + b))**2
    correction = 1.0
    for n in range(1, terms):
        coeff = math.comb(2 * n, n) / 4**n / (2 * n - 1)
        correction += coeff**2 * h**n
    return math.pi * (a + b) * correction
