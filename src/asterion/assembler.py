'''Orbit assembler
OrbitAssembler class definition: turns a configuration and a body table
into finished orbits and classifications for newly spawned bodies'''

import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .bodies import BodyTable, longitude_to_anomaly
from .config import config
from .distributions import DistributionSpec, sample
from .errors import AsterionError, InvalidOrbitShape, NoPopulationsConfigured
from .orbital_elements import OrbitalElements, OEType, mean_to_true_anomaly, true_to_mean_anomaly
from .population import (ApproachType, Classification, Configuration, EpochType, Group,
                         Intercept, PeriType, PhaseType, Population, SizeType)
from .reference_plane import ReferencePlane
from .samples import Sample
from .selection import weighted_select
from .utils import wrap_degrees

logger = logging.getLogger(__name__)

# flyby orientation is isotropic
_FLYBY_INCLINATION = DistributionSpec.isotropic(name='flyby.inclination')
_FLYBY_ANGLE = DistributionSpec.uniform(0.0, 360.0, name='flyby.angle')


# ========== RESULTS ==========
@dataclass(frozen=True)
class OrbitResult:
    """
    A drawn orbit, in the base frame, at the body table's time.

    Attributes
    ----------
    group : str
        Name of the group that produced the orbit
    title : str
        Display title of that group
    central_body : str
        Body the orbit is around (for intercepts, possibly a parent of the
        target if the body starts outside the target's sphere of influence)
    elements : OrbitalElements
        Keplerian elements [m, rad] with the central body's mu
    epoch : float
        Time the elements are valid for [s]
    """
    group: str
    title: str
    central_body: str
    elements: OrbitalElements
    epoch: float

    @property
    def semimajor_axis(self) -> float:
        """Semimajor axis [m], negative for unbound orbits"""
        return self.elements.a

    @property
    def eccentricity(self) -> float:
        return self.elements.e

    @property
    def inclination(self) -> float:
        """Inclination [deg]"""
        return math.degrees(self.elements.i)

    @property
    def lan(self) -> float:
        """Longitude of ascending node [deg]"""
        return math.degrees(self.elements.raan)

    @property
    def arg_periapsis(self) -> float:
        """Argument of periapsis [deg]"""
        return math.degrees(self.elements.argp)

    @property
    def mean_anomaly(self) -> float:
        """Mean anomaly at ``epoch`` [rad]"""
        return self.elements.mean_anomaly

    @property
    def periapsis(self) -> float:
        return self.elements.periapsis

    @property
    def apoapsis(self) -> float:
        return self.elements.apoapsis

    @property
    def position(self) -> np.ndarray:
        return self.elements.position

    @property
    def velocity(self) -> np.ndarray:
        return self.elements.velocity

    def to_dict(self) -> dict:
        """Flat record of the orbit (angles in degrees)"""
        r = self.position
        v = self.velocity
        return {
            'group': self.group,
            'central_body': self.central_body,
            'epoch': self.epoch,
            'a': self.semimajor_axis,
            'e': self.eccentricity,
            'i': self.inclination,
            'lan': self.lan,
            'argp': self.arg_periapsis,
            'mean_anomaly': math.degrees(self.mean_anomaly),
            'periapsis': self.periapsis,
            'apoapsis': self.apoapsis,
            'x': r[0], 'y': r[1], 'z': r[2],
            'vx': v[0], 'vy': v[1], 'vz': v[2],
        }


@dataclass(frozen=True)
class ClassificationResult:
    """Physical type and size category drawn for a body."""
    group: str
    classification: Classification
    size: Optional[str] = None

    @property
    def name(self) -> str:
        return self.classification.name

    @property
    def title(self) -> str:
        return self.classification.title

    @property
    def density(self) -> float:
        return self.classification.density

    @property
    def sample_experiment_id(self) -> str:
        return self.classification.sample_experiment_id

    @property
    def sample_experiment_xmit_scalar(self) -> float:
        return self.classification.sample_experiment_xmit_scalar

    def to_dict(self) -> dict:
        return {
            'classification': self.name,
            'composition': self.title,
            'density': self.density,
            'size': self.size,
        }


# ========== ASSEMBLER ==========
class OrbitAssembler:
    """
    Draws orbits and classifications for newly spawned bodies.

    Parameters
    ----------
    configuration : Configuration
        Groups, reference planes and classifications to draw from
    bodies : BodyTable
        Current body snapshot; its ``ut`` is "now" for every draw
    rng : object with ``random()``, optional
        Shared uniform [0, 1) source. Defaults to
        ``numpy.random.default_rng()``

    Raises
    ------
    ConfigurationError
        If the configuration does not validate against ``bodies``

    Notes
    -----
    Draws that use the shared generator are serialized behind a lock. Draws
    with a caller-supplied generator only read the current configuration and
    body table, which ``reload`` and ``update_bodies`` replace as a unit.

    Examples
    --------
    >>> engine = OrbitAssembler(example_configuration(), kerbol_system(), rng=np.random.default_rng(1))
    >>> orbit, kind = engine.draw_body()
    >>> orbit.group, kind.name
    """

    def __init__(self, configuration: Configuration, bodies: BodyTable, rng=None):
        self._lock = threading.Lock()
        self._reload_lock = threading.Lock()
        self._rng = rng if rng is not None else np.random.default_rng()
        configuration.validate(bodies)
        self._state: Tuple[Configuration, BodyTable] = (configuration, bodies)
        logger.info("Loaded %d groups, %d reference planes, %d classifications",
                    len(configuration.groups), len(configuration.reference_planes),
                    len(configuration.classifications))

    # ========== STATE ==========
    @property
    def configuration(self) -> Configuration:
        return self._state[0]

    @property
    def bodies(self) -> BodyTable:
        return self._state[1]

    def reload(self, configuration: Configuration) -> None:
        """
        Replace the configuration.

        The new configuration is validated against the current body table
        first; if that fails the old configuration stays in place. No draw
        ever sees a mix of old and new.
        """
        with self._reload_lock:
            bodies = self._state[1]
            configuration.validate(bodies)
            with self._lock:
                self._state = (configuration, bodies)
        logger.info("Reloaded configuration: %d groups", len(configuration.groups))

    def update_bodies(self, bodies: BodyTable) -> None:
        """Replace the body table (e.g. as simulation time advances)."""
        with self._reload_lock:
            configuration = self._state[0]
            configuration.validate(bodies)
            with self._lock:
                self._state = (configuration, bodies)
        logger.debug("Body table updated to ut=%s", bodies.ut)

    @contextmanager
    def _session(self, rng):
        """Yield (configuration, bodies, rng) for one draw."""
        if rng is None:
            with self._lock:
                configuration, bodies = self._state
                yield configuration, bodies, self._rng
        else:
            configuration, bodies = self._state
            yield configuration, bodies, rng

    # ========== PUBLIC DRAWS ==========
    def draw_body(self, rng=None) -> Tuple[OrbitResult, ClassificationResult]:
        """
        Draw one new body: pick a group by spawn weight, then draw its orbit
        and classification.

        Parameters
        ----------
        rng : object with ``random()``, optional
            Generator for this draw only; the shared one is used otherwise

        Returns
        -------
        (OrbitResult, ClassificationResult)

        Raises
        ------
        NoPopulationsConfigured
            If the configuration has no groups
        NoValidChoice
            If every group has zero spawn weight
        SamplingError, ConfigurationError
            If the chosen group cannot produce an orbit; nothing is returned
        """
        with self._session(rng) as (configuration, bodies, rng):
            group = self._select_group(configuration, rng)
            orbit = self._draw_orbit(group, configuration, bodies, rng)
            kind = self._draw_classification(group, configuration, rng)
        return orbit, kind

    def draw_orbit(self, group_name: str, rng=None) -> OrbitResult:
        """Draw an orbit from a named group."""
        with self._session(rng) as (configuration, bodies, rng):
            group = configuration.group(group_name)
            return self._draw_orbit(group, configuration, bodies, rng)

    def draw_classification(self, group_name: str, rng=None) -> ClassificationResult:
        """Draw a classification from a named group."""
        with self._session(rng) as (configuration, _, rng):
            group = configuration.group(group_name)
            return self._draw_classification(group, configuration, rng)

    def draw_many(self, n: Optional[int] = None, rng=None) -> Sample:
        """
        Draw ``n`` bodies (default ``config.DEFAULT_SAMPLE_SIZE``).

        Returns
        -------
        Sample
        """
        if n is None:
            n = config.DEFAULT_SAMPLE_SIZE
        if n < 0:
            raise ValueError(f"Sample size cannot be negative, got {n}")
        return Sample([self.draw_body(rng) for _ in range(n)])

    def total_spawn_weight(self) -> float:
        """Sum of the current spawn weights of all groups."""
        configuration = self._state[0]
        return sum(group.spawn_weight() for group in configuration.groups)

    def resolve_reference_plane(self, name: Optional[str] = None) -> ReferencePlane:
        """
        Resolve a named reference plane against the current body table.

        ``None`` gives the configuration's default plane, or the base frame
        if there is none.

        Raises
        ------
        UnknownReference
            If no plane has that name
        """
        configuration, bodies = self._state
        if name is None:
            name = configuration.default_plane
            if name is None:
                return ReferencePlane.identity()
        return configuration.plane(name).build(bodies)

    # ========== SELECTION ==========
    @staticmethod
    def _select_group(configuration: Configuration, rng) -> Group:
        if not configuration.groups:
            raise NoPopulationsConfigured("No groups are configured")
        weights = [(group, group.spawn_weight()) for group in configuration.groups]
        return weighted_select(weights, rng, source='groups')

    @staticmethod
    def _draw_classification(group: Group, configuration: Configuration,
                             rng) -> ClassificationResult:
        label = weighted_select(group.asteroid_types, rng, source=group.name)
        classification = configuration.classification(label)
        sizes = classification.sizes or group.sizes
        size = weighted_select(sizes, rng, source=group.name) if sizes else None
        return ClassificationResult(group.name, classification, size)

    # ========== ORBITS ==========
    def _draw_orbit(self, group: Group, configuration: Configuration,
                    bodies: BodyTable, rng) -> OrbitResult:
        with _attributed(group.name):
            if isinstance(group, Intercept):
                central, elements = _draw_flyby(group, bodies, rng)
            else:
                central, elements = _draw_population(group, configuration, bodies, rng)
        result = OrbitResult(group.name, group.title, central, elements, bodies.ut)
        logger.debug("Drew orbit from %s around %s: a=%.6g m, e=%.6g, i=%.4g deg, "
                     "lan=%.4g deg, argp=%.4g deg, M=%.4g rad at ut=%s",
                     group.name, central, result.semimajor_axis, result.eccentricity,
                     result.inclination, result.lan, result.arg_periapsis,
                     result.mean_anomaly, bodies.ut)
        return result


@contextmanager
def _attributed(source: str):
    """Attach ``source`` to errors raised without one."""
    try:
        yield
    except AsterionError as err:
        if err.source is not None:
            raise
        raise type(err)(str(err), source=source) from err


def _draw_population(pop: Population, configuration: Configuration, bodies: BodyTable, rng):
    """Draw the six elements of a population and assemble them at ``bodies.ut``."""
    mu = bodies[pop.central_body].mu

    # elements with one parametrization
    e = sample(pop.eccentricity.distribution, rng, bodies)
    if not e >= 0:
        raise InvalidOrbitShape(f"Cannot have negative eccentricity (drew {e})")
    i = sample(pop.inclination.distribution, rng, bodies)
    lan = sample(pop.ascending_node.distribution, rng, bodies)

    # position of periapsis
    peri = sample(pop.periapsis.distribution, rng, bodies)
    if pop.periapsis.kind == PeriType.LONGITUDE:
        argp = peri - lan
    else:
        argp = peri

    # orbit size
    size = sample(pop.orbit_size.distribution, rng, bodies)
    a = _semimajor_axis(pop.orbit_size.kind, size, e)

    # mean anomaly at the phase epoch
    phase = sample(pop.orbit_phase.distribution, rng, bodies)
    if pop.orbit_phase.kind == PhaseType.MEAN_LONGITUDE:
        phase = longitude_to_anomaly(phase, i, argp, lan)
    M_epoch = math.radians(phase)
    epoch = bodies.ut if pop.orbit_phase.epoch == EpochType.NOW else 0.0

    i, lan, argp = _normalize_angles(i, lan, argp)
    M = _propagate_mean_anomaly(M_epoch, a, e, mu, bodies.ut - epoch)
    elements = _elements(a, e, math.radians(i), math.radians(lan), math.radians(argp),
                         mean_to_true_anomaly(M, e), mu)

    plane_name = pop.ref_plane or configuration.default_plane
    if plane_name is not None:
        plane = configuration.plane(plane_name).build(bodies)
        if not plane.is_identity:
            elements = elements.rotated(plane.matrix)
    return pop.central_body, elements


def _semimajor_axis(size_type: SizeType, size: float, e: float) -> float:
    if e == 1:
        raise InvalidOrbitShape("Parabolic orbits (e = 1) cannot be represented")
    if size_type == SizeType.PERIAPSIS:
        if not size > 0:
            raise InvalidOrbitShape(f"Periapsis must be positive (drew {size})")
        # negative for unbound orbits
        return size / (1 - e)
    if e > 1:
        raise InvalidOrbitShape(f"{size_type.value} sizing needs a bound orbit, "
                                f"drew eccentricity {e}")
    if not size > 0:
        raise InvalidOrbitShape(f"{size_type.value} must be positive (drew {size})")
    if size_type == SizeType.APOAPSIS:
        return size / (1 + e)
    return size


def _normalize_angles(i: float, lan: float, argp: float):
    """Map angles [deg] to i in [0, 180], lan and argp in [0, 360)."""
    i = wrap_degrees(i)
    if i > 180:
        # Rx(-i) == Rz(180) Rx(i) Rz(180)
        i = 360 - i
        lan += 180
        argp += 180
    return i, wrap_degrees(lan), wrap_degrees(argp)


def _propagate_mean_anomaly(M: float, a: float, e: float, mu: float, dt: float) -> float:
    n = math.sqrt(mu / abs(a)**3)
    M = M + n * dt
    if e < 1:
        M = M % (2 * math.pi)
    return M


def _elements(a, e, i, lan, argp, nu, mu) -> OrbitalElements:
    """Validated Keplerian elements; failures become InvalidOrbitShape."""
    try:
        return OrbitalElements([a, e, i, lan, argp, nu], OEType.KEPLERIAN, mu=mu)
    except ValueError as err:
        raise InvalidOrbitShape(f"Drawn elements do not form an orbit: {err}") from err


# ========== INTERCEPTS ==========
def _draw_flyby(group: Intercept, bodies: BodyTable, rng):
    """
    Draw a hyperbolic flyby of the target, then move it to the parent
    body's frame for as long as it is outside the current sphere of
    influence at ``bodies.ut``.
    """
    target = bodies[group.target_body]
    mu = target.mu

    v_soi = sample(group.v_soi, rng, bodies)
    if not v_soi > 0:
        raise InvalidOrbitShape(f"SoI entry speed must be positive (drew {v_soi})")
    # negative warn time means closest approach already happened
    warn_time = sample(group.warn_time, rng, bodies)

    a = -mu / v_soi**2
    distance = sample(group.approach.distribution, rng, bodies)
    if not distance >= 0:
        raise InvalidOrbitShape(f"Approach distance cannot be negative (drew {distance})")
    if group.approach.kind == ApproachType.IMPACT_PARAMETER:
        x = distance / a
        peri = a * (1 - math.sqrt(x * x + 1))
    else:
        peri = distance
    e = 1 - peri / a

    i = math.radians(sample(_FLYBY_INCLINATION, rng, bodies))
    lan = math.radians(sample(_FLYBY_ANGLE, rng, bodies))
    argp = math.radians(sample(_FLYBY_ANGLE, rng, bodies))

    t_peri = bodies.ut + warn_time
    elements = _elements(a, e, i, lan, argp, 0.0, mu)
    central = target.name
    epoch = t_peri

    parent = bodies.parent_of(central)
    while parent is not None:
        leg = _soi_leg(elements, epoch, bodies[central].sphere_of_influence)
        if leg is None or leg[0] <= bodies.ut <= leg[1]:
            break
        t_cross = leg[0] if bodies.ut < leg[0] else leg[1]
        logger.debug("Patching %s from %s to %s at ut=%s",
                     group.name, central, parent.name, t_cross)
        local = _at_time(elements, epoch, t_cross).to_cartesian()
        frame = bodies.state_at(central, t_cross)
        state = np.concatenate([local.position + frame.position,
                                local.velocity + frame.velocity])
        cart = OrbitalElements.cartesian(state, mu=parent.mu)
        kep = cart.to_keplerian()
        if kep.e == 1:
            raise InvalidOrbitShape("Patched orbit is parabolic")
        elements = kep
        central = parent.name
        epoch = t_cross
        parent = bodies.parent_of(central)

    final = _at_time(elements, epoch, bodies.ut)
    return central, _elements(*final.elements, final.mu)


def _at_time(elements: OrbitalElements, epoch: float, t: float) -> OrbitalElements:
    """Keplerian elements with the true anomaly moved from ``epoch`` to ``t``."""
    a, e, i, lan, argp, nu = elements.to_keplerian().elements
    M = _propagate_mean_anomaly(true_to_mean_anomaly(nu, e), a, e, elements.mu, t - epoch)
    return OrbitalElements.keplerian([a, e, i, lan, argp, mean_to_true_anomaly(M, e)],
                                     mu=elements.mu)


def _soi_leg(elements: OrbitalElements, epoch: float,
             soi: float) -> Optional[Tuple[float, float]]:
    """
    Entry and exit times of the pass through a sphere of influence that
    contains ``epoch``.

    Returns None if the orbit never leaves the sphere.
    """
    if not math.isfinite(soi):
        return None
    a, e = elements.a, elements.e
    n = elements.mean_motion()
    M = true_to_mean_anomaly(elements.nu, e)
    if e < 1:
        if a * (1 + e) <= soi:
            return None
        # measure from the nearest periapsis passage
        if M > math.pi:
            M -= 2 * math.pi
        # r = a(1 - e cos E)
        E = math.acos(max(-1.0, min(1.0, (1 - soi / a) / e)))
        M_soi = E - e * math.sin(E)
    else:
        # r = a(1 - e cosh H), a < 0
        H = math.acosh(max(1.0, (1 - soi / a) / e))
        M_soi = e * math.sinh(H) - H
    t_peri = epoch - M / n
    return t_peri - M_soi / n, t_peri + M_soi / n
