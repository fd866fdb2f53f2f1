"""
Configuration records
=====================

Immutable records describing what can be drawn: populations (statistical
groups of bodies on related orbits), intercepts (groups on a flyby course
with a target body), classifications (physical types), and reference
planes. A ``Configuration`` bundles them and is validated against a
``BodyTable`` before any draw.

The ``from_dict`` factories accept nodes as produced by an external config
loader, using the same keys as the config files (``centralBody``,
``spawnRate``, ``orbitSize``, ``asteroidTypes``, ...).
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from .bodies import BodyTable
from .distributions import DistributionSpec, check, upper_bound
from .errors import (ConfigurationError, InvalidDistributionParameters,
                     UnknownBody, UnknownReference)
from .reference_plane import ReferencePlaneDef
from .selection import parse_proportions
from .utils import validation_error

logger = logging.getLogger(__name__)


# ========== ELEMENT TYPE TAGS ==========
class SizeType(Enum):
    SEMIMAJOR_AXIS = 'SemimajorAxis'
    PERIAPSIS = 'Periapsis'
    APOAPSIS = 'Apoapsis'


class PeriType(Enum):
    ARGUMENT = 'Argument'
    LONGITUDE = 'Longitude'


class PhaseType(Enum):
    MEAN_ANOMALY = 'MeanAnomaly'
    MEAN_LONGITUDE = 'MeanLongitude'


class EpochType(Enum):
    GAME_START = 'GameStart'
    NOW = 'Now'


class ApproachType(Enum):
    IMPACT_PARAMETER = 'ImpactParameter'
    PERIAPSIS = 'Periapsis'


def _parse_enum(enum_cls, value, source=None):
    """Convert string or enum member to ``enum_cls``, case-insensitively"""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        type_map = {member.value.lower(): member for member in enum_cls}
        type_map.update({member.name.lower(): member for member in enum_cls})
        key = value.strip().lower()
        if key in type_map:
            return type_map[key]
    raise ConfigurationError(f"Unknown {enum_cls.__name__} '{value}'. "
                             f"Use: {[member.value for member in enum_cls]}", source=source)


WeightsLike = Union[Mapping[str, float], Iterable[Any], str, None]


def _weights(entries: WeightsLike, source: str, what: str) -> Tuple[Tuple[str, float], ...]:
    weights = parse_proportions(entries)
    for label, weight in weights:
        if not (weight >= 0 and math.isfinite(weight)):
            raise ConfigurationError(f"{what} weight of '{label}' must be a non-negative "
                                     f"number (gave {weight})", source=source)
    return weights


# ========== ORBITAL ELEMENTS ==========
@dataclass(frozen=True)
class OrbitElementSpec:
    """
    One orbital element: a distribution plus how to interpret the value.

    Attributes
    ----------
    distribution : DistributionSpec
        Where the value is drawn from
    kind : SizeType, PeriType, PhaseType or ApproachType, optional
        Meaning of the value; None for elements with one parametrization
        (eccentricity, inclination, ascending node)
    epoch : EpochType, optional
        Reference time of a phase value
    """
    distribution: DistributionSpec
    kind: Optional[Enum] = None
    epoch: Optional[EpochType] = None

    @classmethod
    def from_dict(cls, node: Mapping[str, Any], kind_type=None, default_kind=None,
                  name: Optional[str] = None) -> "OrbitElementSpec":
        """
        Build from a config node with distribution keys plus optional
        ``type`` (for sized, periapsis, phase and approach elements) and
        ``epoch`` (phase only).
        """
        distribution = DistributionSpec.from_dict(node, name=name)
        kind = None
        if kind_type is not None:
            kind = _parse_enum(kind_type, node.get('type', default_kind), source=name)
        epoch = None
        if kind_type is PhaseType:
            epoch = _parse_enum(EpochType, node.get('epoch', EpochType.GAME_START), source=name)
        return cls(distribution, kind, epoch)

    def named(self, name: str) -> "OrbitElementSpec":
        """Attach ``name`` to the distribution unless it already has one."""
        if self.distribution.name is not None:
            return self
        return OrbitElementSpec(self.distribution.with_name(name), self.kind, self.epoch)


def _element(value, kind_type, default_kind, name) -> Optional[OrbitElementSpec]:
    """Normalise an optional element given as spec, distribution or node."""
    if value is None:
        return None
    if isinstance(value, OrbitElementSpec):
        spec = value.named(name)
    elif isinstance(value, DistributionSpec):
        spec = OrbitElementSpec(value, default_kind).named(name)
    elif isinstance(value, Mapping):
        return OrbitElementSpec.from_dict(value, kind_type, default_kind, name)
    else:
        raise ConfigurationError(f"Cannot interpret {type(value).__name__} as an orbital element",
                                 source=name)
    if kind_type is None:
        if spec.kind is not None:
            raise ConfigurationError(f"Element takes no type, got {spec.kind}", source=name)
        return spec
    kind = _parse_enum(kind_type, spec.kind if spec.kind is not None else default_kind,
                       source=name)
    epoch = spec.epoch
    if kind_type is PhaseType and epoch is None:
        epoch = EpochType.GAME_START
    return OrbitElementSpec(spec.distribution, kind, epoch)


# ========== GROUPS ==========
@dataclass(frozen=True)
class Population:
    """
    A statistically homogeneous group of bodies orbiting ``central_body``.

    Parameters
    ----------
    name : str
        Unique group name
    central_body : str
        Body the orbits are drawn around
    spawn_rate : float
        Relative frequency of this group, >= 0
    orbit_size : OrbitElementSpec, DistributionSpec or mapping
        Orbit size and its ``SizeType`` (default SemimajorAxis). Required
    eccentricity, inclination, ascending_node : optional
        Element distributions; inclination and node in degrees
    periapsis : optional
        Periapsis position [deg] and its ``PeriType`` (default Argument)
    orbit_phase : optional
        Mean anomaly or mean longitude [deg] with its ``PhaseType`` and
        ``EpochType`` (default MeanAnomaly at GameStart)
    title : str, optional
        Display title, defaults to ``name``
    asteroid_types : weights, optional
        Classification names with weights (default ``1.0 PotatoRoid``)
    sizes : weights, optional
        Size category labels with weights, used when the chosen
        classification has no sizes of its own
    detectable : callable, optional
        Zero-argument predicate; the group does not spawn while it is false
    ref_plane : str, optional
        Name of the reference plane the elements are given in

    Notes
    -----
    Absent elements default to a circular (e = 0), equatorial (i = 0) orbit
    with periapsis, ascending node and mean anomaly uniform in [0, 360).
    """
    name: str
    central_body: str
    spawn_rate: float
    orbit_size: OrbitElementSpec
    eccentricity: Optional[OrbitElementSpec] = None
    inclination: Optional[OrbitElementSpec] = None
    periapsis: Optional[OrbitElementSpec] = None
    ascending_node: Optional[OrbitElementSpec] = None
    orbit_phase: Optional[OrbitElementSpec] = None
    title: Optional[str] = None
    asteroid_types: Tuple[Tuple[str, float], ...] = (('PotatoRoid', 1.0),)
    sizes: Tuple[Tuple[str, float], ...] = ()
    detectable: Optional[Callable[[], bool]] = field(default=None, compare=False)
    ref_plane: Optional[str] = None

    def __post_init__(self):
        _check_group_header(self.name, self.spawn_rate, self.detectable)
        if self.title is None:
            object.__setattr__(self, 'title', self.name)
        if not self.central_body:
            raise ConfigurationError("Population needs a central body", source=self.name)
        if self.orbit_size is None:
            raise ConfigurationError("Population needs an orbit size", source=self.name)

        defaults = {
            'eccentricity': DistributionSpec.fixed(0.0),
            'inclination': DistributionSpec.fixed(0.0),
            'periapsis': DistributionSpec.uniform(0.0, 360.0),
            'ascending_node': DistributionSpec.uniform(0.0, 360.0),
            'orbit_phase': DistributionSpec.uniform(0.0, 360.0),
        }
        elements = {
            'orbit_size': (SizeType, SizeType.SEMIMAJOR_AXIS),
            'eccentricity': (None, None),
            'inclination': (None, None),
            'periapsis': (PeriType, PeriType.ARGUMENT),
            'ascending_node': (None, None),
            'orbit_phase': (PhaseType, PhaseType.MEAN_ANOMALY),
        }
        for slot, (kind_type, default_kind) in elements.items():
            value = getattr(self, slot)
            if value is None:
                value = defaults[slot]
            object.__setattr__(self, slot,
                               _element(value, kind_type, default_kind, f"{self.name}.{slot}"))

        object.__setattr__(self, 'asteroid_types',
                           _weights(self.asteroid_types, self.name, 'Asteroid type'))
        object.__setattr__(self, 'sizes', _weights(self.sizes, self.name, 'Size'))

    @classmethod
    def from_dict(cls, node: Mapping[str, Any]) -> "Population":
        """Build from an ``ASTEROIDGROUP`` config node."""
        return cls(
            name=node.get('name'),
            central_body=node.get('centralBody'),
            spawn_rate=float(node.get('spawnRate', 0.0)),
            orbit_size=node.get('orbitSize'),
            eccentricity=node.get('eccentricity'),
            inclination=node.get('inclination'),
            periapsis=node.get('periapsis'),
            ascending_node=node.get('ascNode'),
            orbit_phase=node.get('orbitPhase'),
            title=node.get('title'),
            asteroid_types=node.get('asteroidTypes', (('PotatoRoid', 1.0),)),
            sizes=node.get('sizes', ()),
            detectable=node.get('detectable'),
            ref_plane=node.get('refPlane'),
        )

    def spawn_weight(self) -> float:
        """Spawn rate, or 0 while the detectability predicate is false."""
        return _spawn_weight(self.spawn_rate, self.detectable)

    def validate(self, bodies: BodyTable) -> None:
        """
        Check every expression and distribution against ``bodies``.

        Raises
        ------
        ConfigurationError
            The first problem found
        """
        if self.central_body not in bodies:
            raise UnknownBody(f"No celestial body named '{self.central_body}'", source=self.name)
        for slot in ('orbit_size', 'eccentricity', 'inclination', 'periapsis',
                     'ascending_node', 'orbit_phase'):
            check(getattr(self, slot).distribution, bodies)
        if self.orbit_size.kind != SizeType.PERIAPSIS:
            e_max = upper_bound(self.eccentricity.distribution, bodies)
            if math.isfinite(e_max) and e_max > 1:
                raise InvalidDistributionParameters(
                    f"Eccentricity may reach {e_max}, but unbound orbits need "
                    f"Periapsis sizing (got {self.orbit_size.kind.value})", source=self.name)


@dataclass(frozen=True)
class Intercept:
    """
    A group of bodies on a flyby course with ``target_body``.

    Orbits are hyperbolas around the target, drawn from the closest
    approach, the time left until it, and the speed on entering the
    target's sphere of influence. Orientation is isotropic.

    Parameters
    ----------
    name : str
        Unique group name
    target_body : str
        Body to pass near
    spawn_rate : float
        Relative frequency of this group, >= 0
    approach : OrbitElementSpec, DistributionSpec or mapping, optional
        Closest approach [m] with its ``ApproachType`` (default Periapsis,
        Uniform on [0, 1])
    warn_time : DistributionSpec or mapping, optional
        Time from now until closest approach [s]; may be negative
    v_soi : DistributionSpec or mapping, optional
        Speed relative to the target at SoI entry [m/s]
        (default LogNormal, avg 300, stddev 100)
    """
    name: str
    target_body: str
    spawn_rate: float
    approach: Optional[OrbitElementSpec] = None
    warn_time: Optional[DistributionSpec] = None
    v_soi: Optional[DistributionSpec] = None
    title: Optional[str] = None
    asteroid_types: Tuple[Tuple[str, float], ...] = (('PotatoRoid', 1.0),)
    sizes: Tuple[Tuple[str, float], ...] = ()
    detectable: Optional[Callable[[], bool]] = field(default=None, compare=False)

    def __post_init__(self):
        _check_group_header(self.name, self.spawn_rate, self.detectable)
        if self.title is None:
            object.__setattr__(self, 'title', self.name)
        if not self.target_body:
            raise ConfigurationError("Intercept needs a target body", source=self.name)
        approach = self.approach
        if approach is None:
            approach = OrbitElementSpec(DistributionSpec.uniform(0.0, 1.0), ApproachType.PERIAPSIS)
        object.__setattr__(self, 'approach', _element(approach, ApproachType,
                                                      ApproachType.PERIAPSIS,
                                                      f"{self.name}.approach"))
        for slot, default in (('warn_time', DistributionSpec.uniform(0.0, 1.0)),
                              ('v_soi', DistributionSpec.log_normal(300.0, 100.0))):
            value = getattr(self, slot)
            if value is None:
                value = default
            elif isinstance(value, Mapping):
                value = DistributionSpec.from_dict(value)
            elif not isinstance(value, DistributionSpec):
                raise ConfigurationError(f"Cannot interpret {type(value).__name__} as a "
                                         f"distribution", source=f"{self.name}.{slot}")
            if value.name is None:
                value = value.with_name(f"{self.name}.{slot}")
            object.__setattr__(self, slot, value)
        object.__setattr__(self, 'asteroid_types',
                           _weights(self.asteroid_types, self.name, 'Asteroid type'))
        object.__setattr__(self, 'sizes', _weights(self.sizes, self.name, 'Size'))

    @classmethod
    def from_dict(cls, node: Mapping[str, Any]) -> "Intercept":
        """Build from an ``INTERCEPT`` config node."""
        return cls(
            name=node.get('name'),
            target_body=node.get('targetBody'),
            spawn_rate=float(node.get('spawnRate', 0.0)),
            approach=node.get('approach'),
            warn_time=node.get('warnTime'),
            v_soi=node.get('vSoi'),
            title=node.get('title'),
            asteroid_types=node.get('asteroidTypes', (('PotatoRoid', 1.0),)),
            sizes=node.get('sizes', ()),
            detectable=node.get('detectable'),
        )

    @property
    def ref_plane(self) -> Optional[str]:
        # intercept orientations are isotropic, a plane would not change them
        return None

    def spawn_weight(self) -> float:
        """Spawn rate, or 0 while the detectability predicate is false."""
        return _spawn_weight(self.spawn_rate, self.detectable)

    def validate(self, bodies: BodyTable) -> None:
        """Check the target body and every distribution against ``bodies``."""
        if self.target_body not in bodies:
            raise UnknownBody(f"No celestial body named '{self.target_body}'", source=self.name)
        check(self.approach.distribution, bodies)
        check(self.warn_time, bodies)
        check(self.v_soi, bodies)


Group = Union[Population, Intercept]


def _check_group_header(name, spawn_rate, detectable):
    if not name:
        raise ConfigurationError("Group needs a name")
    if not (spawn_rate >= 0 and math.isfinite(spawn_rate)):
        raise ConfigurationError(f"Spawn rate must be a non-negative number (gave {spawn_rate})",
                                 source=name)
    if detectable is not None and not callable(detectable):
        raise ConfigurationError("Detectability condition must be callable", source=name)


def _spawn_weight(spawn_rate, detectable) -> float:
    if detectable is not None and not detectable():
        return 0.0
    return spawn_rate


# ========== CLASSIFICATION ==========
@dataclass(frozen=True)
class Classification:
    """
    Physical type of a drawn body.

    Attributes
    ----------
    name : str
        Unique name, referenced by a group's ``asteroid_types``
    title : str
        Display name of the composition
    density : float
        Density [t/m³ in host units], > 0
    sample_experiment_id : str
        Science experiment for surface samples
    sample_experiment_xmit_scalar : float
        Transmission value of that experiment, in [0, 1]
    sizes : weights, optional
        Size category labels with weights; overrides the group's sizes
    """
    name: str
    title: str = 'Stony'
    density: float = 0.03
    sample_experiment_id: str = 'asteroidSample'
    sample_experiment_xmit_scalar: float = 0.3
    sizes: Tuple[Tuple[str, float], ...] = ()

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Classification needs a name")
        if not self.density > 0:
            raise ConfigurationError(f"Density must be positive, got {self.density}",
                                     source=self.name)
        if not 0 <= self.sample_experiment_xmit_scalar <= 1:
            raise ConfigurationError(f"Transmission scalar must be in [0, 1], "
                                     f"got {self.sample_experiment_xmit_scalar}",
                                     source=self.name)
        object.__setattr__(self, 'sizes', _weights(self.sizes, self.name, 'Size'))

    @classmethod
    def from_dict(cls, node: Mapping[str, Any]) -> "Classification":
        """Build from an ``ASTEROID_CLASS`` config node."""
        return cls(
            name=node.get('name'),
            title=node.get('title', 'Stony'),
            density=float(node.get('density', 0.03)),
            sample_experiment_id=node.get('sampleExperimentId', 'asteroidSample'),
            sample_experiment_xmit_scalar=float(node.get('sampleExperimentXmitScalar', 0.3)),
            sizes=node.get('sizes', ()),
        )


# stock asteroid, the type every group draws unless told otherwise
POTATOROID = Classification('PotatoRoid')


# ========== CONFIGURATION ==========
@dataclass(frozen=True)
class Configuration:
    """
    Everything the engine draws from, loaded once and never mutated.

    Parameters
    ----------
    groups : sequence of Population or Intercept
        Spawnable groups, in configuration order
    reference_planes : sequence of ReferencePlaneDef, optional
    classifications : sequence of Classification, optional
        Defaults to the stock ``PotatoRoid`` class
    default_plane : str, optional
        Plane used by groups that do not name one

    Raises
    ------
    ConfigurationError
        For duplicate plane or classification names
    UnknownReference
        If a group or ``default_plane`` names a missing plane, or a group
        lists a missing classification

    Notes
    -----
    Duplicate group names go through ``validation_error`` and only warn
    when ``config.STRICT_VALIDATION`` is False.
    """
    groups: Tuple[Group, ...] = ()
    reference_planes: Tuple[ReferencePlaneDef, ...] = ()
    classifications: Tuple[Classification, ...] = (POTATOROID,)
    default_plane: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'groups', tuple(self.groups))
        object.__setattr__(self, 'reference_planes', tuple(self.reference_planes))
        object.__setattr__(self, 'classifications', tuple(self.classifications))

        seen = set()
        for group in self.groups:
            if not isinstance(group, (Population, Intercept)):
                raise ConfigurationError(f"Not a group: {group!r}")
            if group.name in seen:
                validation_error(f"[{group.name}] Duplicate group name; "
                                 f"only the first definition is reachable by name",
                                 ConfigurationError)
            seen.add(group.name)

        planes = self._index(self.reference_planes, 'reference plane')
        classes = self._index(self.classifications, 'classification')
        if self.default_plane is not None and self.default_plane not in planes:
            raise UnknownReference(f"No reference plane named '{self.default_plane}'")
        for group in self.groups:
            if group.ref_plane is not None and group.ref_plane not in planes:
                raise UnknownReference(f"No reference plane named '{group.ref_plane}'",
                                       source=group.name)
            for label, _ in group.asteroid_types:
                if label not in classes:
                    raise UnknownReference(f"No classification named '{label}'",
                                           source=group.name)

    @staticmethod
    def _index(records, what) -> Dict[str, Any]:
        index = {}
        for record in records:
            if record.name in index:
                raise ConfigurationError(f"Duplicate {what} name '{record.name}'")
            index[record.name] = record
        return index

    @classmethod
    def from_dict(cls, node: Mapping[str, Any]) -> "Configuration":
        """
        Build from a loader node with ``ASTEROIDGROUP``, ``INTERCEPT``,
        ``REFPLANE``, ``REFVECTORS`` and ``ASTEROID_CLASS`` lists and an
        optional ``defaultRef``. Groups keep their order within each list,
        populations first.
        """
        groups = [Population.from_dict(n) for n in node.get('ASTEROIDGROUP', ())]
        groups += [Intercept.from_dict(n) for n in node.get('INTERCEPT', ())]
        planes = [ReferencePlaneDef.from_dict(n) for n in node.get('REFPLANE', ())]
        planes += [ReferencePlaneDef.from_dict(n) for n in node.get('REFVECTORS', ())]
        if 'ASTEROID_CLASS' in node:
            classes = tuple(Classification.from_dict(n) for n in node['ASTEROID_CLASS'])
        else:
            classes = (POTATOROID,)
        return cls(groups, planes, classes, node.get('defaultRef'))

    # ========== LOOKUP ==========
    def group(self, name: str) -> Group:
        for group in self.groups:
            if group.name == name:
                return group
        raise UnknownReference(f"No group named '{name}'")

    def plane(self, name: str) -> ReferencePlaneDef:
        for plane in self.reference_planes:
            if plane.name == name:
                return plane
        raise UnknownReference(f"No reference plane named '{name}'")

    def classification(self, name: str) -> Classification:
        for record in self.classifications:
            if record.name == name:
                return record
        raise UnknownReference(f"No classification named '{name}'")

    def validate(self, bodies: BodyTable) -> None:
        """
        Check every group and reference plane against ``bodies``.

        Raises
        ------
        ConfigurationError
            The first problem found
        """
        for group in self.groups:
            group.validate(bodies)
        for plane in self.reference_planes:
            plane.build(bodies)
        if self.groups and all(group.spawn_rate == 0 for group in self.groups):
            # disabled groups are legal; draws fail with NoValidChoice until one is enabled
            logger.warning("Every group has a spawn rate of zero; nothing will be drawn")
