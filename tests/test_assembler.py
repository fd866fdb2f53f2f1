"""
Tests for the orbit assembler: group selection, element resolution, orbit
assembly, reference planes, classification and intercept trajectories.
"""

import math
import random
import threading

import pytest
import numpy as np

from asterion import (ApproachType, Classification, Configuration, DistributionSpec,
                      EpochType, InvalidDistributionParameters, InvalidOrbitShape, Intercept,
                      NoPopulationsConfigured, NoValidChoice, OrbitAssembler, OrbitElementSpec, PeriType, PhaseType,
                      Population, ReferencePlaneDef, SizeType, UnknownBody, UnknownReference,
                      example_configuration, kerbol_system, KERBIN)
from asterion.samples import Sample


class FixedSource:
    """Random source that always returns the same value."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def bodies():
    return kerbol_system(ut=0.0)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


def fixed(value):
    return DistributionSpec.fixed(value)


def circle(name='circle', **kwargs):
    """Circular equatorial population of radius 100 m around the Sun."""
    params = dict(name=name, central_body='Sun', spawn_rate=1.0,
                  orbit_size=fixed(100.0), eccentricity=fixed(0.0),
                  inclination=fixed(0.0), orbit_phase=fixed(0.0))
    params.update(kwargs)
    return Population(**params)


def engine_for(*groups, bodies=None, rng=None, **kwargs):
    bodies = bodies if bodies is not None else kerbol_system()
    return OrbitAssembler(Configuration(groups, **kwargs), bodies, rng=rng)


# =============================================================================
# End-to-end
# =============================================================================

class TestEndToEnd:

    @pytest.mark.parametrize("source", [
        np.random.default_rng(0),
        np.random.default_rng(99),
        random.Random(7),
        FixedSource(0.0),
        FixedSource(0.9999999999),
    ])
    def test_exact_circle(self, source):
        engine = engine_for(circle(orbit_size=DistributionSpec.uniform(100.0, 100.0)))
        for _ in range(20):
            orbit, kind = engine.draw_body(rng=source)
            assert orbit.semimajor_axis == 100.0
            assert orbit.eccentricity == 0.0
            assert orbit.inclination == 0.0
            assert orbit.central_body == 'Sun'
            assert orbit.group == 'circle'
            assert kind.name == 'PotatoRoid'

    def test_example_configuration(self, bodies, rng):
        engine = OrbitAssembler(example_configuration(), bodies, rng=rng)
        groups = set()
        for _ in range(300):
            orbit, kind = engine.draw_body()
            groups.add(orbit.group)
            assert np.all(np.isfinite(orbit.position))
            assert orbit.epoch == bodies.ut
        assert {'innerAsteroids', 'mainBelt'} <= groups

    def test_seeded_reproducible(self, bodies):
        first = OrbitAssembler(example_configuration(), bodies, rng=np.random.default_rng(5))
        second = OrbitAssembler(example_configuration(), bodies, rng=np.random.default_rng(5))
        for _ in range(20):
            a, _ = first.draw_body()
            b, _ = second.draw_body()
            assert a.group == b.group
            assert np.array_equal(a.elements.elements, b.elements.elements)


# =============================================================================
# Orbit size and shape
# =============================================================================

class TestOrbitSize:

    def test_periapsis_sizing(self, rng):
        pop = circle(orbit_size=OrbitElementSpec(fixed(100.0), SizeType.PERIAPSIS),
                     eccentricity=fixed(0.5))
        orbit = engine_for(pop).draw_orbit('circle', rng=rng)
        assert orbit.semimajor_axis == 200.0
        assert orbit.periapsis == pytest.approx(100.0)

    def test_apoapsis_sizing(self, rng):
        pop = circle(orbit_size=OrbitElementSpec(fixed(300.0), SizeType.APOAPSIS),
                     eccentricity=fixed(0.5))
        orbit = engine_for(pop).draw_orbit('circle', rng=rng)
        assert orbit.semimajor_axis == 200.0
        assert orbit.apoapsis == pytest.approx(300.0)

    def test_hyperbolic_periapsis_sizing(self, rng):
        pop = circle(orbit_size=OrbitElementSpec(fixed(1e9), SizeType.PERIAPSIS),
                     eccentricity=fixed(1.5), orbit_phase=fixed(10.0))
        orbit = engine_for(pop).draw_orbit('circle', rng=rng)
        assert orbit.semimajor_axis == pytest.approx(-2e9)
        assert orbit.periapsis == pytest.approx(1e9)
        assert orbit.apoapsis == math.inf

    def test_semimajor_axis_with_unbound_draw(self, rng):
        # unbounded family, so the configuration loads and the draw fails
        pop = circle(eccentricity=DistributionSpec.gaussian(1.5, 0.0))
        engine = engine_for(pop)
        with pytest.raises(InvalidOrbitShape) as excinfo:
            engine.draw_orbit('circle', rng=rng)
        assert excinfo.value.source == 'circle'

    def test_parabolic(self, rng):
        pop = circle(orbit_size=OrbitElementSpec(fixed(1e9), SizeType.PERIAPSIS),
                     eccentricity=DistributionSpec.gaussian(1.0, 0.0))
        with pytest.raises(InvalidOrbitShape, match="Parabolic"):
            engine_for(pop).draw_orbit('circle', rng=rng)

    def test_negative_eccentricity(self, rng):
        pop = circle(eccentricity=DistributionSpec.gaussian(-0.2, 0.0))
        with pytest.raises(InvalidOrbitShape, match="negative"):
            engine_for(pop).draw_orbit('circle', rng=rng)

    def test_non_positive_size(self, rng):
        pop = circle(orbit_size=DistributionSpec.gaussian(-5.0, 0.0))
        with pytest.raises(InvalidOrbitShape, match="positive"):
            engine_for(pop).draw_orbit('circle', rng=rng)

    def test_bounded_unbound_eccentricity_rejected_at_load(self, bodies):
        pop = circle(eccentricity=DistributionSpec.uniform(0.0, 1.2))
        with pytest.raises(InvalidDistributionParameters) as excinfo:
            engine_for(pop)
        assert excinfo.value.source == 'circle'


# =============================================================================
# Angles and phase
# =============================================================================

class TestAngles:

    def test_longitude_of_periapsis(self, rng):
        pop = circle(eccentricity=fixed(0.2), ascending_node=fixed(50.0),
                     inclination=fixed(10.0),
                     periapsis=OrbitElementSpec(fixed(80.0), PeriType.LONGITUDE))
        orbit = engine_for(pop).draw_orbit('circle', rng=rng)
        assert orbit.lan == pytest.approx(50.0)
        assert orbit.arg_periapsis == pytest.approx(30.0)

    def test_negative_argument_wrapped(self, rng):
        pop = circle(eccentricity=fixed(0.2), ascending_node=fixed(50.0),
                     periapsis=OrbitElementSpec(fixed(20.0), PeriType.LONGITUDE),
                     inclination=fixed(5.0))
        orbit = engine_for(pop).draw_orbit('circle', rng=rng)
        assert orbit.arg_periapsis == pytest.approx(330.0)

    def test_mean_longitude(self, rng):
        pop = circle(eccentricity=fixed(0.1), ascending_node=fixed(0.0),
                     periapsis=OrbitElementSpec(fixed(30.0), PeriType.LONGITUDE),
                     orbit_phase=OrbitElementSpec(fixed(100.0), PhaseType.MEAN_LONGITUDE))
        orbit = engine_for(pop).draw_orbit('circle', rng=rng)
        assert orbit.mean_anomaly == pytest.approx(math.radians(70.0))

    @pytest.mark.parametrize("i", [30.0, 135.0, 170.0])
    @pytest.mark.parametrize("longitude", [60.0, 200.0])
    def test_mean_longitude_sets_position_longitude(self, i, longitude, rng):
        # circular orbit, so the mean longitude is the longitude of the body
        pop = circle(orbit_size=fixed(1e10), inclination=fixed(i),
                     ascending_node=fixed(0.0), periapsis=fixed(0.0),
                     orbit_phase=OrbitElementSpec(fixed(longitude), PhaseType.MEAN_LONGITUDE,
                                                  EpochType.NOW))
        orbit = engine_for(pop).draw_orbit('circle', rng=rng)
        x, y, _ = orbit.position
        assert math.degrees(math.atan2(y, x)) % 360.0 == pytest.approx(longitude)

    @pytest.mark.parametrize("i, expected_i, node_shift", [
        (200.0, 160.0, 180.0),
        (-20.0, 20.0, 180.0),
        (380.0, 20.0, 0.0),
    ])
    def test_inclination_normalized(self, i, expected_i, node_shift, rng):
        pop = circle(eccentricity=fixed(0.1), inclination=fixed(i),
                     ascending_node=fixed(40.0), periapsis=fixed(10.0))
        orbit = engine_for(pop).draw_orbit('circle', rng=rng)
        assert orbit.inclination == pytest.approx(expected_i)
        assert orbit.lan == pytest.approx((40.0 + node_shift) % 360.0)
        assert orbit.arg_periapsis == pytest.approx((10.0 + node_shift) % 360.0)

    def test_flipped_inclination_same_orbit(self, rng):
        # i and 360 - i with node and argument turned by 180 describe one orbit
        flipped = circle(name='flipped', eccentricity=fixed(0.3), inclination=fixed(200.0),
                         ascending_node=fixed(40.0), periapsis=fixed(10.0),
                         orbit_phase=fixed(45.0))
        plain = circle(name='plain', eccentricity=fixed(0.3), inclination=fixed(160.0),
                       ascending_node=fixed(220.0), periapsis=fixed(190.0),
                       orbit_phase=fixed(45.0))
        engine = engine_for(flipped, plain)
        a = engine.draw_orbit('flipped', rng=rng)
        b = engine.draw_orbit('plain', rng=rng)
        assert np.allclose(a.position, b.position)


class TestEpoch:

    def test_game_start_propagated(self, bodies, rng):
        pop = circle(orbit_size=fixed(1e10), eccentricity=fixed(0.1), orbit_phase=fixed(0.0))
        n = math.sqrt(bodies['Sun'].mu / 1e10**3)
        later = bodies.at(0.25 * 2 * math.pi / n)
        orbit = engine_for(pop, bodies=later).draw_orbit('circle', rng=rng)
        assert orbit.mean_anomaly == pytest.approx(math.pi / 2)
        assert orbit.epoch == later.ut

    def test_now_not_propagated(self, bodies, rng):
        pop = circle(orbit_size=fixed(1e10), eccentricity=fixed(0.1),
                     orbit_phase=OrbitElementSpec(fixed(30.0), PhaseType.MEAN_ANOMALY,
                                                  EpochType.NOW))
        orbit = engine_for(pop, bodies=bodies.at(12345.0)).draw_orbit('circle', rng=rng)
        assert orbit.mean_anomaly == pytest.approx(math.radians(30.0))

    def test_follows_body_updates(self, bodies, rng):
        pop = circle(orbit_size=DistributionSpec.fixed('Ratio(Kerbin.sma, 1)'))
        engine = engine_for(pop, bodies=bodies)
        assert engine.draw_orbit('circle', rng=rng).epoch == 0.0
        engine.update_bodies(bodies.at(500.0))
        orbit = engine.draw_orbit('circle', rng=rng)
        assert orbit.epoch == 500.0
        assert orbit.semimajor_axis == KERBIN.semimajor_axis


# =============================================================================
# Reference planes
# =============================================================================

class TestReferencePlanes:

    def test_retrograde_plane(self, rng):
        planes = [ReferencePlaneDef.from_angles('retro', 0.0, 180.0, 0.0)]
        pop = circle(orbit_size=fixed(1e10), ref_plane='retro')
        orbit = engine_for(pop, reference_planes=planes).draw_orbit('circle', rng=rng)
        assert orbit.inclination == pytest.approx(180.0)
        assert orbit.semimajor_axis == pytest.approx(1e10)

    def test_default_plane(self, rng):
        planes = [ReferencePlaneDef.from_vectors('tilted', [0, 1, 1], [1, 0, 0])]
        engine = engine_for(circle(orbit_size=fixed(1e10)), reference_planes=planes,
                            default_plane='tilted')
        orbit = engine.draw_orbit('circle', rng=rng)
        assert orbit.inclination == pytest.approx(45.0)

    def test_identity_plane_keeps_exact_elements(self, rng):
        planes = [ReferencePlaneDef.from_angles('flat', 0.0, 0.0, 0.0)]
        pop = circle(ref_plane='flat')
        orbit = engine_for(pop, reference_planes=planes).draw_orbit('circle', rng=rng)
        assert orbit.semimajor_axis == 100.0

    def test_resolve_reference_plane(self):
        planes = [ReferencePlaneDef.from_angles('retro', 0.0, 180.0, 0.0)]
        engine = engine_for(circle(), reference_planes=planes)
        assert engine.resolve_reference_plane().is_identity
        plane = engine.resolve_reference_plane('retro')
        assert np.allclose(plane.to_base_frame([0, 0, 1]), [0, 0, -1])
        with pytest.raises(UnknownReference):
            engine.resolve_reference_plane('missing')

    def test_resolve_default_plane(self):
        planes = [ReferencePlaneDef.from_angles('retro', 0.0, 180.0, 0.0)]
        engine = engine_for(circle(), reference_planes=planes, default_plane='retro')
        assert not engine.resolve_reference_plane().is_identity


# =============================================================================
# Group and classification selection
# =============================================================================

class TestSelection:

    def test_no_groups(self, rng):
        engine = engine_for()
        with pytest.raises(NoPopulationsConfigured):
            engine.draw_body(rng=rng)

    def test_all_undetectable(self, rng):
        engine = engine_for(circle(detectable=lambda: False))
        with pytest.raises(NoValidChoice):
            engine.draw_body(rng=rng)

    def test_all_groups_disabled(self, rng):
        engine = engine_for(circle('a', spawn_rate=0.0), circle('b', spawn_rate=0.0))
        assert engine.total_spawn_weight() == 0.0
        with pytest.raises(NoValidChoice):
            engine.draw_body(rng=rng)
        engine.reload(Configuration([circle('a', spawn_rate=1.0)]))
        assert engine.draw_body(rng=rng)[0].group == 'a'

    def test_zero_rate_never_drawn(self, rng):
        engine = engine_for(circle('on'), circle('off', spawn_rate=0.0))
        assert all(engine.draw_body(rng=rng)[0].group == 'on' for _ in range(200))

    def test_spawn_ratio(self, rng):
        engine = engine_for(circle('a', spawn_rate=1.0), circle('b', spawn_rate=3.0))
        fractions = engine.draw_many(4000, rng=rng).group_fractions()
        assert fractions['b'] == pytest.approx(0.75, abs=0.03)

    def test_total_spawn_weight(self):
        visible = [True]
        engine = engine_for(circle('a', spawn_rate=0.5),
                            circle('b', spawn_rate=0.25, detectable=lambda: visible[0]))
        assert engine.total_spawn_weight() == pytest.approx(0.75)
        visible[0] = False
        assert engine.total_spawn_weight() == pytest.approx(0.5)

    def test_classification_sizes_from_group(self, rng):
        engine = engine_for(circle(sizes=['1 E']))
        kind = engine.draw_classification('circle', rng=rng)
        assert kind.size == 'E'
        assert kind.density == 0.03

    def test_classification_sizes_override(self, rng):
        icy = Classification('Icy', title='Icy', density=0.01, sizes=['1 A'])
        engine = engine_for(circle(asteroid_types=['1 Icy'], sizes=['1 E']),
                            classifications=[icy])
        kind = engine.draw_classification('circle', rng=rng)
        assert kind.name == 'Icy'
        assert kind.title == 'Icy'
        assert kind.size == 'A'

    def test_no_sizes(self, rng):
        kind = engine_for(circle()).draw_classification('circle', rng=rng)
        assert kind.size is None

    def test_type_weights(self, rng):
        icy = Classification('Icy')
        engine = engine_for(circle(asteroid_types={'PotatoRoid': 0.0, 'Icy': 1.0}),
                            classifications=[Classification('PotatoRoid'), icy])
        assert all(engine.draw_classification('circle', rng=rng).name == 'Icy'
                   for _ in range(100))

    def test_unknown_group(self, rng):
        with pytest.raises(UnknownReference):
            engine_for(circle()).draw_orbit('nope', rng=rng)


# =============================================================================
# Intercepts
# =============================================================================

class TestIntercept:

    def flyby(self, **kwargs):
        params = dict(name='flyby', target_body='Kerbin', spawn_rate=1.0,
                      approach=OrbitElementSpec(fixed(1e6), ApproachType.PERIAPSIS),
                      warn_time=fixed(1000.0),
                      v_soi=DistributionSpec.log_normal(500.0, 0.0))
        params.update(kwargs)
        return Intercept(**params)

    def test_periapsis_and_passage_time(self, rng):
        orbit = engine_for(self.flyby()).draw_orbit('flyby', rng=rng)
        assert orbit.central_body == 'Kerbin'
        assert orbit.eccentricity > 1
        assert orbit.semimajor_axis == pytest.approx(-KERBIN.mu / 500.0**2)
        assert orbit.periapsis == pytest.approx(1e6)
        # time to periapsis from the hyperbolic mean anomaly
        time_to_peri = -orbit.mean_anomaly / orbit.elements.mean_motion()
        assert time_to_peri == pytest.approx(1000.0)

    def test_already_past_periapsis(self, rng):
        orbit = engine_for(self.flyby(warn_time=fixed(-600.0))).draw_orbit('flyby', rng=rng)
        assert orbit.mean_anomaly > 0
        assert orbit.mean_anomaly / orbit.elements.mean_motion() == pytest.approx(600.0)

    def test_impact_parameter(self, rng):
        b = 5e6
        flyby = self.flyby(approach=OrbitElementSpec(fixed(b), ApproachType.IMPACT_PARAMETER))
        orbit = engine_for(flyby).draw_orbit('flyby', rng=rng)
        a = -KERBIN.mu / 500.0**2
        expected = a * (1 - math.sqrt((b / a)**2 + 1))
        assert orbit.periapsis == pytest.approx(expected)
        # angular momentum matches b * v_infinity
        h = np.linalg.norm(np.cross(orbit.position, orbit.velocity))
        assert h == pytest.approx(b * 500.0, rel=1e-8)

    def test_zero_periapsis(self, rng):
        flyby = self.flyby(approach=OrbitElementSpec(fixed(0.0), ApproachType.PERIAPSIS))
        with pytest.raises(InvalidOrbitShape) as excinfo:
            engine_for(flyby).draw_orbit('flyby', rng=rng)
        assert excinfo.value.source == 'flyby'

    def test_non_positive_speed(self, rng):
        flyby = self.flyby(v_soi=DistributionSpec.gaussian(0.0, 0.0))
        with pytest.raises(InvalidOrbitShape, match="speed"):
            engine_for(flyby).draw_orbit('flyby', rng=rng)

    def test_isotropic_orientation(self, rng):
        engine = engine_for(self.flyby())
        cos_i = [math.cos(math.radians(engine.draw_orbit('flyby', rng=rng).inclination))
                 for _ in range(400)]
        assert min(cos_i) < -0.5 < 0.5 < max(cos_i)

    def test_patched_to_parent(self, bodies, rng):
        # well before closest approach the body is still outside Kerbin's SoI
        flyby = self.flyby(warn_time=fixed(4e5),
                           v_soi=DistributionSpec.log_normal(300.0, 0.0))
        orbit = engine_for(flyby, bodies=bodies).draw_orbit('flyby', rng=rng)
        assert orbit.central_body == 'Sun'
        assert orbit.eccentricity < 1
        kerbin = bodies.state_at('Kerbin')
        separation = np.linalg.norm(orbit.position - kerbin.position)
        assert separation > KERBIN.sphere_of_influence
        assert orbit.epoch == bodies.ut

    def test_unknown_target(self):
        with pytest.raises(UnknownBody):
            engine_for(self.flyby(target_body='Vall'))


# =============================================================================
# Reload and concurrency
# =============================================================================

class TestReload:

    def test_reload_swaps(self, rng):
        engine = engine_for(circle('old'))
        engine.reload(Configuration([circle('new')]))
        assert engine.draw_body(rng=rng)[0].group == 'new'

    def test_invalid_reload_keeps_old(self, rng):
        engine = engine_for(circle('old'))
        with pytest.raises(UnknownBody):
            engine.reload(Configuration([circle('bad', central_body='Vall')]))
        assert engine.draw_body(rng=rng)[0].group == 'old'

    def test_invalid_body_update_keeps_old(self, bodies):
        from asterion import BodyTable, SUN
        engine = engine_for(circle(orbit_size=DistributionSpec.fixed('Ratio(Kerbin.sma, 1)')),
                            bodies=bodies)
        with pytest.raises(UnknownBody):
            engine.update_bodies(BodyTable([SUN]))
        assert engine.bodies is bodies

    def test_concurrent_draws_see_whole_configurations(self):
        # each configuration only knows its own classification, so a draw
        # mixing two configurations would fail the classification lookup
        first = Configuration([circle('a', asteroid_types=['1 TypeA'])],
                              classifications=[Classification('TypeA')])
        second = Configuration([circle('b', asteroid_types=['1 TypeB'])],
                               classifications=[Classification('TypeB')])
        engine = OrbitAssembler(first, kerbol_system(), rng=np.random.default_rng(3))
        errors = []
        results = []

        def worker(shared):
            rng = None if shared else np.random.default_rng()
            try:
                for _ in range(300):
                    orbit, kind = engine.draw_body(rng=rng)
                    results.append((orbit.group, kind.name))
            except Exception as err:
                errors.append(err)

        threads = [threading.Thread(target=worker, args=(i % 2 == 0,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for i in range(50):
            engine.reload(second if i % 2 == 0 else first)
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(results) == 1200
        assert set(results) <= {('a', 'TypeA'), ('b', 'TypeB')}


# =============================================================================
# Batches
# =============================================================================

class TestDrawMany:

    def test_returns_sample(self, rng):
        sample = engine_for(circle()).draw_many(25, rng=rng)
        assert isinstance(sample, Sample)
        assert len(sample) == 25

    def test_default_size(self, rng):
        from asterion import temp_config
        with temp_config(DEFAULT_SAMPLE_SIZE=7):
            assert len(engine_for(circle()).draw_many(rng=rng)) == 7

    def test_negative_size(self, rng):
        with pytest.raises(ValueError):
            engine_for(circle()).draw_many(-1, rng=rng)
