"""
Default Bodies and Configurations
=================================

A stock-like planetary system and example configurations, for tests, demos
and as templates for host configurations.

Factory functions build fresh objects on each call; the module-level body
records are immutable and may be shared.

Examples
--------
>>> from asterion import OrbitAssembler, kerbol_system, example_configuration
>>> engine = OrbitAssembler(example_configuration(), kerbol_system(ut=0.0))
>>> orbit, kind = engine.draw_body()
"""
from .bodies import BodyTable, CelestialBody
from .distributions import DistributionSpec
from .population import (ApproachType, Classification, Configuration, Intercept,
                         OrbitElementSpec, PeriType, PhaseType, POTATOROID, Population,
                         SizeType)
from .reference_plane import ReferencePlaneDef

"""
Predefined bodies of the stock Kerbol system
Values are the game's published planetary data
Units referenced to m (i.e. mu = m^3/s^2), angles in degrees, mean anomaly in rad
"""
SUN = CelestialBody(
    name='Sun',
    mu=1.1723328e18,
    radius=261600000.0,
    rotation_period=432000.0,
)

MOHO = CelestialBody(
    name='Moho',
    mu=1.6860938e11,
    radius=250000.0,
    sphere_of_influence=9646663.0,
    rotation_period=1210000.0,
    parent='Sun',
    semimajor_axis=5263138304.0,
    eccentricity=0.2,
    inclination=7.0,
    lan=70.0,
    arg_periapsis=15.0,
    mean_anomaly_at_epoch=3.14,
)

EVE = CelestialBody(
    name='Eve',
    mu=8.1717302e12,
    radius=700000.0,
    sphere_of_influence=85109365.0,
    rotation_period=80500.0,
    parent='Sun',
    semimajor_axis=9832684544.0,
    eccentricity=0.01,
    inclination=2.1,
    lan=15.0,
    arg_periapsis=0.0,
    mean_anomaly_at_epoch=3.14,
)

KERBIN = CelestialBody(
    name='Kerbin',
    mu=3.5316e12,
    radius=600000.0,
    sphere_of_influence=84159286.0,
    rotation_period=21549.425,
    solar_day=21600.0,
    parent='Sun',
    semimajor_axis=13599840256.0,
    eccentricity=0.0,
    inclination=0.0,
    lan=0.0,
    arg_periapsis=0.0,
    mean_anomaly_at_epoch=3.14,
)

MUN = CelestialBody(
    name='Mun',
    mu=6.5138398e10,
    radius=200000.0,
    sphere_of_influence=2429559.1,
    rotation_period=138984.38,
    parent='Kerbin',
    semimajor_axis=12000000.0,
    eccentricity=0.0,
    inclination=0.0,
    lan=0.0,
    arg_periapsis=0.0,
    mean_anomaly_at_epoch=1.7,
)

MINMUS = CelestialBody(
    name='Minmus',
    mu=1.7658e9,
    radius=60000.0,
    sphere_of_influence=2247428.4,
    rotation_period=40400.0,
    parent='Kerbin',
    semimajor_axis=47000000.0,
    eccentricity=0.0,
    inclination=6.0,
    lan=78.0,
    arg_periapsis=38.0,
    mean_anomaly_at_epoch=0.9,
)

DUNA = CelestialBody(
    name='Duna',
    mu=3.0136321e11,
    radius=320000.0,
    sphere_of_influence=47921949.0,
    rotation_period=65517.859,
    parent='Sun',
    semimajor_axis=20726155264.0,
    eccentricity=0.051,
    inclination=0.06,
    lan=135.5,
    arg_periapsis=0.0,
    mean_anomaly_at_epoch=3.14,
)

DRES = CelestialBody(
    name='Dres',
    mu=2.1484489e10,
    radius=138000.0,
    sphere_of_influence=32832840.0,
    rotation_period=34800.0,
    parent='Sun',
    semimajor_axis=40839348203.0,
    eccentricity=0.145,
    inclination=5.0,
    lan=280.0,
    arg_periapsis=90.0,
    mean_anomaly_at_epoch=3.14,
)

JOOL = CelestialBody(
    name='Jool',
    mu=2.82528e14,
    radius=6000000.0,
    sphere_of_influence=2455985200.0,
    rotation_period=36000.0,
    parent='Sun',
    semimajor_axis=68773560320.0,
    eccentricity=0.05,
    inclination=1.304,
    lan=52.0,
    arg_periapsis=0.0,
    mean_anomaly_at_epoch=0.1,
)

EELOO = CelestialBody(
    name='Eeloo',
    mu=7.4410815e10,
    radius=210000.0,
    sphere_of_influence=119082940.0,
    rotation_period=19460.0,
    parent='Sun',
    semimajor_axis=90118820000.0,
    eccentricity=0.26,
    inclination=6.15,
    lan=50.0,
    arg_periapsis=260.0,
    mean_anomaly_at_epoch=3.14,
)

KERBOL_BODIES = (SUN, MOHO, EVE, KERBIN, MUN, MINMUS, DUNA, DRES, JOOL, EELOO)

"""
Predefined classifications
Densities and experiments as in the stock asteroid part and its variants
"""
CARBONACEOUS = Classification(
    name='CaAsteroidCarbon',
    title='Carbonaceous',
    density=0.023,
    sample_experiment_id='carbonaceousSample',
)

ICY = Classification(
    name='CaAsteroidIcy',
    title='Icy',
    density=0.01,
    sample_experiment_id='icySample',
)

STOCK_SIZES = (('A', 0.12), ('B', 0.13), ('C', 0.5), ('D', 0.13), ('E', 0.12))


def kerbol_system(ut: float = 0.0) -> BodyTable:
    """Stock Kerbol system at simulation time ``ut`` [s]."""
    return BodyTable(KERBOL_BODIES, ut=ut)


def example_configuration() -> Configuration:
    """
    A small configuration exercising every group and element type.

    Groups
    ------
    innerAsteroids : Sun
        Near-Kerbin objects; LogNormal size, Beta eccentricity
    mainBelt : Sun
        Between the 1:4 and 3:7 period resonances with Jool
    joolTrojanLeading : Sun
        60 degrees ahead of Jool, by longitude of periapsis and mean longitude
    retrogradeComets : Sun
        Apoapsis-sized comets in the global retrograde plane
    kerbinFlyby : Kerbin
        Hyperbolic flybys within Kerbin's sphere of influence
    """
    inner = Population(
        name='innerAsteroids',
        title='Near-Kerbin Ast.',
        central_body='Sun',
        spawn_rate=0.1,
        orbit_size=OrbitElementSpec(
            DistributionSpec.log_normal('Ratio(Kerbin.sma, 1.8)', 'Ratio(Kerbin.sma, 0.5)'),
            SizeType.SEMIMAJOR_AXIS),
        eccentricity=DistributionSpec.beta(0.58, 0.15),
        inclination=DistributionSpec.rayleigh(7.5),
        asteroid_types=['0.75 PotatoRoid', '0.25 CaAsteroidCarbon'],
        sizes=STOCK_SIZES,
    )
    main_belt = Population(
        name='mainBelt',
        title='Main Belt Ast.',
        central_body='Sun',
        spawn_rate=0.175,
        orbit_size=DistributionSpec.log_uniform('Resonance(Jool, 1:4)', 'Resonance(Jool, 3:7)'),
        eccentricity=DistributionSpec.rayleigh(0.18),
        inclination=DistributionSpec.rayleigh(7.5),
        asteroid_types={'PotatoRoid': 0.75, 'CaAsteroidCarbon': 0.25},
        sizes=STOCK_SIZES,
    )
    trojans = Population(
        name='joolTrojanLeading',
        title='Trojan Ast.',
        central_body='Sun',
        spawn_rate=0.025,
        orbit_size=DistributionSpec.fixed('Resonance(Jool, 1:1)'),
        eccentricity=DistributionSpec.rayleigh(0.07),
        inclination=DistributionSpec.rayleigh(13.0),
        periapsis=OrbitElementSpec(DistributionSpec.gaussian('Offset(Jool.lpe, 60)', 8.0),
                                   PeriType.LONGITUDE),
        orbit_phase=OrbitElementSpec(DistributionSpec.gaussian('Offset(Jool.mnl0, 60)', 8.0),
                                     PhaseType.MEAN_LONGITUDE),
        asteroid_types=['1.0 CaAsteroidCarbon'],
        sizes=STOCK_SIZES,
    )
    comets = Population(
        name='retrogradeComets',
        title='Comet',
        central_body='Sun',
        spawn_rate=0.016,
        orbit_size=OrbitElementSpec(
            DistributionSpec.uniform('Ratio(Jool.sma, 0.83)', 'Ratio(Jool.sma, 1.25)'),
            SizeType.APOAPSIS),
        eccentricity=DistributionSpec.uniform(0.5, 0.85),
        inclination=DistributionSpec.rayleigh(7.0),
        asteroid_types=['1 CaAsteroidIcy'],
        sizes=['0.5 E', '0.5 F'],
        ref_plane='caGlobalRetrograde',
    )
    flyby = Intercept(
        name='kerbinFlyby',
        title='Incoming Ast.',
        target_body='Kerbin',
        spawn_rate=0.04,
        approach=OrbitElementSpec(DistributionSpec.uniform(0.0, 'Ratio(Kerbin.soi, 1.0)'),
                                  ApproachType.IMPACT_PARAMETER),
        warn_time=DistributionSpec.uniform(12960000.0, 25920000.0),
        v_soi=DistributionSpec.log_normal(300.0, 100.0),
        sizes=STOCK_SIZES,
    )
    return Configuration(
        groups=(inner, main_belt, trojans, comets, flyby),
        reference_planes=(
            ReferencePlaneDef.from_angles('caGlobalRetrograde', 0.0, 180.0, 0.0),
            ReferencePlaneDef.from_angles('joolPlane', 'Offset(Jool.lan, 0)',
                                          'Ratio(Jool.inc, 1)', 0.0),
        ),
        classifications=(POTATOROID, CARBONACEOUS, ICY),
    )
