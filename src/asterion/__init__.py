"""
Asterion: Procedural Orbits for Spawned Bodies

A Python package for drawing the orbits and physical types of newly spawned
small bodies (asteroids, comets, flyby objects) from configurable
statistical populations, relative to the current state of a planetary system.
"""

# Core classes
from .orbital_elements import OrbitalElements, OrbitalElements as OE
from .bodies import BodyTable, CelestialBody
from .expressions import Expression, parse_expression
from .distributions import DistributionSpec, DistType
from .reference_plane import ReferencePlane, ReferencePlaneDef
from .population import (Population, Intercept, Classification, Configuration,
                         OrbitElementSpec, SizeType, PeriType, PhaseType, EpochType,
                         ApproachType)
from .assembler import OrbitAssembler, OrbitResult, ClassificationResult
from .samples import Sample
from .selection import weighted_select

# Errors
from .errors import (AsterionError, ConfigurationError, UnknownBody, UnknownProperty,
                     MalformedExpression, InvalidResonance, InvalidDistributionParameters,
                     InvalidRange, DegenerateReferenceFrame, UnknownReference,
                     SamplingError, NoPopulationsConfigured, NoValidChoice,
                     NegativeWeight, InvalidOrbitShape)

# Stock system and example configuration
from .defaults import SUN, MOHO, EVE, KERBIN, MUN, MINMUS, DUNA, DRES, JOOL, EELOO
from .defaults import kerbol_system, example_configuration

# Configuration
from .config import config, temp_config

# Package metadata
__version__ = "0.1.0"

# Define what gets imported with "from asterion import *"
__all__ = [
    # Classes
    "OrbitalElements",
    "BodyTable",
    "CelestialBody",
    "Expression",
    "DistributionSpec",
    "DistType",
    "ReferencePlane",
    "ReferencePlaneDef",
    "Population",
    "Intercept",
    "Classification",
    "Configuration",
    "OrbitElementSpec",
    "SizeType",
    "PeriType",
    "PhaseType",
    "EpochType",
    "ApproachType",
    "OrbitAssembler",
    "OrbitResult",
    "ClassificationResult",
    "Sample",
    # Functions
    "parse_expression",
    "weighted_select",
    "kerbol_system",
    "example_configuration",
    # Abbreviations
    "OE",
    # Errors
    "AsterionError",
    "ConfigurationError",
    "UnknownBody",
    "UnknownProperty",
    "MalformedExpression",
    "InvalidResonance",
    "InvalidDistributionParameters",
    "InvalidRange",
    "DegenerateReferenceFrame",
    "UnknownReference",
    "SamplingError",
    "NoPopulationsConfigured",
    "NoValidChoice",
    "NegativeWeight",
    "InvalidOrbitShape",
    # Constants
    "SUN",
    "MOHO",
    "EVE",
    "KERBIN",
    "MUN",
    "MINMUS",
    "DUNA",
    "DRES",
    "JOOL",
    "EELOO",
    # Configuration
    "config",
    "temp_config",
]
