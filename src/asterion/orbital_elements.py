'''Orbital state handling for drawn bodies
OrbitalElements class definition and Kepler's equation'''

import math
import numpy as np
from enum import Enum
from .config import config
from .utils import wrap_radians


# define an enumerated list of element types
class OEType(Enum):
    CARTESIAN = 'cart'      # [x;y;z;vx;vy;vz]
    KEPLERIAN = 'kep'       # [a;e;i;Omega;w;nu]


# ========== KEPLER'S EQUATION ==========
def mean_to_true_anomaly(M: float, e: float) -> float:
    """
    Solve Kepler's equation and return the true anomaly.

    Parameters
    ----------
    M : float
        Mean anomaly [rad]. Not restricted to one revolution for
        hyperbolic orbits.
    e : float
        Eccentricity, must not be 1 (parabolic orbits have no mean anomaly
        in this parametrization)

    Returns
    -------
    float
        True anomaly [rad]; in [0, 2pi) for elliptic orbits and in
        (-pi, pi) for hyperbolic orbits

    Raises
    ------
    ValueError
        If the orbit is parabolic or the iteration does not converge
    """
    if e < 0:
        raise ValueError(f"Eccentricity cannot be negative, got {e}")
    if e < 1:
        M = math.fmod(M, 2 * math.pi)
        # starting guess from Vallado, Algorithm 2
        E = math.pi if e > 0.8 else M
        for _ in range(config.KEPLER_MAX_ITER):
            dE = (E - e*math.sin(E) - M) / (1 - e*math.cos(E))
            E -= dE
            if abs(dE) < config.KEPLER_TOL:
                break
        else:
            raise ValueError(f"Kepler's equation did not converge (M={M}, e={e})")
        nu = 2*math.atan2(math.sqrt(1 + e)*math.sin(E/2),
                          math.sqrt(1 - e)*math.cos(E/2))
        return wrap_radians(nu)
    elif e > 1:
        H = math.asinh(M / e)
        for _ in range(config.KEPLER_MAX_ITER):
            dH = (e*math.sinh(H) - H - M) / (e*math.cosh(H) - 1)
            H -= dH
            if abs(dH) < config.KEPLER_TOL * max(1.0, abs(H)):
                break
        else:
            raise ValueError(f"Hyperbolic Kepler equation did not converge (M={M}, e={e})")
        return 2*math.atan(math.sqrt((e + 1)/(e - 1)) * math.tanh(H/2))
    raise ValueError("Mean anomaly undefined for parabolic orbits")


def true_to_mean_anomaly(nu: float, e: float) -> float:
    """
    Convert true anomaly [rad] to mean anomaly [rad].

    Elliptic results lie in [0, 2pi); hyperbolic results carry the sign of nu.
    """
    if e < 1:
        E = 2*math.atan2(math.sqrt(1 - e)*math.sin(nu/2),
                         math.sqrt(1 + e)*math.cos(nu/2))
        return wrap_radians(E - e*math.sin(E))
    elif e > 1:
        H = 2*math.atanh(math.sqrt((e - 1)/(e + 1)) * math.tan(nu/2))
        return e*math.sinh(H) - H
    raise ValueError("Mean anomaly undefined for parabolic orbits")


#define basic orbital element class
class OrbitalElements:
    """
    Represents orbital elements as a set of six phase space invariants
    Angles are in radians, distances in metres, mu in m^3/s^2
    Cartesian representations are relative to the central body, in whatever
    frame the caller supplies (normally the simulation's base frame)
    OrbitalElements is immutable, extract elements using numpy methods and create a
    new instance to change
    """

    # ========== CONSTRUCTION ==========
    def __init__(self, elements=None, element_type=None, validate=True,
                 mu=None, **kwargs):
        """
        Create orbital elements.

        Can be called in two ways:

        1. Array-based:
        OrbitalElements([1.36e10, 0.1, 0.05, 0, 0, 0], 'kep', mu=1.1723328e18)

        2. Named parameters:
        OrbitalElements(a=1.36e10, e=0.1, i=0.05, omega=0, w=0, nu=0, mu=1.1723328e18)
        OrbitalElements(x=1.36e10, y=0, z=0, vx=0, vy=9285, vz=0, mu=1.1723328e18)

        Parameters
        ----------
        elements : array-like, optional
            6-element array of orbital elements
        element_type : OEType or str, optional
            Type of elements ('cart', 'kep') - required if using elements array
        validate : bool, optional
            Whether to validate elements (default True)
        mu : float
            Gravitational parameter of the central body [m^3/s^2]
        **kwargs : dict
            Named parameters for appropriate orbital element set
            Keplerian (a, e, i, omega, w, nu)
            Cartesian (x, y, z, vx, vy, vz)
        """
        if mu is None:
            raise ValueError("Gravitational parameter mu is required")
        if mu <= 0:
            raise ValueError(f"Gravitational parameter must be positive, got {mu}")
        self._mu = float(mu)

        # Determine construction method
        if elements is not None:
            # Array-based construction
            self.elements = np.array(elements, dtype=float)
            self.element_type = self._parse_element_type(element_type)

        elif kwargs:
            # Named parameter construction - auto-detect type
            self.elements, self.element_type = self._from_named_params(kwargs)

        else:
            raise ValueError(
                "Must provide either:\n"
                "  - elements array and element_type, or named parameters: \n"
                "  - (a, e, i, omega, w, nu) for Keplerian, or\n"
                "  - (x, y, z, vx, vy, vz) for Cartesian"
            )
        # Ensure immutability of elements array
        self.elements.flags.writeable = False
        # run validation checks on input parameters (if not flagged otherwise)
        if validate:
            self._validate()

    # define alternate constructors to bypass validation and automatically input type
    @classmethod
    def cartesian(cls, elements, mu):
        """
        Create Cartesian orbital elements without validation (for automated processes)

        Args:
            elements: 6-element array [x, y, z, vx, vy, vz]
            mu: Gravitational parameter

        Returns:
            OrbitalElements instance
        """
        return cls(elements, OEType.CARTESIAN, validate=False, mu=mu)

    @classmethod
    def keplerian(cls, elements, mu):
        """
        Create Keplerian orbital elements without validation (for automated processes)

        Args:
            elements: 6-element array [a, e, i, Ω, ω, ν]
            mu: Gravitational parameter

        Returns:
            OrbitalElements instance
        """
        return cls(elements, OEType.KEPLERIAN, validate=False, mu=mu)

    # ========== VALIDATION ==========
    def _validate(self):
        """Check if elements conform to their claimed type
        If validation fails inappropriately, set validate=False for constructor
        """
        # check some properties common to all element sets
        if len(self.elements) != 6:
            raise ValueError("Orbital elements must be 6-element vector")
        if not np.all(np.isfinite(self.elements)):
            raise ValueError("Elements contain NaN or Inf")

        if self.element_type == OEType.KEPLERIAN:
            self._validate_keplerian()
        elif self.element_type == OEType.CARTESIAN:
            self._validate_cartesian()

    def _validate_keplerian(self):
        a, e, i, omega, w, nu = self.elements
        if e < 0:
            raise ValueError(f"Eccentricity cannot be negative, got {e}")
        if e == 1:
            raise ValueError("Parabolic orbits (e=1) cannot be represented by a, e")
        # Validate a-e combination for physical consistency
        if e < 1 and a <= 0:
            raise ValueError(f"Elliptic orbit (e={e}) "
                             f"requires positive semi-major axis, got a={a}")
        if e > 1 and a >= 0:
            raise ValueError(f"Hyperbolic orbit (e={e}) "
                             f"requires negative semi-major axis, got a={a}")
        if i > np.pi or i < 0:
            raise ValueError("Inclination out of range")
        # check range for Euler angles
        if omega < -np.pi or omega > 2*np.pi:
            raise ValueError("RAAN out of range")
        if w < -np.pi or w > 2*np.pi:
            raise ValueError("Arg of Periapsis out of range")
        if nu < -np.pi or nu > 2*np.pi:
            raise ValueError("True Anomaly out of range")
        if e > 1 and abs(nu) >= np.arccos(-1/e):
            raise ValueError(f"True anomaly {nu} beyond hyperbolic asymptote")

    def _validate_cartesian(self):
        if np.linalg.norm(self.elements[:3]) == 0:
            raise ValueError("Position vector cannot be zero")

    # ========== ELEMENT TYPE CONVERSIONS ==========
    def convert_to(self, target_type):
        """
        Convert orbital elements to a different representation.

        Parameters:
        -----------
        target_type : OEType or str
            The desired orbital element type to convert to
            Can be OEType enum or string ('cart', 'kep')

        Returns:
        --------
        OrbitalElements
            New OrbitalElements object with elements in target type
        """
        # Convert string to enum if necessary
        target_type = self._parse_element_type(target_type)

        if target_type == self.element_type:
            # No conversion needed, return copy
            return self.copy()

        if self.element_type == OEType.KEPLERIAN and target_type == OEType.CARTESIAN:
            converted_elements = self._keplerian_to_cartesian()
        elif self.element_type == OEType.CARTESIAN and target_type == OEType.KEPLERIAN:
            converted_elements = self._cartesian_to_keplerian()
        else:
            raise ValueError(f"Conversion from {self.element_type.value} "
                             f"to {target_type.value} not implemented")

        return OrbitalElements(converted_elements, target_type,
                               validate=False, mu=self._mu)

    def _keplerian_to_cartesian(self):
        """Convert Keplerian elements to Cartesian state vector."""
        a, e, i, omega, w, nu = self.elements
        # find semi-latus rectum (positive for both ellipses and hyperbolas)
        p = a*(1 - e**2)
        # find position in perifocal frame
        r_mag = p / (1 + e*np.cos(nu))
        rvec = np.array([r_mag*np.cos(nu), r_mag*np.sin(nu), 0])
        # find velocity in perifocal frame
        vvec = np.array([-np.sqrt(self._mu/p) * np.sin(nu),
                         np.sqrt(self._mu/p) * (e + np.cos(nu)), 0])
        DCM = perifocal_to_inertial(omega, i, w)
        R = DCM @ rvec
        V = DCM @ vvec
        return np.concatenate([R, V])

    def _cartesian_to_keplerian(self):
        """Convert Cartesian state vector to Keplerian elements.
        Uses algorithm from Flores & Fantino, Advances in Space Research, v.75,pp.4910
        """
        # Extract position and velocity
        rvec = self.elements[:3]
        vvec = self.elements[3:]
        r_mag = np.linalg.norm(rvec)
        # calculate angular momentum vector h = r × v
        hvec = np.cross(rvec, vvec)
        h_mag = np.linalg.norm(hvec)
        if h_mag == 0:
            raise ValueError("Rectilinear motion has no orbital plane")
        # calculate inclination
        i = np.arctan2(np.sqrt(hvec[0]**2 + hvec[1]**2), hvec[2])
        # find longitude of ascending node, undefined for equatorial orbits
        equatorial = (i < config.SNAP_TO_EQUATORIAL
                      or np.pi - i < config.SNAP_TO_EQUATORIAL)
        omega = 0.0 if equatorial else np.arctan2(hvec[0], -hvec[1])
        # define line of nodes vector
        nhat = np.array([np.cos(omega), np.sin(omega), 0])
        # define an intermediate vector b in the orbit plane
        bhat = np.cross(hvec/h_mag, nhat)
        # find semimajor axis from energy equation
        a = ((2/r_mag) - (np.dot(vvec, vvec)/self._mu))**(-1)
        # find eccentricity vector
        evec = np.cross(vvec, hvec)/self._mu - rvec/r_mag
        e = np.linalg.norm(evec)
        # argument of periapsis is undefined for circular orbits
        if e < config.SNAP_TO_CIRCULAR:
            e = 0.0
            w = 0.0
        else:
            w = np.arctan2(np.dot(evec, bhat), np.dot(evec, nhat))
        nu = np.arctan2(np.dot(rvec, bhat), np.dot(rvec, nhat)) - w
        omega = omega % (2*np.pi)
        w = w % (2*np.pi)
        if e < 1:
            nu = nu % (2*np.pi)
        else:
            nu = (nu + np.pi) % (2*np.pi) - np.pi
        return np.array([a, e, i, omega, w, nu])

    # conversion shortcuts for convenience
    def to_cartesian(self):
        """Shortcut for convert_to('cart')"""
        return self.convert_to(OEType.CARTESIAN)

    def to_keplerian(self):
        """Shortcut for convert_to('kep')"""
        return self.convert_to(OEType.KEPLERIAN)

    def rotated(self, matrix):
        """
        Apply a rotation to the state and return elements of the same type.

        Parameters
        ----------
        matrix : np.ndarray
            3x3 rotation taking vectors from the current frame to the new one

        Returns
        -------
        OrbitalElements
            Elements describing the same motion in the rotated frame
        """
        cart = self.to_cartesian().elements
        rotated = np.concatenate([matrix @ cart[:3], matrix @ cart[3:]])
        new = OrbitalElements.cartesian(rotated, mu=self._mu)
        return new.convert_to(self.element_type)

    # ========== PROPERTY ACCESS ==========
    @property
    def mu(self):
        """Gravitational parameter [m³/s²]"""
        return self._mu

    @property
    def a(self):
        """Semi-major axis (negative for hyperbolic orbits)"""
        return self._kep[0]

    @property
    def e(self):
        """Eccentricity"""
        return self._kep[1]

    @property
    def i(self):
        """Inclination [rad]"""
        return self._kep[2]

    @property
    def raan(self):
        """Longitude of ascending node [rad]"""
        return self._kep[3]

    @property
    def argp(self):
        """Argument of periapsis [rad]"""
        return self._kep[4]

    @property
    def nu(self):
        """True anomaly [rad]"""
        return self._kep[5]

    @property
    def _kep(self):
        if self.element_type == OEType.KEPLERIAN:
            return self.elements
        return self.to_keplerian().elements

    @property
    def position(self):
        """Position vector relative to the central body [m]"""
        if self.element_type == OEType.CARTESIAN:
            return self.elements[:3]
        return self.to_cartesian().elements[:3]

    @property
    def velocity(self):
        """Velocity vector relative to the central body [m/s]"""
        if self.element_type == OEType.CARTESIAN:
            return self.elements[3:]
        return self.to_cartesian().elements[3:]

    # ========== ORBITAL PROPERTIES ==========
    @property
    def periapsis(self):
        """Periapsis radius [m]"""
        return self.a * (1 - self.e)

    @property
    def apoapsis(self):
        """Apoapsis radius [m], infinite for unbound orbits"""
        if self.e >= 1:
            return np.inf
        return self.a * (1 + self.e)

    @property
    def mean_anomaly(self):
        """Mean anomaly [rad] corresponding to the true anomaly"""
        return true_to_mean_anomaly(self.nu, self.e)

    def orbital_period(self):
        """
        Calculate orbital period

        Returns period in seconds (only for elliptic orbits)
        """
        if self.e >= 1:
            raise ValueError("Orbital period undefined for parabolic/hyperbolic orbits")
        return 2 * np.pi * np.sqrt(self.a**3 / self._mu)

    def specific_energy(self):
        """Calculate specific orbital energy (energy per unit mass)"""
        if self.element_type == OEType.CARTESIAN:
            r_mag = np.linalg.norm(self.elements[:3])
            v_mag = np.linalg.norm(self.elements[3:])
            return v_mag**2 / 2 - self._mu / r_mag
        return -self._mu / (2 * self.a)

    def mean_motion(self):
        """
        Calculate mean motion (n = √(μ/|a|³))

        Returns
        -------
        float
            Mean motion [rad/s]; for hyperbolic orbits this is the rate of the
            hyperbolic mean anomaly
        """
        return np.sqrt(self._mu / abs(self.a)**3)

    # ========== UTILITY METHODS ==========
    def copy(self):
        """Create a deep copy of the orbital elements"""
        return OrbitalElements(self.elements.copy(), self.element_type,
                               validate=False, mu=self._mu)

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        #Length of element vector (always 6)
        return 6

    def __getitem__(self, key):
        #Allow indexing like orbit[0]
        return self.elements[key]

    def __iter__(self):
        #Allow iteration over elements
        return iter(self.elements)

    def __repr__(self):
        #Machine-readable representation
        return f"OrbitalElements({self.elements.tolist()}, {self.element_type}, mu={self._mu})"

    def __str__(self):
        #Human-readable representation
        if self.element_type == OEType.KEPLERIAN:
            a, e, i, omega, w, nu = self.elements
            return (f"Keplerian Elements:\n"
                    f"  a     = {a:16.4f} m\n"
                    f"  e     = {e:16.6f}\n"
                    f"  i     = {np.degrees(i):16.4f}°\n"
                    f"  RAAN  = {np.degrees(omega):16.4f}°\n"
                    f"  ω     = {np.degrees(w):16.4f}°\n"
                    f"  ν     = {np.degrees(nu):16.4f}°")
        r = self.elements[:3]
        v = self.elements[3:]
        return (f"Cartesian Elements:\n"
                f"  r = [{r[0]:16.4f}, {r[1]:16.4f}, {r[2]:16.4f}] m\n"
                f"  v = [{v[0]:12.4f}, {v[1]:12.4f}, {v[2]:12.4f}] m/s")

    def __eq__(self, other):
        #Check equality with tolerance
        if not isinstance(other, OrbitalElements):
            return False
        return (self.element_type == other.element_type and
                np.isclose(self._mu, other._mu) and
                np.allclose(self.elements, other.elements,
                            rtol=config.EQUALITY_RTOL,
                            atol=config.EQUALITY_ATOL))

    # equality is tolerance-based, so instances are deliberately unhashable
    __hash__ = None

    # ========== STATIC METHODS ==========
    @staticmethod
    def _parse_element_type(element_type):
        """Convert string or enum to OEType enum"""
        if isinstance(element_type, OEType):
            return element_type
        elif isinstance(element_type, str):
            # Map string to enum
            type_map = {
                'cart': OEType.CARTESIAN,
                'cartesian': OEType.CARTESIAN,
                'kep': OEType.KEPLERIAN,
                'kepler': OEType.KEPLERIAN,
                'keplerian': OEType.KEPLERIAN,
            }
            if element_type in type_map:
                return type_map[element_type]
            else:
                raise ValueError(f"Unknown element type '{element_type}'. "
                                 f"Use: {list(type_map.keys())}")
        else:
            raise TypeError(f"element_type must be OEType or str, "
                            f"got {type(element_type)}")

    @staticmethod
    def _from_named_params(kwargs):
        """
        Convert named parameters to elements array and detect type.

        Returns
        -------
        elements : np.ndarray
            6-element array
        element_type : OEType
            Detected element type
        """
        # Check for Keplerian parameters
        kep_params = ['a', 'e', 'i', 'omega', 'w', 'nu']
        if all(k in kwargs for k in kep_params):
            elements = np.array([kwargs[k] for k in kep_params], dtype=float)
            return elements, OEType.KEPLERIAN

        # Check for Cartesian parameters
        cart_params = ['x', 'y', 'z', 'vx', 'vy', 'vz']
        if all(k in kwargs for k in cart_params):
            elements = np.array([kwargs[k] for k in cart_params], dtype=float)
            return elements, OEType.CARTESIAN

        # Error: couldn't determine type
        provided = list(kwargs.keys())
        raise ValueError(
            f"Could not determine element type from parameters: {provided}\n"
            f"Keplerian requires: {kep_params}\n"
            f"Cartesian requires: {cart_params}"
        )


def rot_z(angle):
    """Rotation matrix about the z-axis by angle [rad]"""
    return np.array([
        [np.cos(angle), -np.sin(angle), 0],
        [np.sin(angle),  np.cos(angle), 0],
        [0,              0,             1]
    ])


def rot_x(angle):
    """Rotation matrix about the x-axis by angle [rad]"""
    return np.array([
        [1,  0,              0            ],
        [0,  np.cos(angle), -np.sin(angle)],
        [0,  np.sin(angle),  np.cos(angle)]
    ])


def perifocal_to_inertial(omega, i, w):
    """
    Direction cosine matrix from the perifocal frame to the reference frame.

    Rotates by the argument of periapsis first, then the inclination, then
    the longitude of ascending node: R3(Ω) · R1(i) · R3(ω).
    """
    return rot_z(omega) @ rot_x(i) @ rot_z(w)
