"""
Variation library for flame functions.

A variation is a nonlinear map ``(x, y, params) -> (x', y')`` applied to the
affine-transformed point of a flame function. Most variations are pure; the
``blur`` and ``noise`` variations draw from a random source on every call.
The escape-time warps iterate a complex recurrence in the manner of the
classic Mandelbrot, Julia and Burning Ship fractals and return the last
finite iterate instead of an escape count.

Every variation registered in a :class:`VariationRegistry` is wrapped by
:func:`safe_variation` so that a non-finite result or an exception turns
into the fallback point ``(0, 0)`` rather than reaching the accumulator.
"""

import math
from functools import partial
from typing import Callable, Dict, List, Mapping, Optional, Tuple
import logging

import numpy as np

from .errors import UnknownVariationError

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Params = Optional[Mapping[str, float]]
VariationFunction = Callable[..., Point]

EPSILON = 1e-10
FALLBACK_POINT: Point = (0.0, 0.0)


def _param(params: Params, name: str, default: float) -> float:
    if params is None:
        return default
    return float(params.get(name, default))


def _radius_or_one(x: float, y: float) -> float:
    return math.hypot(x, y) or 1.0


# ---------------------------------------------------------------------------
# Classic variations
# ---------------------------------------------------------------------------

def linear(x: float, y: float, params: Params = None) -> Point:
    """Identity map."""
    return (x, y)


def sinusoidal(x: float, y: float, params: Params = None) -> Point:
    """Sine of each coordinate."""
    return (math.sin(x), math.sin(y))


def spherical(x: float, y: float, params: Params = None) -> Point:
    """Inversion in the unit circle."""
    r2 = x * x + y * y + EPSILON
    return (x / r2, y / r2)


def swirl(x: float, y: float, params: Params = None) -> Point:
    """Rotate by the squared radius; preserves distance from the origin."""
    r2 = x * x + y * y
    sin_r2 = math.sin(r2)
    cos_r2 = math.cos(r2)
    return (x * sin_r2 - y * cos_r2, x * cos_r2 + y * sin_r2)


def horseshoe(x: float, y: float, params: Params = None) -> Point:
    """Horseshoe map: doubles the angle and keeps the radius."""
    r = _radius_or_one(x, y)
    return ((x - y) * (x + y) / r, 2.0 * x * y / r)


def polar(x: float, y: float, params: Params = None) -> Point:
    """Map (angle, radius) back onto the plane."""
    theta = math.atan2(y, x)
    return (theta / math.pi, math.hypot(x, y) - 1.0)


def handkerchief(x: float, y: float, params: Params = None) -> Point:
    """Radius-modulated sine/cosine of the angle."""
    theta = math.atan2(y, x)
    r = math.hypot(x, y)
    return (r * math.sin(theta + r), r * math.cos(theta - r))


def heart(x: float, y: float, params: Params = None) -> Point:
    """Heart shape: angle scaled by the radius."""
    theta = math.atan2(y, x)
    r = math.hypot(x, y)
    return (r * math.sin(theta * r), -r * math.cos(theta * r))


def disc(x: float, y: float, params: Params = None) -> Point:
    """Angle over pi, wrapped by the radius."""
    k = math.atan2(y, x) / math.pi
    pr = math.pi * math.hypot(x, y)
    return (k * math.sin(pr), k * math.cos(pr))


def spiral(x: float, y: float, params: Params = None) -> Point:
    """Spiral arms from the angle and radius."""
    theta = math.atan2(y, x)
    r = _radius_or_one(x, y)
    return ((math.cos(theta) + math.sin(r)) / r,
            (math.sin(theta) - math.cos(r)) / r)


def hyperbolic(x: float, y: float, params: Params = None) -> Point:
    """Hyperbolic map: sin(theta) / r against r * cos(theta)."""
    theta = math.atan2(y, x)
    r = _radius_or_one(x, y)
    return (math.sin(theta) / r, r * math.cos(theta))


def diamond(x: float, y: float, params: Params = None) -> Point:
    """Diamond shape from the angle and radius."""
    theta = math.atan2(y, x)
    r = math.hypot(x, y)
    return (math.sin(theta) * math.cos(r), math.cos(theta) * math.sin(r))


def ex(x: float, y: float, params: Params = None) -> Point:
    """Cubed sine/cosine of angle plus and minus radius."""
    theta = math.atan2(y, x)
    r = math.hypot(x, y)
    p0 = math.sin(theta + r) ** 3
    p1 = math.cos(theta - r) ** 3
    return (r * (p0 + p1), r * (p0 - p1))


def fisheye(x: float, y: float, params: Params = None) -> Point:
    """Fisheye lens with the output axes swapped."""
    k = 2.0 / (math.hypot(x, y) + 1.0)
    return (k * y, k * x)


def exponential(x: float, y: float, params: Params = None) -> Point:
    """Complex exponential of the point shifted by -1."""
    e = math.exp(x - 1.0)
    return (e * math.cos(math.pi * y), e * math.sin(math.pi * y))


def power(x: float, y: float, params: Params = None) -> Point:
    """Radius raised to sin(theta)."""
    theta = math.atan2(y, x)
    sin_theta = math.sin(theta)
    k = (math.hypot(x, y) + EPSILON) ** sin_theta
    return (k * math.cos(theta), k * sin_theta)


def cosine(x: float, y: float, params: Params = None) -> Point:
    """Complex cosine of pi * x."""
    return (math.cos(math.pi * x) * math.cosh(y),
            -math.sin(math.pi * x) * math.sinh(y))


def bubble(x: float, y: float, params: Params = None) -> Point:
    """Inverse stereographic projection onto a sphere of radius 2."""
    k = 4.0 / (x * x + y * y + 4.0)
    return (k * x, k * y)


def cylinder(x: float, y: float, params: Params = None) -> Point:
    """Sine of x, y unchanged."""
    return (math.sin(x), y)


def eyefish(x: float, y: float, params: Params = None) -> Point:
    """Fisheye lens without the axis swap."""
    k = 2.0 / (math.hypot(x, y) + 1.0)
    return (k * x, k * y)


def tangent(x: float, y: float, params: Params = None) -> Point:
    """Sine of x over cosine of y, tangent of y."""
    return (math.sin(x) / math.cos(y), math.tan(y))


def cross(x: float, y: float, params: Params = None) -> Point:
    """Point scaled by 1 / |x**2 - y**2|."""
    # Undefined on the diagonals x = +-y; the safety wrapper handles those.
    k = math.sqrt(1.0 / (x * x - y * y) ** 2)
    return (k * x, k * y)


# ---------------------------------------------------------------------------
# Parametric variations
# ---------------------------------------------------------------------------

def curl(x: float, y: float, params: Params = None) -> Point:
    """Point divided by the complex quadratic ``1 + a*z + b*z**2`` (params ``a``, ``b``)."""
    c1 = _param(params, 'a', 0.5)
    c2 = _param(params, 'b', 0.5)
    t1 = 1.0 + c1 * x + c2 * (x * x - y * y)
    t2 = c1 * y + 2.0 * c2 * x * y
    r = 1.0 / (t1 * t1 + t2 * t2)
    return ((x * t1 + y * t2) * r, (y * t1 - x * t2) * r)


def pdj(x: float, y: float, params: Params = None) -> Point:
    """Peter de Jong attractor map (params ``a``-``d``)."""
    a = _param(params, 'a', 1.0)
    b = _param(params, 'b', -1.3)
    c = _param(params, 'c', 2.1)
    d = _param(params, 'd', -0.6)
    return (math.sin(a * y) - math.cos(b * x),
            math.sin(c * x) - math.cos(d * y))


def julian(x: float, y: float, params: Params = None) -> Point:
    """
    Julia-N: ``n`` roots of the point scaled by ``r ** (power / n)``.

    The root is chosen from the sector the input angle falls in, which keeps
    the variation deterministic.
    """
    n = _param(params, 'n', 4.0)
    dist = _param(params, 'power', 1.0)
    branches = max(1, int(abs(n)))
    theta = math.atan2(y, x)
    k = int(branches * (theta + math.pi) / (2.0 * math.pi)) % branches
    t = (theta + 2.0 * math.pi * k) / n
    r = (x * x + y * y + EPSILON) ** (dist / n / 2.0)
    return (r * math.cos(t), r * math.sin(t))


def fan2(x: float, y: float, params: Params = None) -> Point:
    """Angle warped by a sine of itself (params ``freq``, ``spread``)."""
    freq = _param(params, 'freq', 3.0)
    spread = _param(params, 'spread', 0.5)
    theta = math.atan2(y, x)
    r = math.hypot(x, y)
    t = theta + spread * math.sin(freq * theta)
    return (r * math.cos(t), r * math.sin(t))


def popcorn2(x: float, y: float, params: Params = None) -> Point:
    """Popcorn perturbation (params ``c``, ``f``)."""
    c = _param(params, 'c', 0.3)
    f = _param(params, 'f', 3.0)
    return (x + c * math.sin(math.tan(f * y)),
            y + c * math.sin(math.tan(f * x)))


# ---------------------------------------------------------------------------
# Stochastic variations
# ---------------------------------------------------------------------------

def blur(x: float, y: float, params: Params = None, rng=None) -> Point:
    """Uniform point in the unit disc, independent of the input."""
    rng = rng if rng is not None else _default_rng
    angle = rng.random() * 2.0 * math.pi
    radius = rng.random()
    return (radius * math.cos(angle), radius * math.sin(angle))


def noise(x: float, y: float, params: Params = None, rng=None) -> Point:
    """Point scaled by a random factor and rotated by a random angle per axis."""
    rng = rng if rng is not None else _default_rng
    scale = rng.random()
    angle = rng.random() * 2.0 * math.pi
    return (x * scale * math.cos(angle), y * scale * math.sin(angle))


# ---------------------------------------------------------------------------
# Escape-time fractal warps
# ---------------------------------------------------------------------------

def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def _escape_time(z: complex, c: complex, step: Callable[[complex], complex],
                 params: Params) -> Point:
    """Iterate ``z <- step(z) + c`` and return the last finite state."""
    iterations = int(_param(params, 'iterations', 15))
    escape_radius = _param(params, 'escape_radius', 2.0)
    escape_radius_sq = escape_radius * escape_radius

    for _ in range(iterations):
        if z.real * z.real + z.imag * z.imag > escape_radius_sq:
            break
        next_z = step(z) + c
        if not (math.isfinite(next_z.real) and math.isfinite(next_z.imag)):
            break
        z = next_z

    return (z.real, z.imag)


def _square(z: complex) -> complex:
    return z * z


def _burning_ship_square(z: complex) -> complex:
    folded = complex(abs(z.real), abs(z.imag))
    return folded * folded


def mandelbrot_warp(x: float, y: float, params: Params = None) -> Point:
    """Mandelbrot recurrence with the point as ``c`` (plus an optional offset)."""
    c = complex(_finite_or_zero(x) + _param(params, 'cx', 0.0),
                _finite_or_zero(y) + _param(params, 'cy', 0.0))
    return _escape_time(0j, c, _square, params)


def julia_warp(x: float, y: float, params: Params = None) -> Point:
    """Julia recurrence starting at the point with a fixed constant ``c``."""
    z = complex(_finite_or_zero(x), _finite_or_zero(y))
    c = complex(_param(params, 'cx', -0.8), _param(params, 'cy', 0.156))
    return _escape_time(z, c, _square, params)


def burning_ship_warp(x: float, y: float, params: Params = None) -> Point:
    """Burning Ship recurrence with the point as ``c`` (plus an optional offset)."""
    c = complex(_finite_or_zero(x) + _param(params, 'cx', 0.0),
                _finite_or_zero(y) + _param(params, 'cy', 0.0))
    return _escape_time(0j, c, _burning_ship_square, params)


# ---------------------------------------------------------------------------
# Safety wrapper and registry
# ---------------------------------------------------------------------------

def safe_variation(name: str, fn: VariationFunction) -> VariationFunction:
    """
    Wrap a variation so it always returns a finite point.

    Non-finite inputs, exceptions and non-finite outputs are replaced by
    ``FALLBACK_POINT`` and logged at DEBUG level.
    """
    def wrapper(x: float, y: float, params: Params = None) -> Point:
        if not (math.isfinite(x) and math.isfinite(y)):
            logger.debug(f"Variation '{name}' got non-finite input ({x}, {y}), params={params}")
            return FALLBACK_POINT
        try:
            vx, vy = fn(x, y, params)
        except Exception as e:
            logger.debug(f"Variation '{name}' failed at ({x}, {y}), params={params}: {e}")
            return FALLBACK_POINT
        if not (math.isfinite(vx) and math.isfinite(vy)):
            logger.debug(f"Variation '{name}' returned non-finite ({vx}, {vy}) "
                         f"for ({x}, {y}), params={params}")
            return FALLBACK_POINT
        return (vx, vy)

    wrapper.__name__ = f"safe_{name}"
    wrapper.__wrapped__ = fn
    return wrapper


BUILTIN_VARIATIONS: Dict[str, VariationFunction] = {
    'linear': linear,
    'sinusoidal': sinusoidal,
    'spherical': spherical,
    'swirl': swirl,
    'horseshoe': horseshoe,
    'polar': polar,
    'handkerchief': handkerchief,
    'heart': heart,
    'disc': disc,
    'spiral': spiral,
    'hyperbolic': hyperbolic,
    'diamond': diamond,
    'ex': ex,
    'fisheye': fisheye,
    'exponential': exponential,
    'power': power,
    'cosine': cosine,
    'bubble': bubble,
    'cylinder': cylinder,
    'eyefish': eyefish,
    'tangent': tangent,
    'cross': cross,
    'curl': curl,
    'pdj': pdj,
    'julian': julian,
    'fan2': fan2,
    'popcorn2': popcorn2,
    'mandelbrot_warp': mandelbrot_warp,
    'julia_warp': julia_warp,
    'burning_ship_warp': burning_ship_warp,
}

STOCHASTIC_VARIATIONS: Dict[str, VariationFunction] = {
    'blur': blur,
    'noise': noise,
}

FRACTAL_WARPS = ('mandelbrot_warp', 'julia_warp', 'burning_ship_warp')


class VariationRegistry:
    """Name -> safety-wrapped variation lookup."""

    def __init__(self):
        self._variations: Dict[str, VariationFunction] = {}

    def register(self, name: str, fn: VariationFunction) -> None:
        """
        Register a variation under ``name``, wrapping it with :func:`safe_variation`.

        Args:
            name: Unique variation name
            fn: Function ``(x, y, params) -> (x', y')``
        """
        if not callable(fn):
            raise ValueError(f"Variation '{name}' must be callable")
        self._variations[name] = safe_variation(name, fn)
        logger.debug(f"Registered variation: {name}")

    def resolve(self, name: str) -> VariationFunction:
        """Wrapped variation registered under ``name``; raises UnknownVariationError."""
        fn = self._variations.get(name)
        if fn is None:
            raise UnknownVariationError(name, self._variations.keys())
        return fn

    def names(self) -> List[str]:
        """Registered names in registration order."""
        return list(self._variations.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._variations

    def __len__(self) -> int:
        return len(self._variations)


def create_default_registry(rng=None) -> VariationRegistry:
    """
    Build a registry holding every built-in variation.

    Args:
        rng: Random source for ``blur`` and ``noise`` (anything with a
            ``random()`` method); defaults to a fresh numpy Generator.
    """
    rng = rng if rng is not None else np.random.default_rng()
    registry = VariationRegistry()
    for name, fn in BUILTIN_VARIATIONS.items():
        registry.register(name, fn)
    for name, fn in STOCHASTIC_VARIATIONS.items():
        registry.register(name, partial(fn, rng=rng))
    return registry


_default_rng = np.random.default_rng()
_default_registry = create_default_registry(_default_rng)


def default_registry() -> VariationRegistry:
    """Process-wide registry of the built-in variations, populated once at import."""
    return _default_registry


def resolve_variation(name: str) -> VariationFunction:
    """Look up a variation in the default registry."""
    return _default_registry.resolve(name)


def list_variations() -> List[str]:
    """Names in the default registry."""
    return _default_registry.names()
