"""
Coloring strategies.

A coloring strategy receives every sample of the chaos game through
``accumulate`` and writes the final RGBA8 image through ``finalize``. All
strategies share :class:`AccumulationContext` for rasterization and differ
only in how they derive a sample's color:

- ``histogram`` colors each sample by the flame function that produced it.
- The orbit strategies group consecutive samples into fixed-length orbits and
  derive one palette position per orbit from its geometry.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging

import numpy as np

from ..core.errors import ConfigurationError, UnknownStrategyError
from ..core.flame_types import Bounds, FlameFunction, FlamePreset, Sample
from .context import AccumulationContext
from .palette import PaletteFunction, RainbowPalette

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi


def _clamp_unit(t: float) -> float:
    """Clamp to [0, 1]; NaN maps to 0."""
    if not t > 0.0:
        return 0.0
    if t > 1.0:
        return 1.0
    return t


@dataclass
class StrategyOptions:
    """Everything a strategy factory needs to build one strategy instance."""

    width: int
    height: int
    supersample: int = 1
    gamma: float = 1.0
    functions: List[FlameFunction] = field(default_factory=list)
    palette: Optional[PaletteFunction] = None
    bounds: Optional[Bounds] = None
    distance_scale: Optional[float] = None
    orbit_length: Optional[int] = None
    momentum_scale: Optional[float] = None
    flux_scale: Optional[float] = None

    def make_context(self) -> AccumulationContext:
        """Fresh accumulation context for these options."""
        return AccumulationContext(self.width, self.height, self.supersample,
                                   self.gamma, self.bounds)

    @classmethod
    def from_preset(cls, preset: FlamePreset, palette: PaletteFunction,
                    bounds: Optional[Bounds] = None) -> 'StrategyOptions':
        """Options for ``preset``, rendered with ``palette`` into optional fixed ``bounds``."""
        coloring = preset.coloring
        return cls(
            width=preset.width,
            height=preset.height,
            supersample=preset.supersample,
            gamma=preset.gamma,
            functions=list(preset.functions),
            palette=palette,
            bounds=bounds,
            distance_scale=coloring.distance_scale,
            orbit_length=coloring.orbit_length,
            momentum_scale=coloring.momentum_scale,
            flux_scale=coloring.flux_scale,
        )


class ColoringStrategy(ABC):
    """
    Base class for coloring strategies.

    ``finalize`` may be called more than once and always writes the same
    pixels; accumulating after the first finalize raises ``RuntimeError``.
    """

    requires_orbits = False

    def __init__(self, options: StrategyOptions):
        self.options = options
        self.palette = options.palette if options.palette is not None else RainbowPalette()
        self.context = options.make_context()
        self.finalized = False

    @classmethod
    def create(cls, options: StrategyOptions) -> 'ColoringStrategy':
        """Factory hook used by :class:`StrategyRegistry`."""
        return cls(options)

    @abstractmethod
    def accumulate(self, sample: Sample) -> None:
        """Commit one sample."""
        pass

    def flush(self) -> None:
        """Commit any buffered state to the context before the first finalize."""
        pass

    def finalize(self, buffer) -> None:
        """Flush buffered state and write RGBA8 pixels into ``buffer``."""
        if not self.finalized:
            self.flush()
            self.finalized = True
        self.context.finalize(buffer)

    def _raise_finalized(self) -> None:
        raise RuntimeError(f"{type(self).__name__} was already finalized")


class HistogramStrategy(ColoringStrategy):
    """Density rendering with one fixed palette color per flame function."""

    requires_orbits = False

    def __init__(self, options: StrategyOptions):
        super().__init__(options)
        functions = options.functions
        count = len(functions)
        self.function_colors = []
        for i, fn in enumerate(functions):
            if fn.color is not None:
                t = _clamp_unit(float(fn.color))
            else:
                t = i / (count - 1) if count > 1 else 0.0
            self.function_colors.append(tuple(self.palette(t)))

    def accumulate(self, sample: Sample) -> None:
        """Commit the sample in its function's color."""
        if self.finalized:
            self._raise_finalized()
        self.context.commit_sample(sample.x, sample.y,
                                   self.function_colors[sample.function_index])


@dataclass
class Orbit:
    """Consecutive sample coordinates colored with a single palette position."""

    xs: List[float] = field(default_factory=list)
    ys: List[float] = field(default_factory=list)
    value: float = 0.0
    t: float = 0.0

    def __len__(self) -> int:
        return len(self.xs)

    def append(self, x: float, y: float) -> None:
        self.xs.append(x)
        self.ys.append(y)


class OrbitStrategy(ColoringStrategy):
    """
    Groups samples into orbits of ``orbit_length`` points.

    Subclasses implement :meth:`measure`, returning the orbit's raw value, and
    :meth:`palette_position`, mapping it to ``t``. Orbits are committed as
    soon as they fill up unless :attr:`buffers_orbits` is set, in which case
    they are kept until finalize.
    """

    requires_orbits = True
    default_orbit_length = 20
    # Shortest trailing orbit still flushed at finalize
    min_orbit_length = 1

    def __init__(self, options: StrategyOptions):
        super().__init__(options)
        self.orbit_length = max(1, int(options.orbit_length or self.default_orbit_length))
        self.current = Orbit()
        self.orbits: List[Orbit] = []
        self.orbit_count = 0

    @property
    def buffers_orbits(self) -> bool:
        """Whether full orbits wait for finalize instead of committing at once."""
        return False

    @abstractmethod
    def measure(self, orbit: Orbit) -> float:
        """Raw value of ``orbit``."""
        pass

    def palette_position(self, value: float) -> float:
        """Map a raw orbit value to a palette position."""
        return value

    def accumulate(self, sample: Sample) -> None:
        if self.finalized:
            self._raise_finalized()
        self.current.append(sample.x, sample.y)
        if len(self.current) >= self.orbit_length:
            self._flush_orbit()

    def _flush_orbit(self) -> None:
        orbit = self.current
        self.current = Orbit()
        orbit.value = self.measure(orbit)
        self.orbit_count += 1
        if self.buffers_orbits:
            self.orbits.append(orbit)
        else:
            self._commit(orbit)

    def _commit(self, orbit: Orbit) -> None:
        """Color ``orbit`` at its clamped palette position and store its samples."""
        orbit.t = _clamp_unit(self.palette_position(orbit.value))
        self.context.commit_samples(orbit.xs, orbit.ys, self.palette(orbit.t))

    def flush(self) -> None:
        """Close the trailing orbit if long enough and commit buffered orbits."""
        if len(self.current) >= self.min_orbit_length:
            self._flush_orbit()
        else:
            self.current = Orbit()
        for orbit in self.orbits:
            self._commit(orbit)
        logger.debug(f"{type(self).__name__}: {self.orbit_count} orbits of up to "
                     f"{self.orbit_length} samples")


class OrbitAngleStrategy(OrbitStrategy):
    """Color by the polar angle of the orbit's first point."""

    def measure(self, orbit: Orbit) -> float:
        """Angle of the first point, mapped from [-pi, pi] to [0, 1]."""
        return (math.atan2(orbit.ys[0], orbit.xs[0]) + math.pi) / TWO_PI


class OrbitDistanceStrategy(OrbitStrategy):
    """Color by the distance of the orbit's first point from the origin."""

    def __init__(self, options: StrategyOptions):
        super().__init__(options)
        self.distance_scale = options.distance_scale or 1.0

    def measure(self, orbit: Orbit) -> float:
        """Scaled distance ``d`` of the first point, compressed to ``d / (1 + d)``."""
        d = math.hypot(orbit.xs[0], orbit.ys[0]) / self.distance_scale
        return d / (1.0 + d)


class ScaledOrbitStrategy(OrbitStrategy):
    """
    Orbit strategy normalizing ``|value|`` by a scale.

    Without an explicit scale every orbit is buffered and the largest
    magnitude seen in the render becomes the scale at finalize.
    """

    min_orbit_length = 2
    scale_option = ''

    def __init__(self, options: StrategyOptions):
        super().__init__(options)
        self.explicit_scale = getattr(options, self.scale_option)
        if self.explicit_scale is not None and not self.explicit_scale > 0:
            raise ConfigurationError(f"{self.scale_option} must be positive")
        self.scale = self.explicit_scale

    @property
    def buffers_orbits(self) -> bool:
        return self.explicit_scale is None

    def palette_position(self, value: float) -> float:
        """``|value|`` relative to the explicit or auto-detected scale."""
        return abs(value) / self.scale

    def flush(self) -> None:
        if len(self.current) >= self.min_orbit_length:
            self._flush_orbit()
        if self.explicit_scale is None:
            max_value = max((abs(o.value) for o in self.orbits), default=0.0)
            self.scale = max_value or 1.0
            logger.info(f"{type(self).__name__}: auto-detected scale {self.scale:.6g} "
                        f"over {len(self.orbits)} orbits")
        super().flush()


class AngularMomentumStrategy(ScaledOrbitStrategy):
    """Color by the discrete angular momentum ``sum(dx*y - dy*x)`` of each orbit."""

    scale_option = 'momentum_scale'

    def measure(self, orbit: Orbit) -> float:
        xs = np.asarray(orbit.xs)
        ys = np.asarray(orbit.ys)
        dx = np.diff(xs)
        dy = np.diff(ys)
        return float(np.sum(dx * ys[1:] - dy * xs[1:]))


class RadialFluxStrategy(ScaledOrbitStrategy):
    """Color by the total signed angle an orbit sweeps around the origin."""

    default_orbit_length = 16
    scale_option = 'flux_scale'

    def measure(self, orbit: Orbit) -> float:
        angles = np.arctan2(orbit.ys, orbit.xs)
        deltas = np.diff(angles)
        deltas = np.where(deltas > math.pi, deltas - TWO_PI, deltas)
        deltas = np.where(deltas <= -math.pi, deltas + TWO_PI, deltas)
        return float(np.sum(deltas))


class StrategyRegistry:
    """Name -> strategy factory mapping; a factory is anything with ``create(options)``."""

    def __init__(self):
        self._factories: Dict[str, Any] = {}

    def register(self, name: str, factory: Any) -> None:
        """Register ``factory`` under ``name``, replacing any previous one."""
        if not callable(getattr(factory, 'create', None)):
            raise ValueError(f"Strategy factory '{name}' must provide create(options)")
        self._factories[name] = factory
        logger.debug(f"Registered coloring strategy: {name}")

    def get(self, name: str):
        """
        Look up a strategy factory.

        Raises:
            UnknownStrategyError: If ``name`` is not registered
        """
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownStrategyError(name, self._factories.keys())
        return factory

    def create(self, name: str, options: StrategyOptions) -> ColoringStrategy:
        """Build the strategy registered under ``name``."""
        return self.get(name).create(options)

    def names(self) -> List[str]:
        """Registered names in registration order."""
        return list(self._factories.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._factories


BUILTIN_STRATEGIES = {
    'histogram': HistogramStrategy,
    'orbit-angle': OrbitAngleStrategy,
    'orbit-distance': OrbitDistanceStrategy,
    'angular-momentum': AngularMomentumStrategy,
    'radial-flux': RadialFluxStrategy,
}


def create_default_registry() -> StrategyRegistry:
    """Build a registry holding the five built-in strategies."""
    registry = StrategyRegistry()
    for name, factory in BUILTIN_STRATEGIES.items():
        registry.register(name, factory)
    return registry


_default_registry = create_default_registry()


def default_registry() -> StrategyRegistry:
    """Process-wide registry, populated once at import."""
    return _default_registry


def register_strategy(name: str, factory: Any) -> None:
    """Register a strategy factory in the default registry."""
    _default_registry.register(name, factory)


def get_strategy_factory(name: str):
    """Look up a strategy factory in the default registry."""
    return _default_registry.get(name)


def list_strategies() -> Sequence[str]:
    """Names in the default registry."""
    return _default_registry.names()
