"""
Flame data model.

This module defines the value objects a render consumes: affine matrices,
flame functions, the optional final post-transform, coloring options and the
preset that ties them together. The objects are read-only for the duration
of a render; validation is performed by whoever builds them (see
``flame_generator.io.presets``), not by the render path.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union
import logging

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class Sample(NamedTuple):
    """One accepted iterate of the chaos game."""

    x: float
    y: float
    function_index: int


class Bounds(NamedTuple):
    """Axis-aligned region of fractal space (xmin, xmax, ymin, ymax)."""

    xmin: float
    xmax: float
    ymin: float
    ymax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.xmin + self.xmax) / 2.0, (self.ymin + self.ymax) / 2.0)


@dataclass(frozen=True)
class AffineMatrix:
    """Six-coefficient affine map: x' = a*x + b*y + c, y' = d*x + e*y + f."""

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 0.0
    e: float = 1.0
    f: float = 0.0

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return (self.a * x + self.b * y + self.c,
                self.d * x + self.e * y + self.f)

    def to_list(self) -> List[float]:
        return [self.a, self.b, self.c, self.d, self.e, self.f]

    @classmethod
    def identity(cls) -> 'AffineMatrix':
        return cls()

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> 'AffineMatrix':
        """Create a matrix from ``[a, b, c, d, e, f]``."""
        if not isinstance(values, (list, tuple)):
            raise ConfigurationError(f"affine must be a list of 6 numbers, got {values!r}")
        values = list(values)
        if len(values) != 6:
            raise ConfigurationError(f"affine must have 6 coefficients, got {len(values)}")
        try:
            return cls(*(float(v) for v in values))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"affine coefficients must be numeric: {e}") from e


@dataclass
class FlameFunction:
    """One weighted transform of the IFS."""

    affine: AffineMatrix = field(default_factory=AffineMatrix.identity)
    variations: Dict[str, float] = field(default_factory=lambda: {'linear': 1.0})
    parameters: Optional[Dict[str, Dict[str, float]]] = None
    color: Optional[float] = None
    probability: float = 1.0

    def __post_init__(self):
        if not isinstance(self.affine, AffineMatrix):
            self.affine = AffineMatrix.from_sequence(self.affine)

    def validate(self) -> None:
        """Validate weights, probability and color index."""
        if not self.variations:
            raise ConfigurationError("flame function needs at least one variation")
        for name, weight in self.variations.items():
            if not isinstance(weight, (int, float)) or weight < 0:
                raise ConfigurationError(f"variation weight for '{name}' must be a non-negative number")
        if all(weight == 0 for weight in self.variations.values()):
            logger.warning("Flame function has only zero-weight variations")
        if not isinstance(self.probability, (int, float)) or self.probability < 0:
            raise ConfigurationError("probability must be a non-negative number")
        if self.color is not None and not 0.0 <= self.color <= 1.0:
            raise ConfigurationError("color must be between 0 and 1")

    def params_for(self, name: str) -> Optional[Mapping[str, float]]:
        if not self.parameters:
            return None
        return self.parameters.get(name)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'affine': self.affine.to_list(),
            'variations': dict(self.variations),
            'probability': self.probability,
        }
        if self.parameters:
            data['parameters'] = {k: dict(v) for k, v in self.parameters.items()}
        if self.color is not None:
            data['color'] = self.color
        return data


@dataclass
class FinalTransform:
    """
    Post-transform applied to every sample before accumulation.

    Rotation is in degrees, translation in output pixels (+x right, +y down).
    ``bounds`` fixes the fractal-space region to frame; when omitted it is
    discovered with a dry run of the chaos game.
    """

    rotation: float = 0.0
    scale: float = 1.0
    translate: Tuple[float, float] = (0.0, 0.0)
    bounds: Optional[Bounds] = None

    def __post_init__(self):
        self.translate = (float(self.translate[0]), float(self.translate[1]))
        if self.bounds is not None and not isinstance(self.bounds, Bounds):
            self.bounds = Bounds(*(float(v) for v in self.bounds))

    @property
    def is_identity(self) -> bool:
        return (self.rotation % 360.0 == 0.0 and self.scale == 1.0
                and self.translate == (0.0, 0.0))

    def validate(self) -> None:
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise ConfigurationError("final transform scale must be positive")
        if self.bounds is not None and (self.bounds.width <= 0 or self.bounds.height <= 0):
            raise ConfigurationError("final transform bounds must have positive extent")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'rotation': self.rotation,
            'scale': self.scale,
            'translate': list(self.translate),
        }
        if self.bounds is not None:
            data['bounds'] = list(self.bounds)
        return data


@dataclass
class ColoringOptions:
    """Coloring strategy selection and strategy-specific options."""

    mode: str = 'histogram'
    distance_scale: Optional[float] = None
    orbit_length: Optional[int] = None
    momentum_scale: Optional[float] = None
    flux_scale: Optional[float] = None

    def validate(self) -> None:
        if not isinstance(self.mode, str) or not self.mode:
            raise ConfigurationError("coloring mode must be a non-empty string")
        if self.orbit_length is not None and self.orbit_length < 1:
            raise ConfigurationError("orbit_length must be >= 1")
        for name in ('distance_scale', 'momentum_scale', 'flux_scale'):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(f"{name} must be positive")


PaletteSpec = Union[str, List[str], None]


@dataclass
class FlamePreset:
    """Everything needed to render one flame."""

    width: int
    height: int
    functions: List[FlameFunction]
    iterations: int = 100000
    burn_in: int = 20
    gamma: float = 1.0
    supersample: int = 1
    palette: PaletteSpec = None
    coloring: ColoringOptions = field(default_factory=ColoringOptions)
    final_transform: Optional[FinalTransform] = None

    def validate(self) -> None:
        """Validate ranges; the renderer itself trusts the preset."""
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError("width and height must be positive")
        if self.iterations < 0 or self.burn_in < 0:
            raise ConfigurationError("iterations and burn_in must be non-negative")
        if self.gamma <= 0:
            raise ConfigurationError("gamma must be positive")
        if self.supersample < 1:
            raise ConfigurationError("supersample must be >= 1")
        if not self.functions:
            raise ConfigurationError("preset needs at least one flame function")
        for fn in self.functions:
            fn.validate()
        if sum(fn.probability for fn in self.functions) <= 0:
            raise ConfigurationError("total function probability must be positive")
        self.coloring.validate()
        if self.final_transform is not None:
            self.final_transform.validate()

    @property
    def buffer_size(self) -> int:
        """Size in bytes of the RGBA8 destination buffer."""
        return self.width * self.height * 4

