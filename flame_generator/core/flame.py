"""
Affine + variation composition for a single flame function.

A flame function maps a point by first applying its affine matrix, clamping
the result, and then summing its weighted variations evaluated at the
clamped point.
"""

import math
from typing import List, Optional, Sequence, Tuple
import logging

from .flame_types import FlameFunction
from .variations import VariationRegistry, VariationFunction, default_registry

logger = logging.getLogger(__name__)

# Symmetric bound applied to the affine output before variations see it
CLAMP_LIMIT = 100.0


def _clamp(value: float) -> float:
    if value > CLAMP_LIMIT:
        return CLAMP_LIMIT
    if value < -CLAMP_LIMIT:
        return -CLAMP_LIMIT
    return value


class CompiledFunction:
    """
    A flame function with its variations resolved ahead of time.

    Resolving once per render turns unknown variation names into an
    immediate :class:`UnknownVariationError` and keeps registry lookups out
    of the sampling loop.
    """

    def __init__(self, fn: FlameFunction, registry: Optional[VariationRegistry] = None):
        registry = registry if registry is not None else default_registry()
        self.function = fn
        self.affine = fn.affine
        self.terms: List[Tuple[str, float, VariationFunction, object]] = [
            (name, float(weight), registry.resolve(name), fn.params_for(name))
            for name, weight in fn.variations.items()
            if weight != 0
        ]

    def __call__(self, x: float, y: float) -> Tuple[float, float]:
        x0, y0 = self.affine.apply(x, y)
        cx = _clamp(x0)
        cy = _clamp(y0)

        new_x = 0.0
        new_y = 0.0
        for _, weight, variation, params in self.terms:
            vx, vy = variation(cx, cy, params)
            new_x += weight * vx
            new_y += weight * vy

        if not (math.isfinite(new_x) and math.isfinite(new_y)):
            logger.debug(f"Weighted variation sum is non-finite ({new_x}, {new_y}) at ({x}, {y}), "
                         f"falling back to affine-only point ({x0}, {y0})")
            return (x0, y0)
        return (new_x, new_y)


def apply_flame_function(fn: FlameFunction, x: float, y: float,
                         registry: Optional[VariationRegistry] = None) -> Tuple[float, float]:
    """
    Apply one flame function to a point.

    Args:
        fn: Flame function to apply
        x, y: Input point
        registry: Variation registry (defaults to the process-wide one)

    Returns:
        The next point of the orbit

    Raises:
        UnknownVariationError: If ``fn`` references an unregistered variation
    """
    return CompiledFunction(fn, registry)(x, y)


def compile_functions(functions: Sequence[FlameFunction],
                      registry: Optional[VariationRegistry] = None) -> List[CompiledFunction]:
    return [CompiledFunction(fn, registry) for fn in functions]
