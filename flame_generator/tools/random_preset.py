"""
Random preset generator.

Produces a valid :class:`FlamePreset` with a handful of random flame
functions, a random registered palette and a random coloring strategy.
"""

from typing import List, Optional
import logging

import numpy as np

from ..core.flame_types import AffineMatrix, ColoringOptions, FlameFunction, FlamePreset
from ..core.variations import FRACTAL_WARPS, STOCHASTIC_VARIATIONS, VariationRegistry
from ..core.variations import default_registry as default_variation_registry
from ..rendering.palette import PaletteRegistry
from ..rendering.palette import default_registry as default_palette_registry
from ..rendering.strategies import StrategyRegistry
from ..rendering.strategies import default_registry as default_strategy_registry

logger = logging.getLogger(__name__)

# Variations excluded from random presets
EXCLUDED_VARIATIONS = frozenset(STOCHASTIC_VARIATIONS) | frozenset(FRACTAL_WARPS)


def _randint(rng, low: int, high: int) -> int:
    """Uniform integer in [low, high], both ends included."""
    return int(rng.integers(low, high, endpoint=True))


def random_affine(rng, spread: float = 1.0) -> AffineMatrix:
    return AffineMatrix(*(float(v) for v in rng.uniform(-spread, spread, 6)))


def random_flame_functions(rng, variation_names: List[str]) -> List[FlameFunction]:
    """2-6 functions with 1-3 distinct variations each and equal probabilities."""
    count = _randint(rng, 2, 6)
    functions = []
    for _ in range(count):
        take = min(_randint(rng, 1, 3), len(variation_names))
        chosen = rng.choice(len(variation_names), size=take, replace=False)
        functions.append(FlameFunction(
            affine=random_affine(rng),
            variations={variation_names[i]: float(rng.random()) for i in chosen},
            probability=1.0 / count,
        ))
    return functions


def random_coloring(rng, mode: str) -> ColoringOptions:
    """Coloring options with random values for the options ``mode`` reads."""
    coloring = ColoringOptions(mode=mode)
    # Scaled orbit modes keep auto-scaling
    if 'distance' in mode:
        coloring.distance_scale = float(rng.uniform(0.1, 2.0))
    if mode != 'histogram':
        coloring.orbit_length = _randint(rng, 10, 50)
    return coloring


def random_flame_preset(width: Optional[int] = None, height: Optional[int] = None,
                        rng=None,
                        variations: Optional[VariationRegistry] = None,
                        palettes: Optional[PaletteRegistry] = None,
                        strategies: Optional[StrategyRegistry] = None) -> FlamePreset:
    """
    Generate a random flame preset.

    Args:
        width: Image width (random 400-1200 if omitted)
        height: Image height (random 300-900 if omitted)
        rng: numpy Generator; a fresh unseeded one by default
        variations: Registry to draw variation names from
        palettes: Registry to draw the palette name from
        strategies: Registry to draw the coloring mode from

    Returns:
        A preset that passes :meth:`FlamePreset.validate`
    """
    rng = rng if rng is not None else np.random.default_rng()
    variations = variations if variations is not None else default_variation_registry()
    palettes = palettes if palettes is not None else default_palette_registry()
    strategies = strategies if strategies is not None else default_strategy_registry()

    variation_names = [name for name in variations.names() if name not in EXCLUDED_VARIATIONS]
    if not variation_names:
        raise ValueError("No variations available for random presets")

    palette_names = palettes.names()
    strategy_names = strategies.names()
    palette = palette_names[int(rng.integers(len(palette_names)))]
    mode = strategy_names[int(rng.integers(len(strategy_names)))]

    preset = FlamePreset(
        width=width if width is not None else _randint(rng, 400, 1200),
        height=height if height is not None else _randint(rng, 300, 900),
        functions=random_flame_functions(rng, variation_names),
        iterations=_randint(rng, 50000, 200000),
        burn_in=_randint(rng, 10, 100),
        gamma=float(rng.uniform(0.5, 2.0)),
        supersample=_randint(rng, 1, 3),
        palette=palette,
        coloring=random_coloring(rng, mode),
    )

    logger.info(f"Generated random preset: {len(preset.functions)} functions, "
                f"palette={palette}, coloring={mode}")
    return preset
