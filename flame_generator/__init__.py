"""
Fractal flame rendering library.

This library renders fractal flames with an iterated function system: weighted
affine + nonlinear variation transforms are applied over and over to a point,
and the visited points are accumulated, tone mapped and gamma corrected into
an RGBA image.

Key Features:
- Library of classic flame variations plus escape-time fractal warps
- Pluggable coloring strategies (histogram, orbit angle/distance,
  angular momentum, radial flux)
- Supersampling with Reinhard tone mapping
- Named, matplotlib-derived and inline hex palettes
- JSON presets, random presets and PNG/TIFF export with embedded metadata

Example usage:
    >>> from flame_generator import FlameRenderer, load_preset
    >>> preset = load_preset("sierpinski.json")
    >>> image = FlameRenderer().render_image(preset)
"""

__version__ = "1.0.0"
__author__ = "Flame Generator Team"

from flame_generator.core.errors import (
    FlameError, ConfigurationError, InvalidHexColorError,
    UnknownPaletteError, UnknownStrategyError, UnknownVariationError,
)
from flame_generator.core.flame_types import (
    AffineMatrix, FlameFunction, FinalTransform, ColoringOptions, FlamePreset, Sample, Bounds,
)
from flame_generator.core.variations import VariationRegistry, resolve_variation, list_variations
from flame_generator.core.chaos_game import ChaosGame
from flame_generator.rendering.palette import Palette, PaletteRegistry, get_palette, register_palette
from flame_generator.rendering.context import AccumulationContext
from flame_generator.rendering.strategies import (
    ColoringStrategy, StrategyOptions, StrategyRegistry, get_strategy_factory, register_strategy,
)
from flame_generator.rendering.image_output import ImageExporter, RenderMetadata
from flame_generator.io.presets import load_preset, save_preset, preset_from_dict, preset_to_dict
from flame_generator.tools.random_preset import random_flame_preset

# Main API
from flame_generator.api import FlameRenderer, render, render_image

__all__ = [
    "FlameRenderer",
    "render",
    "render_image",
    "FlamePreset",
    "FlameFunction",
    "AffineMatrix",
    "FinalTransform",
    "ColoringOptions",
    "Sample",
    "Bounds",
    "ChaosGame",
    "VariationRegistry",
    "resolve_variation",
    "list_variations",
    "Palette",
    "PaletteRegistry",
    "get_palette",
    "register_palette",
    "AccumulationContext",
    "ColoringStrategy",
    "StrategyOptions",
    "StrategyRegistry",
    "get_strategy_factory",
    "register_strategy",
    "ImageExporter",
    "RenderMetadata",
    "load_preset",
    "save_preset",
    "preset_from_dict",
    "preset_to_dict",
    "random_flame_preset",
    "FlameError",
    "ConfigurationError",
    "InvalidHexColorError",
    "UnknownPaletteError",
    "UnknownStrategyError",
    "UnknownVariationError",
]
