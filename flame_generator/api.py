"""
Main API for flame rendering.

This module ties the chaos-game driver, the coloring strategies, the palette
resolver and image export together behind :class:`FlameRenderer` and the
module-level :func:`render` / :func:`render_image` shortcuts.
"""

import numpy as np
from typing import Optional, Union
from pathlib import Path
import logging
import time

from . import __version__
from .core.chaos_game import ChaosGame
from .core.flame_types import FlamePreset
from .core.variations import VariationRegistry, create_default_registry as create_variation_registry
from .core.variations import default_registry as default_variation_registry
from .core.variations import resolve_variation, list_variations
from .io.presets import preset_to_dict
from .rendering.context import pixel_view
from .rendering.image_output import ImageExporter, RenderMetadata
from .rendering.palette import PaletteRegistry, get_palette, register_palette, list_palettes
from .rendering.palette import default_registry as default_palette_registry
from .rendering.strategies import ColoringStrategy, StrategyOptions, StrategyRegistry
from .rendering.strategies import get_strategy_factory, register_strategy, list_strategies
from .rendering.strategies import default_registry as default_strategy_registry

logger = logging.getLogger(__name__)

__all__ = [
    "FlameRenderer",
    "render",
    "render_image",
    "resolve_variation",
    "list_variations",
    "register_strategy",
    "get_strategy_factory",
    "list_strategies",
    "register_palette",
    "get_palette",
    "list_palettes",
]


class FlameRenderer:
    """Flame rendering engine bound to a set of registries and a random source."""

    def __init__(self, variations: Optional[VariationRegistry] = None,
                 palettes: Optional[PaletteRegistry] = None,
                 strategies: Optional[StrategyRegistry] = None,
                 rng=None):
        """
        Initialize flame renderer.

        Args:
            variations: Variation registry (process-wide default if None)
            palettes: Palette registry (process-wide default if None)
            strategies: Coloring strategy registry (process-wide default if None)
            rng: numpy Generator-compatible random source. When given without
                a variation registry, blur and noise draw from it as well.
        """
        if variations is None:
            variations = (default_variation_registry() if rng is None
                          else create_variation_registry(rng))
        self.variations = variations
        self.palettes = palettes if palettes is not None else default_palette_registry()
        self.strategies = strategies if strategies is not None else default_strategy_registry()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.image_exporter = ImageExporter()
        self.last_render_time = 0.0

    def render(self, preset: FlamePreset, buffer) -> ColoringStrategy:
        """
        Render a preset into a caller-owned RGBA8 buffer.

        Name lookups and the buffer size are checked before sampling starts,
        so a failed render never writes a pixel. The preset itself is trusted;
        see :meth:`FlamePreset.validate`.

        Args:
            preset: Flame to render
            buffer: Writable bytes-like object of ``width * height * 4`` bytes

        Returns:
            The finalized coloring strategy

        Raises:
            UnknownPaletteError, UnknownStrategyError, UnknownVariationError:
                If the preset names something that is not registered
            InvalidHexColorError: If an inline palette color is malformed
            ConfigurationError: If the function list is empty or has no
                positive probability
            ValueError: If the buffer has the wrong size
        """
        start_time = time.time()
        coloring = preset.coloring

        palette = self.palettes.get(preset.palette)
        factory = self.strategies.get(coloring.mode)
        pixel_view(buffer, preset.width, preset.height)
        game = ChaosGame(preset.functions, self.variations, self.rng)

        logger.info(f"Starting render: {preset.width}x{preset.height}, "
                    f"{len(preset.functions)} functions, {preset.iterations} iterations, "
                    f"coloring={coloring.mode}")

        def make_strategy(bounds):
            return factory.create(StrategyOptions.from_preset(preset, palette, bounds))

        strategy = game.run(make_strategy, buffer, preset.iterations,
                            burn_in=preset.burn_in,
                            final_transform=preset.final_transform,
                            width=preset.width, height=preset.height)

        self.last_render_time = time.time() - start_time
        logger.info(f"Render complete: {self.last_render_time:.2f}s")
        return strategy

    def render_image(self, preset: FlamePreset) -> np.ndarray:
        """
        Render a preset into a new array.

        Returns:
            RGBA uint8 array of shape (height, width, 4); unvisited pixels are
            fully transparent
        """
        image = np.zeros((preset.height, preset.width, 4), dtype=np.uint8)
        self.render(preset, image)
        return image

    def render_to_file(self, preset: FlamePreset, output_path: Union[str, Path],
                       save_metadata: bool = True,
                       compression: Optional[str] = None) -> np.ndarray:
        """
        Render a preset and save it as PNG or TIFF.

        Args:
            preset: Flame to render
            output_path: Destination; the suffix selects the format
            save_metadata: Embed the render metadata (preset included)
            compression: Format-specific compression option

        Returns:
            The rendered RGBA array
        """
        image = self.render_image(preset)

        metadata = None
        if save_metadata:
            metadata = RenderMetadata(
                resolution=(preset.width, preset.height),
                iterations=preset.iterations,
                burn_in=preset.burn_in,
                gamma=preset.gamma,
                supersample=preset.supersample,
                coloring_mode=preset.coloring.mode,
                palette=preset.palette,
                render_time_seconds=self.last_render_time,
                software_version=__version__,
                preset=preset_to_dict(preset),
            )

        self.image_exporter.save_image(image, Path(output_path), metadata, compression)
        return image


def render(preset: FlamePreset, buffer, *,
           variations: Optional[VariationRegistry] = None,
           palettes: Optional[PaletteRegistry] = None,
           strategies: Optional[StrategyRegistry] = None,
           rng=None) -> None:
    """Render ``preset`` into ``buffer`` (``width * height * 4`` RGBA8 bytes)."""
    FlameRenderer(variations, palettes, strategies, rng).render(preset, buffer)


def render_image(preset: FlamePreset, *,
                 variations: Optional[VariationRegistry] = None,
                 palettes: Optional[PaletteRegistry] = None,
                 strategies: Optional[StrategyRegistry] = None,
                 rng=None) -> np.ndarray:
    """Render ``preset`` into a new (height, width, 4) uint8 array."""
    return FlameRenderer(variations, palettes, strategies, rng).render_image(preset)
