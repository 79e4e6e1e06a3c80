"""
Palette management for flame coloring.

A palette maps a normalized scalar ``t`` in [0, 1] to an RGB triple with
components in [0, 1]. Palettes are either procedural (the HSV rainbow) or
piecewise-linear interpolations over a list of color stops, which can come
from hex strings, matplotlib colormaps or GIMP palette files.
"""

import colorsys
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
import logging

import numpy as np
from matplotlib import colormaps

from ..core.errors import InvalidHexColorError, UnknownPaletteError

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]
PaletteFunction = Callable[[float], RGB]

_HEX_DIGITS = re.compile(r'^[0-9a-fA-F]+$')


@dataclass(frozen=True)
class ColorRGB:
    """RGB color representation."""
    r: float
    g: float
    b: float

    def __post_init__(self):
        """Validate RGB values."""
        for component in (self.r, self.g, self.b):
            if not 0 <= component <= 1:
                raise ValueError("RGB components must be between 0 and 1")

    def to_tuple(self) -> RGB:
        """Convert to RGB tuple."""
        return (self.r, self.g, self.b)

    @classmethod
    def from_hex(cls, value: str) -> 'ColorRGB':
        return cls(*parse_hex_color(value))


def parse_hex_color(value: str) -> RGB:
    """
    Parse ``#rgb`` or ``#rrggbb`` (the ``#`` is optional) into [0, 1] components.

    Raises:
        InvalidHexColorError: For any other input
    """
    if not isinstance(value, str):
        raise InvalidHexColorError(str(value))
    digits = value[1:] if value.startswith('#') else value
    if not _HEX_DIGITS.match(digits):
        raise InvalidHexColorError(value)

    if len(digits) == 3:
        channels = [int(ch * 2, 16) for ch in digits]
    elif len(digits) == 6:
        channels = [int(digits[i:i + 2], 16) for i in (0, 2, 4)]
    else:
        raise InvalidHexColorError(value)

    return (channels[0] / 255.0, channels[1] / 255.0, channels[2] / 255.0)


class RainbowPalette:
    """Procedural palette sweeping the HSV hue circle at full saturation and value."""

    name = "Rainbow"

    def __call__(self, t: float) -> RGB:
        return colorsys.hsv_to_rgb(t % 1.0, 1.0, 1.0)


class Palette:
    """Color stops with linear interpolation."""

    def __init__(self, colors: Sequence[Union[ColorRGB, Sequence[float]]], name: str = "Custom"):
        """
        Initialize color palette.

        Args:
            colors: Colors in the palette, evenly spaced over [0, 1]
            name: Human-readable name for the palette
        """
        self.name = name
        self.colors: List[ColorRGB] = []

        for color in colors:
            if isinstance(color, ColorRGB):
                self.colors.append(color)
            elif isinstance(color, (tuple, list)) and len(color) == 3:
                self.colors.append(ColorRGB(*color))
            else:
                raise ValueError(f"Invalid color format: {color}")

        if not self.colors:
            raise ValueError("Palette must contain at least 1 color")

        self._stops = np.array([c.to_tuple() for c in self.colors], dtype=np.float64)
        self._positions = np.linspace(0.0, 1.0, len(self.colors))

    def __call__(self, t: float) -> RGB:
        """Interpolate a single color at position t (clamped to [0, 1])."""
        t = min(max(float(t), 0.0), 1.0)
        n = len(self.colors)
        if n == 1:
            return self.colors[0].to_tuple()

        pos = t * (n - 1)
        i = int(pos)
        f = pos - i
        c1 = self.colors[i]
        c2 = self.colors[min(i + 1, n - 1)]
        return (c1.r * (1 - f) + c2.r * f,
                c1.g * (1 - f) + c2.g * f,
                c1.b * (1 - f) + c2.b * f)

    def interpolate(self, t: np.ndarray) -> np.ndarray:
        """
        Interpolate an array of positions.

        Returns:
            Array of shape ``t.shape + (3,)``
        """
        t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
        if len(self.colors) == 1:
            return np.broadcast_to(self._stops[0], t.shape + (3,)).copy()
        return np.stack([np.interp(t, self._positions, self._stops[:, k]) for k in range(3)],
                        axis=-1)

    @classmethod
    def from_hex(cls, colors: Sequence[str], name: str = "Custom") -> 'Palette':
        """Create a palette from hex strings such as ``["#ff0000", "#00f"]``."""
        return cls([ColorRGB.from_hex(c) for c in colors], name=name)

    @classmethod
    def from_matplotlib(cls, cmap_name: str, n_samples: int = 32) -> 'Palette':
        """Create palette from matplotlib colormap."""
        cmap = colormaps[cmap_name]
        colors = []

        for t in np.linspace(0, 1, n_samples):
            rgba = cmap(t)
            colors.append(ColorRGB(float(rgba[0]), float(rgba[1]), float(rgba[2])))

        return cls(colors, name=cmap_name)

    @classmethod
    def load_from_file(cls, filepath: Path) -> 'Palette':
        """Load palette from GPL file."""
        colors = []
        name = Path(filepath).stem

        with open(filepath, 'r') as f:
            for line in f:
                line = line.strip()
                if line.startswith("Name:"):
                    name = line.split(":", 1)[1].strip()
                elif line and not line.startswith("#") and not line.startswith("GIMP"):
                    parts = line.split()
                    if len(parts) >= 3:
                        try:
                            r, g, b = int(parts[0]), int(parts[1]), int(parts[2])
                        except ValueError:
                            continue
                        colors.append(ColorRGB(r / 255.0, g / 255.0, b / 255.0))

        if not colors:
            raise ValueError(f"No valid colors found in {filepath}")

        return cls(colors, name)


PaletteSpec = Union[str, Sequence[str], None]


class PaletteRegistry:
    """Named palettes plus resolution of inline hex arrays."""

    def __init__(self, default: Optional[PaletteFunction] = None):
        self.default = default if default is not None else RainbowPalette()
        self._palettes: Dict[str, PaletteFunction] = {'rainbow': self.default}

    def register(self, name: str, fn: PaletteFunction) -> None:
        """Register a palette function under ``name``."""
        if not callable(fn):
            raise ValueError(f"Palette '{name}' must be callable")
        self._palettes[name] = fn
        logger.debug(f"Registered palette: {name}")

    def get(self, name_or_colors: PaletteSpec = None) -> PaletteFunction:
        """
        Resolve a palette.

        Args:
            name_or_colors: A registered name, a list of hex color strings, or
                None / an empty list for the default rainbow

        Raises:
            UnknownPaletteError: If a name is not registered
            InvalidHexColorError: If a hex string is malformed
        """
        if isinstance(name_or_colors, str):
            fn = self._palettes.get(name_or_colors)
            if fn is None:
                raise UnknownPaletteError(name_or_colors, self._palettes.keys())
            return fn
        if name_or_colors:
            return Palette.from_hex(list(name_or_colors))
        return self.default

    def names(self) -> List[str]:
        return list(self._palettes.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._palettes


def _builtin_palettes() -> Dict[str, Palette]:
    palettes = {
        'hot': Palette([(0, 0, 0), (1, 0, 0), (1, 1, 0), (1, 1, 1)], name="Hot"),
        'cool': Palette([(0, 0, 0), (0, 0, 1), (0, 1, 1), (1, 1, 1)], name="Cool"),
        'gray': Palette([(0, 0, 0), (1, 1, 1)], name="Grayscale"),
        'fire': Palette([
            (0, 0, 0), (0.5, 0, 0), (1, 0, 0), (1, 0.5, 0), (1, 1, 0), (1, 1, 1),
        ], name="Fire"),
        'ocean': Palette([
            (0, 0, 0.2), (0, 0, 0.8), (0, 0.5, 1), (0, 1, 1), (0.5, 1, 1), (1, 1, 1),
        ], name="Ocean"),
    }

    for name in ('viridis', 'plasma', 'inferno', 'magma', 'cividis'):
        try:
            palettes[name] = Palette.from_matplotlib(name, 32)
        except KeyError as e:
            logger.warning(f"Could not load matplotlib palette {name}: {e}")

    return palettes


def create_default_registry() -> PaletteRegistry:
    """Registry with the rainbow default and every built-in palette."""
    registry = PaletteRegistry()
    for name, palette in _builtin_palettes().items():
        registry.register(name, palette)
    return registry


_default_registry = create_default_registry()


def default_registry() -> PaletteRegistry:
    return _default_registry


def register_palette(name: str, fn: PaletteFunction) -> None:
    _default_registry.register(name, fn)


def get_palette(name_or_colors: PaletteSpec = None) -> PaletteFunction:
    return _default_registry.get(name_or_colors)


def list_palettes() -> List[str]:
    return _default_registry.names()
