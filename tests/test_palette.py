"""Tests for palette parsing, interpolation and the palette registry."""

import colorsys

import numpy as np
import pytest

from flame_generator.core.errors import InvalidHexColorError, UnknownPaletteError
from flame_generator.rendering.palette import (
    ColorRGB, Palette, PaletteRegistry, RainbowPalette, get_palette, list_palettes,
    parse_hex_color, register_palette,
)


class TestHexParsing:
    def test_long_form(self):
        assert parse_hex_color('#ff8000') == pytest.approx((1.0, 128 / 255, 0.0))

    def test_short_form(self):
        assert parse_hex_color('#f80') == pytest.approx((1.0, 136 / 255, 0.0))

    def test_hash_is_optional(self):
        assert parse_hex_color('00FF00') == (0.0, 1.0, 0.0)

    @pytest.mark.parametrize("value", ['', '#', '#12', '#12345', '#1234567', '#gggggg', 'red', '#ff00zz'])
    def test_invalid(self, value):
        with pytest.raises(InvalidHexColorError) as exc_info:
            parse_hex_color(value)
        assert isinstance(exc_info.value, ValueError)
        assert value in str(exc_info.value)

    def test_color_from_hex(self):
        assert ColorRGB.from_hex('#0000ff') == ColorRGB(0.0, 0.0, 1.0)


class TestPalette:
    def test_endpoints_and_midpoint(self):
        palette = Palette([(0, 0, 0), (1, 1, 1)])
        assert palette(0.0) == (0.0, 0.0, 0.0)
        assert palette(1.0) == (1.0, 1.0, 1.0)
        assert palette(0.5) == pytest.approx((0.5, 0.5, 0.5))

    def test_piecewise_segments(self):
        palette = Palette([(1, 0, 0), (0, 1, 0), (0, 0, 1)])
        assert palette(0.25) == pytest.approx((0.5, 0.5, 0.0))
        assert palette(0.75) == pytest.approx((0.0, 0.5, 0.5))

    def test_input_is_clamped(self):
        palette = Palette([(0, 0, 0), (1, 1, 1)])
        assert palette(-3.0) == (0.0, 0.0, 0.0)
        assert palette(7.0) == (1.0, 1.0, 1.0)

    def test_single_stop_is_constant(self):
        palette = Palette.from_hex(['#336699'])
        assert palette(0.0) == palette(0.7) == palette(1.0)

    def test_vectorized_matches_scalar(self):
        palette = Palette([(0, 0, 0), (1, 0.5, 0), (0.2, 0.4, 1)])
        t = np.linspace(-0.2, 1.2, 29)
        colors = palette.interpolate(t)
        assert colors.shape == (29, 3)
        for ti, color in zip(t, colors):
            np.testing.assert_allclose(color, palette(ti), atol=1e-12)

    def test_empty_palette_rejected(self):
        with pytest.raises(ValueError):
            Palette([])

    def test_component_range_enforced(self):
        with pytest.raises(ValueError):
            Palette([(0, 0, 2)])

    def test_from_matplotlib(self):
        palette = Palette.from_matplotlib('viridis', 8)
        assert len(palette.colors) == 8
        assert palette.name == 'viridis'

    def test_load_gpl(self, tmp_path):
        path = tmp_path / 'sunset.gpl'
        path.write_text("GIMP Palette\nName: Sunset\n#\n255   0   0 Red\n  0   0 255 Blue\nnot a color\n")
        palette = Palette.load_from_file(path)
        assert palette.name == 'Sunset'
        assert palette(0.0) == (1.0, 0.0, 0.0)
        assert palette(1.0) == (0.0, 0.0, 1.0)


class TestRainbow:
    @pytest.mark.parametrize("t", [0.0, 0.2, 0.5, 0.9])
    def test_hsv_sweep(self, t):
        assert RainbowPalette()(t) == pytest.approx(colorsys.hsv_to_rgb(t, 1.0, 1.0))

    def test_wraps(self):
        rainbow = RainbowPalette()
        assert rainbow(1.25) == pytest.approx(rainbow(0.25))
        assert rainbow(-0.25) == pytest.approx(rainbow(0.75))


class TestPaletteRegistry:
    def test_default_is_rainbow(self):
        assert isinstance(get_palette(None), RainbowPalette)
        assert isinstance(get_palette([]), RainbowPalette)
        assert isinstance(get_palette('rainbow'), RainbowPalette)

    def test_builtins_registered(self):
        names = list_palettes()
        for name in ('rainbow', 'hot', 'cool', 'gray', 'fire', 'ocean',
                     'viridis', 'plasma', 'inferno', 'magma', 'cividis'):
            assert name in names

    def test_hex_array(self):
        palette = get_palette(['#000', '#fff'])
        assert palette(0.5) == pytest.approx((0.5, 0.5, 0.5))

    def test_hex_array_invalid(self):
        with pytest.raises(InvalidHexColorError):
            get_palette(['#000', 'nope'])

    def test_unknown_name(self):
        with pytest.raises(UnknownPaletteError) as exc_info:
            get_palette('no-such-palette')
        assert "Unknown palette 'no-such-palette'" in str(exc_info.value)

    def test_register_on_own_registry(self):
        registry = PaletteRegistry()
        registry.register('red', lambda t: (1.0, 0.0, 0.0))
        assert 'red' in registry
        assert registry.get('red')(0.3) == (1.0, 0.0, 0.0)
        with pytest.raises(UnknownPaletteError):
            registry.get('hot')

    def test_register_default(self):
        register_palette('test-green', lambda t: (0.0, t, 0.0))
        assert get_palette('test-green')(0.5) == (0.0, 0.5, 0.0)

    def test_register_rejects_non_callable(self):
        with pytest.raises(ValueError):
            PaletteRegistry().register('bad', 'not callable')
