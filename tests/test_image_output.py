"""Tests for PNG/TIFF export and embedded render metadata."""

import numpy as np
import pytest
from PIL import Image

from flame_generator.rendering.image_output import (
    ImageExporter, RenderMetadata, extract_metadata_from_image,
)


@pytest.fixture
def image_array():
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(12, 16, 4), dtype=np.uint8)


@pytest.fixture
def metadata():
    return RenderMetadata(
        resolution=(16, 12),
        iterations=1000,
        burn_in=20,
        gamma=2.2,
        supersample=2,
        coloring_mode='orbit-angle',
        palette=['#000000', '#ffffff'],
        render_time_seconds=0.5,
        preset={'width': 16, 'height': 12, 'functions': []},
    )


class TestRenderMetadata:
    def test_timestamp_defaults(self, metadata):
        assert metadata.timestamp

    def test_json_round_trip(self, metadata):
        restored = RenderMetadata.from_json(metadata.to_json())
        assert restored == metadata
        assert restored.resolution == (16, 12)


class TestImageExporter:
    @pytest.mark.parametrize("suffix", ['.png', '.tif', '.tiff'])
    def test_pixels_and_metadata_survive(self, image_array, metadata, tmp_path, suffix):
        path = ImageExporter().save_image(image_array, tmp_path / f'flame{suffix}', metadata)

        with Image.open(path) as img:
            assert img.mode == 'RGBA'
            assert np.array_equal(np.asarray(img), image_array)

        assert extract_metadata_from_image(path) == metadata

    @pytest.mark.parametrize("compression", ['none', 'fast', 'max'])
    def test_png_compression_levels(self, image_array, tmp_path, compression):
        path = ImageExporter().save_image(image_array, tmp_path / 'flame.png',
                                          compression=compression)
        with Image.open(path) as img:
            assert np.array_equal(np.asarray(img), image_array)

    @pytest.mark.parametrize("compression", ['none', 'lzw', 'deflate'])
    def test_tiff_compression(self, image_array, tmp_path, compression):
        path = ImageExporter().save_image(image_array, tmp_path / 'flame.tiff',
                                          compression=compression)
        with Image.open(path) as img:
            assert np.array_equal(np.asarray(img), image_array)

    def test_float_rgb_array(self, tmp_path):
        array = np.full((4, 5, 3), 0.5)
        path = ImageExporter().save_image(array, tmp_path / 'gray.png')
        with Image.open(path) as img:
            assert img.mode == 'RGB'
            assert img.size == (5, 4)

    def test_unsupported_format(self, image_array, tmp_path):
        with pytest.raises(ValueError, match="Unsupported format"):
            ImageExporter().save_image(image_array, tmp_path / 'flame.jpg')

    def test_bad_shape(self, tmp_path):
        with pytest.raises(ValueError):
            ImageExporter().save_image(np.zeros((4, 4)), tmp_path / 'flat.png')

    def test_no_metadata(self, image_array, tmp_path):
        path = ImageExporter().save_image(image_array, tmp_path / 'plain.png')
        assert extract_metadata_from_image(path) is None

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / 'fake.png'
        path.write_bytes(b'not an image')
        assert extract_metadata_from_image(path) is None
