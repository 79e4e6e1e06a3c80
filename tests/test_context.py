"""Tests for the accumulation context: mapping, supersampling and tone mapping."""

import numpy as np
import pytest

from flame_generator.core.flame_types import Bounds
from flame_generator.rendering.context import AccumulationContext, pixel_view


def expected_channel(hdr, gamma=1.0):
    return int(np.floor(np.power(hdr / (1.0 + hdr), 1.0 / gamma) * 255.0))


class TestPixelView:
    def test_shape(self):
        view = pixel_view(bytearray(2 * 3 * 4), 2, 3)
        assert view.shape == (3, 2, 4)

    def test_wrong_size(self):
        with pytest.raises(ValueError, match="expected 24"):
            pixel_view(bytearray(10), 2, 3)

    def test_read_only(self):
        with pytest.raises(ValueError):
            pixel_view(bytes(24), 2, 3)


class TestMapping:
    def test_single_point_lands_in_center(self):
        ctx = AccumulationContext(3, 3)
        ctx.commit_sample(0.25, -4.0, (1.0, 0.0, 0.0))
        image = ctx.to_image()
        assert image[1, 1].tolist() == [expected_channel(1.0), 0, 0, 255]
        assert np.count_nonzero(image[..., 3]) == 1

    def test_y_axis_points_up(self):
        ctx = AccumulationContext(2, 2, bounds=Bounds(0.0, 1.0, 0.0, 1.0))
        ctx.commit_sample(0.0, 1.0, (1.0, 0.0, 0.0))
        ctx.commit_sample(1.0, 0.0, (0.0, 0.0, 1.0))
        image = ctx.to_image()
        assert image[0, 0, 0] > 0 and image[0, 0, 2] == 0
        assert image[1, 1, 2] > 0 and image[1, 1, 0] == 0
        assert image[0, 1, 3] == 0 and image[1, 0, 3] == 0

    def test_running_bounds_cover_all_samples(self):
        ctx = AccumulationContext(4, 4)
        ctx.commit_sample(-1.0, 2.0, (1.0, 1.0, 1.0))
        ctx.commit_samples([3.0, 0.0], [-2.0, 0.5], (1.0, 1.0, 1.0))
        assert ctx.sample_bounds == Bounds(-1.0, 3.0, -2.0, 2.0)
        assert ctx.sample_count == 3

    def test_fixed_bounds_discard_outside_samples(self):
        ctx = AccumulationContext(4, 4, bounds=Bounds(0.0, 1.0, 0.0, 1.0))
        ctx.commit_sample(5.0, 5.0, (1.0, 1.0, 1.0))
        ctx.commit_sample(-1.0, 0.5, (1.0, 1.0, 1.0))
        counts, _ = ctx.rasterize()
        assert counts.sum() == 0
        assert not ctx.to_image().any()

    def test_non_finite_sample_is_discarded(self):
        ctx = AccumulationContext(2, 2, bounds=Bounds(0.0, 1.0, 0.0, 1.0))
        ctx.commit_sample(float('nan'), 0.5, (1.0, 1.0, 1.0))
        ctx.commit_sample(0.0, 0.0, (1.0, 1.0, 1.0))
        counts, _ = ctx.rasterize()
        assert counts.sum() == 1

    def test_nan_coordinates_skipped_in_running_bounds(self):
        nan = float('nan')
        xs, ys = [nan, 1.0, 3.0], [2.0, nan, -1.0]

        one_by_one = AccumulationContext(4, 4)
        for x, y in zip(xs, ys):
            one_by_one.commit_sample(x, y, (1.0, 1.0, 1.0))
        batched = AccumulationContext(4, 4)
        batched.commit_samples(xs, ys, (1.0, 1.0, 1.0))

        assert batched.sample_bounds == one_by_one.sample_bounds == Bounds(1.0, 3.0, -1.0, 2.0)

    def test_all_nan_run_leaves_bounds_alone(self):
        ctx = AccumulationContext(4, 4)
        ctx.commit_sample(0.5, 0.5, (1.0, 1.0, 1.0))
        ctx.commit_samples([float('nan')] * 2, [0.0, 1.0], (1.0, 1.0, 1.0))
        assert ctx.sample_bounds == Bounds(0.5, 0.5, 0.0, 1.0)
        assert ctx.sample_count == 3


class TestToneMapping:
    def test_density_brightens(self):
        ctx = AccumulationContext(1, 1)
        for _ in range(2):
            ctx.commit_sample(0.0, 0.0, (1.0, 1.0, 1.0))
        image = ctx.to_image()
        assert image[0, 0].tolist() == [expected_channel(2.0)] * 3 + [255]

    def test_gamma(self):
        ctx = AccumulationContext(1, 1, gamma=2.0)
        ctx.commit_sample(0.0, 0.0, (1.0, 0.0, 0.0))
        assert ctx.to_image()[0, 0, 0] == expected_channel(1.0, gamma=2.0)

    def test_supersample_block_sum(self):
        # 2x2 output over a 4x4 grid; both samples fall inside output pixel (0, 0)
        ctx = AccumulationContext(2, 2, supersample=2, bounds=Bounds(0.0, 1.0, 0.0, 1.0))
        ctx.commit_sample(0.0, 1.0, (1.0, 0.0, 0.0))
        ctx.commit_sample(0.4, 1.0, (1.0, 0.0, 0.0))
        counts, sums = ctx.rasterize()
        assert counts.tolist() == [[2.0, 0.0], [0.0, 0.0]]
        assert sums[0, 0].tolist() == [2.0, 0.0, 0.0]
        image = ctx.to_image()
        assert image[0, 0, 0] == expected_channel(2.0 / 4.0)

    def test_unvisited_pixels_untouched(self):
        ctx = AccumulationContext(2, 2, bounds=Bounds(0.0, 1.0, 0.0, 1.0))
        ctx.commit_sample(0.0, 1.0, (0.0, 1.0, 0.0))
        buffer = bytearray([7] * 16)
        ctx.finalize(buffer)
        pixels = np.frombuffer(bytes(buffer), dtype=np.uint8).reshape(2, 2, 4)
        assert pixels[0, 0, 3] == 255
        assert (pixels[0, 1] == 7).all()
        assert (pixels[1] == 7).all()

    def test_empty_context_writes_nothing(self):
        ctx = AccumulationContext(3, 2)
        assert ctx.sample_bounds is None
        buffer = bytearray([9] * 24)
        ctx.finalize(buffer)
        assert buffer == bytearray([9] * 24)

    def test_finalize_is_repeatable(self, seeded_rng):
        ctx = AccumulationContext(8, 6, supersample=2, gamma=1.5)
        for x, y in seeded_rng.normal(size=(500, 2)):
            ctx.commit_sample(float(x), float(y), (0.2, 0.6, 1.0))
        first = bytearray(8 * 6 * 4)
        second = bytearray(8 * 6 * 4)
        ctx.finalize(first)
        ctx.finalize(second)
        assert first == second
