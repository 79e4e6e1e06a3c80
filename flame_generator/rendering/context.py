"""
Shared accumulation context for coloring strategies.

Strategies decide the color of each sample; the context stores the colored
samples and, at finalize time, bins them into a supersampled grid, downsamples
each ``supersample x supersample`` block, tone maps the HDR color sums with a
Reinhard curve and writes gamma-corrected RGBA8 pixels.
"""

from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np

from ..core.flame_types import Bounds

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]


def pixel_view(buffer, width: int, height: int) -> np.ndarray:
    """
    View a caller-owned RGBA8 buffer as a writable ``(height, width, 4)`` array.

    Raises:
        ValueError: If the buffer is read-only or not ``width * height * 4`` bytes
    """
    view = np.frombuffer(buffer, dtype=np.uint8)
    expected = width * height * 4
    if view.size != expected:
        raise ValueError(f"Output buffer has {view.size} bytes, expected {expected} "
                         f"({width}x{height} RGBA)")
    if not view.flags.writeable:
        raise ValueError("Output buffer must be writable")
    return view.reshape(height, width, 4)


class AccumulationContext:
    """Colored sample store with supersampled tone-mapped rasterization."""

    def __init__(self, width: int, height: int, supersample: int = 1,
                 gamma: float = 1.0, bounds: Optional[Bounds] = None):
        """
        Initialize the context.

        Args:
            width: Output width in pixels
            height: Output height in pixels
            supersample: Grid cells per output pixel along each axis
            gamma: Gamma; channels are raised to ``1 / gamma``
            bounds: Fixed fractal-space view. When None the running min/max
                of the committed samples is used.
        """
        self.width = int(width)
        self.height = int(height)
        self.supersample = max(1, int(supersample))
        self.gamma = float(gamma)
        self.bounds = bounds

        self._xs: List[float] = []
        self._ys: List[float] = []
        self._colors: List[RGB] = []
        self._chunks: List[Tuple[np.ndarray, np.ndarray, np.ndarray]] = []

        self.min_x = np.inf
        self.max_x = -np.inf
        self.min_y = np.inf
        self.max_y = -np.inf

    @property
    def sample_count(self) -> int:
        return len(self._xs) + sum(len(xs) for xs, _, _ in self._chunks)

    @property
    def sample_bounds(self) -> Optional[Bounds]:
        """Running min/max of every committed sample, or None if empty."""
        if self.min_x > self.max_x:
            return None
        return Bounds(self.min_x, self.max_x, self.min_y, self.max_y)

    def commit_sample(self, x: float, y: float, color: RGB) -> None:
        """Store one sample with its RGB color (channels in [0, 1])."""
        self._xs.append(x)
        self._ys.append(y)
        self._colors.append(color)
        if x < self.min_x:
            self.min_x = x
        if x > self.max_x:
            self.max_x = x
        if y < self.min_y:
            self.min_y = y
        if y > self.max_y:
            self.max_y = y

    def commit_samples(self, xs: Sequence[float], ys: Sequence[float], color: RGB) -> None:
        """Store a run of samples sharing one color (an orbit)."""
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        if xs.size == 0:
            return
        colors = np.broadcast_to(np.asarray(color, dtype=np.float64), (xs.size, 3))
        self._chunks.append((xs, ys, colors))
        # NaN coordinates are skipped, as in commit_sample
        if not np.isnan(xs).all():
            self.min_x = min(self.min_x, float(np.nanmin(xs)))
            self.max_x = max(self.max_x, float(np.nanmax(xs)))
        if not np.isnan(ys).all():
            self.min_y = min(self.min_y, float(np.nanmin(ys)))
            self.max_y = max(self.max_y, float(np.nanmax(ys)))

    def _collect(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        xs = [np.asarray(self._xs, dtype=np.float64)]
        ys = [np.asarray(self._ys, dtype=np.float64)]
        colors = [np.asarray(self._colors, dtype=np.float64).reshape(-1, 3)]
        for cx, cy, cc in self._chunks:
            xs.append(cx)
            ys.append(cy)
            colors.append(cc)
        return np.concatenate(xs), np.concatenate(ys), np.concatenate(colors)

    @staticmethod
    def _normalize(values: np.ndarray, low: float, span: float) -> np.ndarray:
        # A degenerate axis collapses onto the middle of the grid
        if span == 0 or not np.isfinite(span):
            return np.full(values.shape, 0.5)
        return (values - low) / span

    def rasterize(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Bin the samples into the supersampled grid and downsample.

        Returns:
            ``(counts, rgb_sums)`` of shapes ``(H, W)`` and ``(H, W, 3)``
        """
        s = self.supersample
        grid_w = self.width * s
        grid_h = self.height * s

        counts = np.zeros(grid_w * grid_h, dtype=np.float64)
        sums = np.zeros((grid_w * grid_h, 3), dtype=np.float64)

        bounds = self.bounds if self.bounds is not None else self.sample_bounds
        if bounds is not None:
            xs, ys, colors = self._collect()
            nx = self._normalize(xs, bounds.xmin, bounds.width)
            ny = self._normalize(ys, bounds.ymin, bounds.height)
            with np.errstate(invalid='ignore'):
                px = np.floor(nx * (grid_w - 1))
                py = np.floor((1.0 - ny) * (grid_h - 1))
                inside = (px >= 0) & (px < grid_w) & (py >= 0) & (py < grid_h)

            dropped = int(xs.size - np.count_nonzero(inside))
            if dropped:
                logger.debug(f"Discarded {dropped} samples outside the view")

            index = py[inside].astype(np.int64) * grid_w + px[inside].astype(np.int64)
            counts = np.bincount(index, minlength=grid_w * grid_h).astype(np.float64)
            colors = colors[inside]
            for channel in range(3):
                sums[:, channel] = np.bincount(index, weights=colors[:, channel],
                                               minlength=grid_w * grid_h)

        counts = counts.reshape(self.height, s, self.width, s).sum(axis=(1, 3))
        sums = sums.reshape(self.height, s, self.width, s, 3).sum(axis=(1, 3))
        return counts, sums

    def finalize(self, buffer) -> None:
        """
        Write RGBA8 pixels into ``buffer``.

        Pixels that received no samples are left untouched. Stored samples are
        not modified, so finalizing twice yields identical bytes.
        """
        pixels = pixel_view(buffer, self.width, self.height)
        counts, sums = self.rasterize()

        hit = counts > 0
        hdr = sums[hit] / float(self.supersample * self.supersample)
        mapped = hdr / (1.0 + hdr)
        corrected = np.power(mapped, 1.0 / self.gamma)
        values = np.clip(np.floor(corrected * 255.0), 0, 255).astype(np.uint8)

        pixels[hit, :3] = values
        pixels[hit, 3] = 255
        logger.debug(f"Finalized {self.sample_count} samples into "
                     f"{int(np.count_nonzero(hit))} of {self.width * self.height} pixels")

    def to_image(self) -> np.ndarray:
        """Finalize into a fresh transparent ``(H, W, 4)`` uint8 array."""
        image = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        self.finalize(image)
        return image
