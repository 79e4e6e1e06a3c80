"""
Chaos-game driver.

The driver repeatedly picks a flame function at random (weighted by its
probability), applies it to the current point and hands every resulting
sample to a coloring strategy. A render runs in phases: burn-in, an optional
dry run that discovers the attractor's bounds for the final post-transform,
the main sampling loop, and finally the strategy's finalize step.
"""

import math
import time
from typing import Callable, Iterator, Optional, Sequence, Tuple
import logging

import numpy as np

from .errors import ConfigurationError
from .flame import compile_functions
from .flame_types import Bounds, FinalTransform, FlameFunction, Sample
from .variations import VariationRegistry

logger = logging.getLogger(__name__)

# Number of function selections drawn from the random source per call
DEFAULT_CHUNK_SIZE = 65536


class PostTransform:
    """
    Final transform bound to the fractal-space region it frames.

    Points are centered on ``bounds``, scaled, rotated, then translated by an
    offset given in output pixels. ``view_bounds`` is the centered region the
    accumulator should map onto the canvas.
    """

    def __init__(self, transform: FinalTransform, bounds: Bounds, width: int, height: int):
        self.transform = transform
        self.bounds = bounds
        self.center_x, self.center_y = bounds.center
        span_x = bounds.width or 1.0
        span_y = bounds.height or 1.0

        theta = math.radians(transform.rotation)
        self.cos_theta = math.cos(theta)
        self.sin_theta = math.sin(theta)
        self.scale = transform.scale

        # Pixel offsets; screen y grows downwards, fractal y upwards
        self.offset_x = transform.translate[0] * span_x / width
        self.offset_y = -transform.translate[1] * span_y / height

        self.view_bounds = Bounds(-span_x / 2.0, span_x / 2.0, -span_y / 2.0, span_y / 2.0)

    def __call__(self, x: float, y: float) -> Tuple[float, float]:
        dx = (x - self.center_x) * self.scale
        dy = (y - self.center_y) * self.scale
        return (dx * self.cos_theta - dy * self.sin_theta + self.offset_x,
                dx * self.sin_theta + dy * self.cos_theta + self.offset_y)


class ChaosGame:
    """Weighted random iteration of a set of flame functions."""

    def __init__(self, functions: Sequence[FlameFunction],
                 registry: Optional[VariationRegistry] = None,
                 rng=None, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize the driver.

        Args:
            functions: Flame functions of the IFS
            registry: Variation registry used to resolve variation names
            rng: Random source with ``random(size)`` and ``uniform(low, high, size)``
                (a ``numpy.random.Generator`` by default)
            chunk_size: Number of selections drawn per batch

        Raises:
            ConfigurationError: If there are no functions or the total
                probability is not positive
            UnknownVariationError: If a function references an unknown variation
        """
        if not functions:
            raise ConfigurationError("at least one flame function is required")

        probabilities = np.array([fn.probability for fn in functions], dtype=np.float64)
        if np.any(probabilities < 0) or not np.all(np.isfinite(probabilities)):
            raise ConfigurationError("function probabilities must be finite and non-negative")

        self.cumulative = np.cumsum(probabilities)
        self.total_probability = float(self.cumulative[-1])
        if self.total_probability <= 0:
            raise ConfigurationError("total function probability must be positive")

        self.functions = list(functions)
        self.compiled = compile_functions(self.functions, registry)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.chunk_size = max(1, int(chunk_size))

    def select(self, count: int) -> np.ndarray:
        """
        Draw ``count`` function indices.

        Each draw ``r`` in ``[0, total)`` picks the first function whose
        cumulative probability exceeds ``r``; rounding at the top end falls
        back to the last function.
        """
        draws = np.asarray(self.rng.random(count), dtype=np.float64) * self.total_probability
        indices = np.searchsorted(self.cumulative, draws, side='right')
        return np.minimum(indices, len(self.compiled) - 1)

    def start_point(self) -> Tuple[float, float]:
        """Random start point in [-1, 1) x [-1, 1)."""
        x, y = self.rng.uniform(-1.0, 1.0, 2)
        return (float(x), float(y))

    def iterate(self, x: float, y: float, count: int) -> Iterator[Sample]:
        """Yield ``count`` successive samples starting from (x, y)."""
        compiled = self.compiled
        remaining = count
        while remaining > 0:
            batch = min(remaining, self.chunk_size)
            for index in self.select(batch).tolist():
                x, y = compiled[index](x, y)
                yield Sample(x, y, index)
            remaining -= batch

    def burn_in(self, x: float, y: float, count: int) -> Tuple[float, float]:
        """Iterate ``count`` times, discarding the samples."""
        for sample in self.iterate(x, y, count):
            x, y = sample.x, sample.y
        return (x, y)

    def warm_up(self, burn_in: int) -> Tuple[float, float]:
        """Pick a random start point and run the burn-in phase from it."""
        x, y = self.start_point()
        if burn_in > 0:
            x, y = self.burn_in(x, y, burn_in)
            logger.debug(f"Burn-in complete after {burn_in} iterations at ({x:.4g}, {y:.4g})")
        return (x, y)

    def discover_bounds(self, x: float, y: float, count: int) -> Bounds:
        """Dry run tracking the running min/max of the visited points."""
        xmin = xmax = x
        ymin = ymax = y
        for sample in self.iterate(x, y, count):
            sx, sy = sample.x, sample.y
            if sx < xmin:
                xmin = sx
            if sx > xmax:
                xmax = sx
            if sy < ymin:
                ymin = sy
            if sy > ymax:
                ymax = sy
        return Bounds(xmin, xmax, ymin, ymax)

    def prepare_post_transform(self, x: float, y: float, iterations: int,
                               final_transform: Optional[FinalTransform],
                               width: int, height: int) -> Optional[PostTransform]:
        """
        Bind the final transform to its bounds, discovering them if needed.

        Returns None when there is nothing to apply.
        """
        if final_transform is None:
            return None
        if final_transform.is_identity and final_transform.bounds is None:
            return None

        bounds = final_transform.bounds
        if bounds is None:
            start_time = time.time()
            bounds = self.discover_bounds(x, y, iterations)
            logger.info(f"Discovered bounds {tuple(round(v, 4) for v in bounds)} "
                        f"in {time.time() - start_time:.2f}s")
        return PostTransform(final_transform, bounds, width, height)

    def sample(self, strategy, x: float, y: float, iterations: int,
               post_transform: Optional[PostTransform] = None) -> Tuple[float, float]:
        """
        Main sampling loop: feed ``iterations`` samples into ``strategy``.

        Returns:
            The last (untransformed) point of the orbit
        """
        accumulate = strategy.accumulate
        if post_transform is None:
            for sample in self.iterate(x, y, iterations):
                accumulate(sample)
                x, y = sample.x, sample.y
        else:
            for sample in self.iterate(x, y, iterations):
                x, y = sample.x, sample.y
                tx, ty = post_transform(x, y)
                accumulate(Sample(tx, ty, sample.function_index))
        return (x, y)

    def run(self, make_strategy: Callable[[Optional[Bounds]], object], buffer,
            iterations: int, burn_in: int = 0,
            final_transform: Optional[FinalTransform] = None,
            width: int = 1, height: int = 1):
        """
        Run every phase of a render and finalize into ``buffer``.

        Args:
            make_strategy: Called with the fixed view bounds (or None) to
                build the coloring strategy once framing is known
            buffer: Destination RGBA8 buffer
            iterations: Number of samples in the main loop
            burn_in: Number of discarded warm-up iterations
            final_transform: Optional post-transform
            width, height: Output size, used to convert pixel translations

        Returns:
            The finalized strategy
        """
        x, y = self.warm_up(burn_in)
        post_transform = self.prepare_post_transform(x, y, iterations, final_transform,
                                                     width, height)
        strategy = make_strategy(post_transform.view_bounds if post_transform else None)

        start_time = time.time()
        self.sample(strategy, x, y, iterations, post_transform)
        logger.info(f"Sampled {iterations} points in {time.time() - start_time:.2f}s")

        strategy.finalize(buffer)
        return strategy
