"""Shared fixtures for the flame generator test suite."""

import itertools

import numpy as np
import pytest

from flame_generator.core.flame_types import AffineMatrix, ColoringOptions, FlameFunction, FlamePreset
from flame_generator.core.variations import create_default_registry


class SequenceRng:
    """
    Deterministic stand-in for ``numpy.random.Generator``.

    ``random`` cycles through ``values``; ``uniform`` always returns
    ``uniform_value`` (0 puts the chaos game's start point at the origin).
    """

    def __init__(self, values=(0.0,), uniform_value=0.0):
        self._values = itertools.cycle(values)
        self.uniform_value = uniform_value

    def random(self, size=None):
        if size is None:
            return next(self._values)
        return np.array([next(self._values) for _ in range(size)], dtype=np.float64)

    def uniform(self, low=0.0, high=1.0, size=None):
        if size is None:
            return self.uniform_value
        return np.full(size, self.uniform_value, dtype=np.float64)


@pytest.fixture
def zero_rng():
    return SequenceRng()


@pytest.fixture
def seeded_rng():
    return np.random.default_rng(12345)


@pytest.fixture
def variation_registry(zero_rng):
    return create_default_registry(rng=zero_rng)


@pytest.fixture
def identity_function():
    return FlameFunction(affine=AffineMatrix.identity(), variations={'linear': 1.0}, probability=1.0)


@pytest.fixture
def single_point_preset(identity_function):
    """Identity + linear never moves the start point."""
    return FlamePreset(
        width=10,
        height=10,
        functions=[identity_function],
        iterations=1000,
        burn_in=0,
        coloring=ColoringOptions(mode='histogram'),
    )


@pytest.fixture
def sierpinski_functions():
    return [
        FlameFunction(affine=[0.5, 0, 0, 0, 0.5, 0], probability=1.0, color=0.0),
        FlameFunction(affine=[0.5, 0, 0.5, 0, 0.5, 0], probability=1.0, color=0.5),
        FlameFunction(affine=[0.5, 0, 0, 0, 0.5, 0.5], probability=1.0, color=1.0),
    ]


@pytest.fixture
def sierpinski_preset(sierpinski_functions):
    return FlamePreset(
        width=32,
        height=32,
        functions=sierpinski_functions,
        iterations=5000,
        burn_in=20,
        gamma=2.0,
        supersample=2,
        palette='hot',
    )
