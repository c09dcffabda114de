"""Shared fixtures for crispr_drive tests."""

from collections import deque

import numpy as np
import pytest

from crispr_drive.config import default_config


class ScriptedRng:
    """Stand-in for np.random.Generator that replays fixed draws.

    Uniform draws come from ``uniforms`` in order (random(size) pops
    ``size`` values); integer and binomial draws come from their own
    queues. Running out of scripted values fails the test.
    """

    def __init__(self, uniforms=(), integers=(), binomials=()):
        self.uniforms = deque(uniforms)
        self.integer_draws = deque(integers)
        self.binomial_draws = deque(binomials)
        self.n_uniform_calls = 0
        self.n_integer_calls = 0

    def random(self, size=None):
        self.n_uniform_calls += 1
        if size is None:
            assert self.uniforms, "ScriptedRng ran out of uniform draws"
            return self.uniforms.popleft()
        assert len(self.uniforms) >= size, "ScriptedRng ran out of uniform draws"
        return np.array([self.uniforms.popleft() for _ in range(size)])

    def integers(self, low, high=None, size=None):
        self.n_integer_calls += 1
        assert self.integer_draws, "ScriptedRng ran out of integer draws"
        return self.integer_draws.popleft()

    def binomial(self, n, p, size=None):
        assert self.binomial_draws, "ScriptedRng ran out of binomial draws"
        return self.binomial_draws.popleft()

    @property
    def exhausted(self) -> bool:
        return not (self.uniforms or self.integer_draws or self.binomial_draws)


@pytest.fixture
def scripted_rng():
    """Factory: scripted_rng(uniforms=[...], integers=[...], binomials=[...])."""
    return ScriptedRng


@pytest.fixture
def cfg():
    return default_config()


@pytest.fixture
def rng():
    return np.random.default_rng(12345)
