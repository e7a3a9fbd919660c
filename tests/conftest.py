"""Pytest configuration for AlphaValidate tests.

This module provides common fixtures and configuration for all tests:
small hand-computed target/decoy fixtures and a synthetic dataset.
"""

import numpy as np
import pytest

from alphavalidate.scoring import ScoreDistributionMap


def build_map(hits):
    """Build a score distribution from (score, is_decoy) pairs."""
    distribution = ScoreDistributionMap()
    for score, is_decoy in hits:
        distribution.put(score, is_decoy)
    return distribution


@pytest.fixture
def regression_hits():
    """10: decoy, 20: 2 targets, 30: target + decoy, 40: target."""
    return [
        (10.0, True),
        (20.0, False),
        (20.0, False),
        (30.0, False),
        (30.0, True),
        (40.0, False),
    ]


@pytest.fixture
def probability_hits():
    """Same hits as ``regression_hits`` with probability-like scores (< 1).

    Hand-computed: nTargetOnly = 0, Nmax = 3, minFDR = 0.5,
    PEP = [0.5, 2/3, 0.25, 0.5].
    """
    return [
        (0.1, True),
        (0.2, False),
        (0.2, False),
        (0.3, False),
        (0.3, True),
        (0.4, False),
    ]


@pytest.fixture
def probability_map(probability_hits):
    """Finalized distribution of ``probability_hits``."""
    distribution = build_map(probability_hits)
    distribution.estimate_probabilities()
    return distribution


@pytest.fixture
def reliable_hits():
    """300 target-only hits, a decoy, 150 targets and a single decoy (Nmax = 150)."""
    hits = [(i * 1e-4, False) for i in range(1, 301)]
    hits.append((0.0305, True))
    hits.extend((0.031 + j * 1e-4, False) for j in range(150))
    hits.append((0.05, True))
    return hits


@pytest.fixture
def synthetic_hits():
    """1000 hits: 600 true targets, 200 false targets and 200 decoys.

    True targets score between 1e-8 and 1e-2, false targets and decoys
    between 1e-3 and 1. The lowest score is a decoy so that the minimal FDR
    is positive.
    """
    rng = np.random.default_rng(42)
    true_targets = 10 ** rng.uniform(-8, -2, 600)
    false_targets = 10 ** rng.uniform(-3, 0, 200)
    decoys = 10 ** rng.uniform(-3, 0, 199)

    hits = [(1e-9, True)]
    hits.extend((float(score), False) for score in true_targets)
    hits.extend((float(score), False) for score in false_targets)
    hits.extend((float(score), True) for score in decoys)
    return hits


@pytest.fixture
def synthetic_map(synthetic_hits):
    """Finalized distribution of ``synthetic_hits``."""
    distribution = build_map(synthetic_hits)
    distribution.estimate_probabilities()
    return distribution


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)


@pytest.fixture
def make_map():
    """Factory building a score distribution from (score, is_decoy) pairs."""
    return build_map
