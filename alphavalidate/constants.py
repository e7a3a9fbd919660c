"""Numeric policy constants and enumerations for target-decoy validation.

This module collects every constant that shapes the behaviour of the
target-decoy statistics engine, so that the estimation code in
``alphavalidate.scoring`` and the threshold searches in
``alphavalidate.validation`` read from a single place.

Key Features
------------
- PEP saturation level (contamination above which the tail is set to 1)
- Nmax heuristics (score ceiling, reliability floor)
- Histogram layout used for target/decoy visualization
- Score to log-score transform shared by series and thresholds
- Estimator and input-type enumerations
"""

from enum import Enum

import numpy as np

# =============================================================================
# PEP Estimation
# =============================================================================

# Once a point reaches this PEP, every higher score is assigned PEP = 1
PEP_SATURATION = 0.98

# Scores at or above this value are never used as Nmax candidates
# (probability-like scores, lower is better)
NMAX_SCORE_CEILING = 1.0

# Below this Nmax a map is flagged as statistically unreliable
MIN_RELIABLE_NMAX = 100

# =============================================================================
# Histogram
# =============================================================================

# Width of one target/decoy histogram bin, in log-score units
HISTOGRAM_BIN_SIZE = 5.0

# The histogram always spans at least [0, 100] log-score units
HISTOGRAM_DEFAULT_MIN = 0.0
HISTOGRAM_DEFAULT_MAX = 100.0

# =============================================================================
# Score Transform
# =============================================================================

# log_score = -LOG_SCORE_FACTOR * log10(score)
LOG_SCORE_FACTOR = 10.0

# Scores are floored here before the log transform (maps 0 to 1000)
MIN_SCORE = 1e-100


class EstimatorMode(Enum):
    """How false positives are counted when computing the FDR."""
    CLASSICAL = "classical"          # decoy hits within threshold
    PROBABILISTIC = "probabilistic"  # PEP-weighted target hits


class InputType(Enum):
    """Which criterion the user asked to validate at."""
    CONFIDENCE = 0
    FDR = 1
    FNR = 2


def transform_score(score: float) -> float:
    """Transform a probability-like score into the log domain.

    The transform is monotonic and decreasing: better (lower) scores map to
    larger log scores.

    Parameters
    ----------
    score : float
        Raw score (lower is better)

    Returns
    -------
    float
        ``-10 * log10(max(score, MIN_SCORE))``
    """
    return -LOG_SCORE_FACTOR * float(np.log10(max(score, MIN_SCORE)))


def transform_scores(scores: np.ndarray) -> np.ndarray:
    """Vectorized ``transform_score``."""
    scores = np.asarray(scores, dtype=np.float64)
    return -LOG_SCORE_FACTOR * np.log10(np.maximum(scores, MIN_SCORE))
