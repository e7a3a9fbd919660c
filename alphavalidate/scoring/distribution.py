"""Score distribution of target and decoy hits with PEP estimation.

This module provides the per-category score distribution used by the
target-decoy competition: hits are accumulated as ``(score, is_decoy)`` events,
possibly from several threads, and the distribution is then finalized once to
estimate a posterior error probability (PEP) for every observed score.

Key Features
------------
- Thread-safe accumulation (double-checked point creation, locked counters)
- Nmax / nTargetOnly / minimal FDR estimation in a single Numba pass
- Sliding-window PEP estimation in amortized linear time
- Saturation: once the local decoy rate reaches 98%, the tail is set to PEP=1
- Cooperative cancellation through a ``threading.Event``

Scores are probability-like: a LOWER score is a better match. Scores of 1 and
above never contribute to Nmax.

Examples
--------
>>> from alphavalidate.scoring import ScoreDistributionMap
>>>
>>> distribution = ScoreDistributionMap()
>>> for score, is_decoy in hits:
...     distribution.put(score, is_decoy)
>>>
>>> distribution.estimate_probabilities()
>>> pep = distribution.get_probability(0.01)
>>> print(f"Nmax: {distribution.get_n_max()}, resolution: {distribution.get_resolution():.2f}%")
"""

from __future__ import annotations

import bisect
import logging
import threading

import numpy as np
from numba import njit

from alphavalidate.constants import MIN_RELIABLE_NMAX, NMAX_SCORE_CEILING, PEP_SATURATION
from alphavalidate.scoring.score_point import ScorePoint

logger = logging.getLogger(__name__)


@njit
def _estimate_ns_core(
    scores: np.ndarray,
    n_target: np.ndarray,
    n_decoy: np.ndarray,
    min_fdr: float,
    score_ceiling: float,
) -> tuple[int, int, float]:
    """Estimate Nmax, the number of target-only hits and the minimal FDR.

    Parameters
    ----------
    scores : np.ndarray
        Distinct scores sorted ascending
    n_target : np.ndarray
        Target hits at each score
    n_decoy : np.ndarray
        Decoy hits at each score
    min_fdr : float
        Current minimal FDR (only ever decreases)
    score_ceiling : float
        Scores at or above this value are not Nmax candidates

    Returns
    -------
    nmax : int
        Largest number of target hits between two decoy hits
    n_target_only : int
        Number of target hits before the first decoy hit
    min_fdr : float
        Minimal cumulative decoy/target ratio

    Notes
    -----
    Hits at a bin holding decoys are split in two: the upper half (rounded up)
    closes the current run, the lower half (rounded down) opens the next one.
    A run is accepted as Nmax candidate only if its closing bin holds a single
    decoy or the run is shorter than the target-only head.
    """
    only_target = True
    nmax = 0
    target_cpt = 0
    n_target_only = 0
    target_count = 0
    decoy_count = 0

    for i in range(len(scores)):
        n_t = n_target[i]
        n_d = n_decoy[i]
        lower_half = n_t // 2
        upper_half = n_t // 2 + n_t % 2

        if only_target:
            if n_d > 0:
                n_target_only += upper_half
                target_cpt += lower_half
                only_target = False
            else:
                n_target_only += n_t
        elif n_d > 0:
            target_cpt += upper_half
            if (
                target_cpt > nmax
                and scores[i] < score_ceiling
                and (n_d == 1 or target_cpt < n_target_only)
            ):
                nmax = target_cpt
            target_cpt = lower_half
        else:
            target_cpt += n_t

        target_count += n_t
        decoy_count += n_d
        if target_count > 0:
            fdr = decoy_count / target_count
            if fdr < min_fdr:
                min_fdr = fdr

    return nmax, n_target_only, min_fdr


def _window_probability(n_decoy: float, n_target: float) -> float:
    """Local decoy rate of a window, clamped to [0, 1]."""
    if n_target <= 0:
        return 1.0 if n_decoy > 0 else 0.0
    return min(max(n_decoy / n_target, 0.0), 1.0)


class ScoreDistributionMap:
    """Target/decoy hits indexed by score for one validation category.

    Hits are accumulated with ``put`` (thread-safe), then the map is finalized
    with ``estimate_probabilities``. Finalization is single-threaded and must
    only start once every accumulating thread has been joined.

    Attributes
    ----------
    The cached statistics (sorted scores, Nmax, window size, nTargetOnly) are
    either all unset or all consistent with the current set of scores.
    """

    def __init__(self):
        self._points: dict[float, ScorePoint] = {}
        self._lock = threading.Lock()
        self._scores: list[float] | None = None
        self._nmax: int | None = None
        self._window_size: int | None = None
        self._n_target_only: int | None = None
        self._min_fdr = 1.0

    # -------------------------------------------------------------------------
    # Accumulation
    # -------------------------------------------------------------------------

    def put(self, score: float, is_decoy: bool) -> None:
        """Add a hit at the given score.

        Parameters
        ----------
        score : float
            Score of the hit
        is_decoy : bool
            Whether the hit is a decoy
        """
        score = float(score)
        point = self._points.get(score)
        if point is None:
            point = self._create_point(score)
        if is_decoy:
            point.increase_decoy()
        else:
            point.increase_target()

    def _create_point(self, score: float) -> ScorePoint:
        """Create the point at ``score`` unless another thread already did."""
        with self._lock:
            point = self._points.get(score)
            if point is None:
                point = ScorePoint(score)
                self._points[score] = point
                self._invalidate()
            return point

    def remove(self, score: float, is_decoy: bool) -> None:
        """Remove a hit at the given score.

        ``clean_up`` must be called afterwards to drop emptied points.

        Raises
        ------
        KeyError
            If no hit was ever recorded at ``score``
        """
        point = self._points[float(score)]
        if is_decoy:
            point.decrease_decoy()
        else:
            point.decrease_target()

    def clean_up(self) -> None:
        """Drop points without hits and reset the statistics if any was dropped."""
        with self._lock:
            empty_scores = [score for score, point in self._points.items() if point.is_empty()]
            for score in empty_scores:
                del self._points[score]
            if empty_scores:
                logger.debug(f"Removed {len(empty_scores):,} empty score points")
                self._invalidate()

    def add_all(self, other: ScoreDistributionMap) -> None:
        """Add all hits of another map.

        Hits are replayed score by score in ascending order, decoys first, as if
        both streams had been submitted to this map.
        """
        for score in other.get_scores():
            for _ in range(other.get_n_decoy(score)):
                self.put(score, True)
            for _ in range(other.get_n_target(score)):
                self.put(score, False)
        with self._lock:
            self._invalidate()

    def _invalidate(self) -> None:
        self._scores = None
        self._nmax = None
        self._window_size = None
        self._n_target_only = None

    # -------------------------------------------------------------------------
    # Estimation
    # -------------------------------------------------------------------------

    def _count_arrays(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        scores = self.get_scores()
        points = [self._points[score] for score in scores]
        return (
            np.array(scores, dtype=np.float64),
            np.array([point.n_target for point in points], dtype=np.int64),
            np.array([point.n_decoy for point in points], dtype=np.int64),
        )

    def estimate_ns(self) -> None:
        """Estimate Nmax, nTargetOnly and the minimal FDR.

        Precondition: the map holds at least one point.

        Raises
        ------
        ValueError
            If the map is empty
        """
        if not self._points:
            raise ValueError("Cannot estimate Nmax on an empty score distribution")

        scores, n_target, n_decoy = self._count_arrays()
        nmax, n_target_only, min_fdr = _estimate_ns_core(
            scores, n_target, n_decoy, self._min_fdr, NMAX_SCORE_CEILING
        )
        self._nmax = int(nmax)
        self._n_target_only = int(n_target_only)
        self._min_fdr = float(min_fdr)

        logger.debug(
            f"Nmax={self._nmax}, nTargetOnly={self._n_target_only}, "
            f"minFDR={self._min_fdr:.4f} over {len(scores):,} scores"
        )

    def estimate_probabilities(self, cancel_event: threading.Event | None = None) -> bool:
        """Estimate the posterior error probability of every score.

        The local decoy rate is averaged over a window of ``window_size`` target
        hits centered on each score. The window bounds only move forward, so
        the pass is linear in the number of scores.

        Precondition: the map holds at least one point.

        Parameters
        ----------
        cancel_event : threading.Event, optional
            Polled once per score; when set, estimation stops and the
            remaining points keep an unset PEP.

        Returns
        -------
        bool
            True if every point was estimated, False if cancelled. A cancelled
            map must not be used to build a ``ValidationSeries``.
        """
        scores = self.get_scores()
        if not scores:
            raise ValueError("Cannot estimate probabilities on an empty score distribution")
        if self._nmax is None:
            self.estimate_ns()
        window_size = self.get_window_size()

        points = [self._points[score] for score in scores]
        n_limit = 0.5 * window_size

        previous = points[0]
        n_target_up = 1.5 * previous.n_target
        n_target_down = -0.5 * previous.n_target
        n_decoy = float(previous.n_decoy)
        i_down = 0
        i_up = 1
        saturated = False

        for i, point in enumerate(points):
            if saturated:
                point.p = 1.0
            else:
                change = 0.5 * (previous.n_target + point.n_target)
                n_target_down += change
                n_target_up -= change

                while n_target_down > n_limit and i_down < i:
                    down_point = points[i_down]
                    shrunk = n_target_down - down_point.n_target
                    if shrunk < n_limit:
                        break
                    n_decoy -= down_point.n_decoy
                    n_target_down = shrunk
                    i_down += 1

                while n_target_up < n_limit and i_up < len(points):
                    up_point = points[i_up]
                    n_target_up += up_point.n_target
                    n_decoy += up_point.n_decoy
                    i_up += 1

                point.p = _window_probability(n_decoy, n_target_down + n_target_up)
                if point.p >= PEP_SATURATION:
                    saturated = True
                    logger.debug(f"PEP saturated at score {point.score} (index {i})")
            previous = point

            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"PEP estimation cancelled after {i + 1:,}/{len(points):,} scores")
                return False

        logger.info(
            f"✓ Estimated PEP for {len(points):,} scores "
            f"(Nmax={self._nmax}, window={window_size})"
        )
        return True

    def get_probability(self, score: float) -> float:
        """Return the PEP estimated at the given score.

        Unobserved scores get the plain average of the PEPs of the two
        bracketing observed scores; scores above the maximal observed score
        get the PEP of the maximal score.

        Precondition: ``estimate_probabilities`` has completed on a non-empty map.
        """
        point = self._points.get(score)
        if point is not None:
            return point.p

        scores = self.get_scores()
        if score >= scores[-1]:
            return self._points[scores[-1]].p

        index_down = max(bisect.bisect_right(scores, score) - 1, 0)
        index_up = min(index_down + 1, len(scores) - 1)
        return (self._points[scores[index_up]].p + self._points[scores[index_down]].p) / 2

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def get_scores(self) -> list[float]:
        """Distinct scores, sorted ascending."""
        scores = self._scores
        if scores is None:
            with self._lock:
                scores = sorted(self._points)
                self._scores = scores
        return scores

    def get_n_target(self, score: float) -> int:
        return self._points[score].n_target

    def get_n_decoy(self, score: float) -> int:
        return self._points[score].n_decoy

    def points(self) -> list[ScorePoint]:
        """Snapshot of the points, sorted by score."""
        return [self._points[score] for score in self.get_scores()]

    def get_n_max(self) -> int:
        """Largest number of target hits between two subsequent decoy hits."""
        if self._nmax is None:
            self.estimate_ns()
        return self._nmax

    def get_min_fdr(self) -> float:
        """Minimal FDR achievable on this dataset (as a fraction)."""
        if self._nmax is None:
            self.estimate_ns()
        return self._min_fdr

    def get_resolution(self) -> float:
        """Minimal detectable PEP variation in percent."""
        n_max = self.get_n_max()
        return 100.0 / n_max if n_max > 0 else 0.0

    def get_n_target_only(self) -> int:
        """Number of target hits before the first decoy hit."""
        if self._n_target_only is None:
            self.estimate_ns()
        return self._n_target_only

    def get_window_size(self) -> int:
        """Window size (in target hits) used for PEP estimation, Nmax by default."""
        if self._window_size is None:
            self._window_size = self.get_n_max()
        return self._window_size

    def set_window_size(self, window_size: int) -> None:
        self._window_size = window_size

    def suspicious_input(self, requested_fdr: float) -> bool:
        """Whether the statistics of this map are unreliable.

        Parameters
        ----------
        requested_fdr : float
            Minimal FDR requested for the category (as a fraction)

        Returns
        -------
        bool
            True if Nmax is below 100 or the requested FDR cannot be reached
        """
        return self.get_n_max() < MIN_RELIABLE_NMAX or self._min_fdr > requested_fdr

    def get_validation_series(self):
        """Build the ``ValidationSeries`` of this (finalized) map."""
        from alphavalidate.validation.series import ValidationSeries

        return ValidationSeries.from_map(self)

    def __len__(self) -> int:
        return len(self._points)

    def __contains__(self, score: float) -> bool:
        return score in self._points

    def __repr__(self) -> str:
        return f"ScoreDistributionMap(n_scores={len(self._points)}, nmax={self._nmax})"
