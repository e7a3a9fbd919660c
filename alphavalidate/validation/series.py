"""FDR, FNR and confidence curves of a finalized score distribution.

A ``ValidationSeries`` is an immutable, array-based snapshot of a
``ScoreDistributionMap`` whose PEPs have been estimated. It exposes the curves
used for plotting and resolves a validation criterion (confidence, FDR or FNR)
into a score limit.

Key Features
------------
- Cumulative counts, classical and probabilistic FDR, probabilistic FNR
- Coarse target/decoy histogram in the log-score domain
- Three threshold searches, skipping decoy-only bins
- Numba-accelerated construction and searches
- Read-only arrays, safe to share between threads

Scores are sorted ascending and lower scores are better: ``n[i]`` counts the
target hits scored at or below ``scores[i]``.

Examples
--------
>>> from alphavalidate.validation import ValidationSeries, ValidationThresholds
>>>
>>> distribution.estimate_probabilities()
>>> series = ValidationSeries.from_map(distribution)
>>>
>>> thresholds = ValidationThresholds.at_fdr(1.0)
>>> series.get_fdr_results(thresholds)
>>> print(f"Validated at 1% FDR: {thresholds.n:.0f} (score <= {thresholds.score_limit})")
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

import numpy as np
from numba import njit

from alphavalidate.constants import (
    HISTOGRAM_BIN_SIZE,
    HISTOGRAM_DEFAULT_MAX,
    HISTOGRAM_DEFAULT_MIN,
    InputType,
    transform_scores,
)
from alphavalidate.scoring.score_point import ScorePoint
from alphavalidate.validation.thresholds import ValidationThresholds

logger = logging.getLogger(__name__)


@njit
def _build_series_core(
    n_target: np.ndarray, n_decoy: np.ndarray, p: np.ndarray
) -> tuple:
    """Compute the cumulative series over scores sorted ascending.

    Parameters
    ----------
    n_target : np.ndarray
        Target hits per score
    n_decoy : np.ndarray
        Decoy hits per score
    p : np.ndarray
        PEP per score, in [0, 1]

    Returns
    -------
    tuple
        (n, classical_fp, proba_fp, classical_fdr, proba_fdr, proba_fnr,
        pep, confidence, decoy, proba_n_total)

    Notes
    -----
    proba_n_total = sum((1 - p) * n_target) is the estimated number of true
    positives in the dataset. Ratios are only computed where the denominator
    is positive: FDR is 100% before the first target hit and FNR is 0 when no
    true positive is expected.
    """
    size = len(n_target)

    proba_n_total = 0.0
    for i in range(size):
        proba_n_total += n_target[i] * (1.0 - p[i])

    n = np.zeros(size, dtype=np.float64)
    classical_fp = np.zeros(size, dtype=np.float64)
    proba_fp = np.zeros(size, dtype=np.float64)
    classical_fdr = np.zeros(size, dtype=np.float64)
    proba_fdr = np.zeros(size, dtype=np.float64)
    proba_fnr = np.zeros(size, dtype=np.float64)
    pep = np.zeros(size, dtype=np.float64)
    confidence = np.zeros(size, dtype=np.float64)
    decoy = np.zeros(size, dtype=np.bool_)

    n_temp = 0.0
    classical_fp_temp = 0.0
    proba_fp_temp = 0.0
    proba_tp = 0.0

    for i in range(size):
        n_temp += n_target[i]
        classical_fp_temp += n_decoy[i]
        proba_fp_temp += n_target[i] * p[i]
        proba_tp += n_target[i] * (1.0 - p[i])

        n[i] = n_temp
        classical_fp[i] = classical_fp_temp
        proba_fp[i] = proba_fp_temp

        if n_temp > 0:
            classical_fdr[i] = 100.0 * classical_fp_temp / n_temp
            proba_fdr[i] = 100.0 * proba_fp_temp / n_temp
        else:
            classical_fdr[i] = 100.0
            proba_fdr[i] = 100.0

        if proba_n_total > 0:
            proba_fnr[i] = 100.0 * (proba_n_total - proba_tp) / proba_n_total

        pep[i] = 100.0 * p[i]
        confidence[i] = 100.0 * (1.0 - p[i])
        decoy[i] = n_target[i] == 0

    return (
        n,
        classical_fp,
        proba_fp,
        classical_fdr,
        proba_fdr,
        proba_fnr,
        pep,
        confidence,
        decoy,
        proba_n_total,
    )


@njit
def _find_fdr_index(fdr: np.ndarray, decoy: np.ndarray, threshold: float) -> int:
    """Highest eligible index with FDR <= threshold, -1 if none."""
    for i in range(len(fdr) - 1, -1, -1):
        if fdr[i] <= threshold and not decoy[i]:
            return i
    return -1


@njit
def _find_confidence_index(confidence: np.ndarray, decoy: np.ndarray, threshold: float) -> int:
    """Nearest eligible index at or below the first confidence drop, -1 if none."""
    start = len(confidence) - 1
    for i in range(len(confidence)):
        if confidence[i] < threshold:
            start = i
            break
    for k in range(start, -1, -1):
        if not decoy[k]:
            return k
    return -1


@njit
def _find_fnr_index(fnr: np.ndarray, decoy: np.ndarray, threshold: float) -> int:
    """Nearest eligible index at or above the last FNR excess, -1 if none."""
    start = 0
    for i in range(len(fnr) - 1, -1, -1):
        if fnr[i] > threshold:
            start = i
            break
    for k in range(start, len(fnr)):
        if not decoy[k]:
            return k
    return -1


def _read_only(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


class ValidationSeries:
    """Immutable PEP/FDR/FNR series of a finalized score distribution.

    Parameters
    ----------
    points : Iterable[ScorePoint]
        Score points with estimated PEPs

    Raises
    ------
    ValueError
        If there is no point or a point has no PEP (estimation cancelled)
    """

    def __init__(self, points: Iterable[ScorePoint]):
        points = sorted(points, key=lambda point: point.score)
        if not points:
            raise ValueError("Cannot build a validation series without score points")
        if any(point.p is None for point in points):
            raise ValueError(
                "PEP not estimated for all scores; the distribution was not finalized "
                "or its estimation was cancelled"
            )

        scores = np.array([point.score for point in points], dtype=np.float64)
        n_target = np.array([point.n_target for point in points], dtype=np.int64)
        n_decoy = np.array([point.n_decoy for point in points], dtype=np.int64)
        p = np.array([point.p for point in points], dtype=np.float64)

        (
            n,
            classical_fp,
            proba_fp,
            classical_fdr,
            proba_fdr,
            proba_fnr,
            pep,
            confidence,
            decoy,
            proba_n_total,
        ) = _build_series_core(n_target, n_decoy, p)

        scores_log = transform_scores(scores)

        self._scores = _read_only(scores)
        self._scores_log = _read_only(np.sort(scores_log))
        self._confidence = _read_only(confidence)
        # The log transform reverses the score order
        self._confidence_log = _read_only(confidence[::-1].copy())
        self._pep = _read_only(pep)
        self._n = _read_only(n)
        self._classical_fp = _read_only(classical_fp)
        self._proba_fp = _read_only(proba_fp)
        self._classical_fdr = _read_only(classical_fdr)
        self._proba_fdr = _read_only(proba_fdr)
        self._proba_fnr = _read_only(proba_fnr)
        self._proba_benefit = _read_only(100.0 - proba_fnr)
        self._decoy = _read_only(decoy)
        self._proba_n_total = float(proba_n_total)

        self._init_histogram(scores_log, n_target, n_decoy)

        logger.debug(
            f"Validation series: {len(scores):,} scores, "
            f"{int(n[-1]):,} target hits, {int(classical_fp[-1]):,} decoy hits"
        )

    @classmethod
    def from_map(cls, distribution) -> ValidationSeries:
        """Build the series of a finalized ``ScoreDistributionMap``."""
        return cls(distribution.points())

    def _init_histogram(self, scores_log: np.ndarray, n_target: np.ndarray, n_decoy: np.ndarray) -> None:
        """Bin target and decoy counts by log score."""
        histogram_min = math.floor(min(HISTOGRAM_DEFAULT_MIN, float(scores_log.min())))
        histogram_max = math.ceil(max(HISTOGRAM_DEFAULT_MAX, float(scores_log.max())))
        n_bins = int(np.floor((histogram_max - histogram_min) / HISTOGRAM_BIN_SIZE + 0.5)) + 1

        bin_indices = np.floor((scores_log - histogram_min) / HISTOGRAM_BIN_SIZE + 0.5).astype(np.int64)
        hist_n_target = np.zeros(n_bins, dtype=np.float64)
        hist_n_decoy = np.zeros(n_bins, dtype=np.float64)
        np.add.at(hist_n_target, bin_indices, n_target)
        np.add.at(hist_n_decoy, bin_indices, n_decoy)

        self._td_bins = _read_only(histogram_min + np.arange(n_bins, dtype=np.float64) * HISTOGRAM_BIN_SIZE)
        self._hist_n_target = _read_only(hist_n_target)
        self._hist_n_decoy = _read_only(hist_n_decoy)

    # -------------------------------------------------------------------------
    # Threshold resolution
    # -------------------------------------------------------------------------

    def _active_fdr(self, thresholds: ValidationThresholds) -> tuple[np.ndarray, np.ndarray]:
        if thresholds.is_classical:
            return self._classical_fdr, self._classical_fp
        return self._proba_fdr, self._proba_fp

    def _report(self, thresholds: ValidationThresholds, index: int) -> None:
        fdr, fp = self._active_fdr(thresholds)
        thresholds.none_validated = False
        thresholds.confidence_limit = float(self._confidence[index])
        thresholds.fdr_limit = float(fdr[index])
        thresholds.fnr_limit = float(self._proba_fnr[index])
        thresholds.n = float(self._n[index])
        thresholds.n_fp = float(fp[index])
        thresholds.n_tp_total = self._proba_n_total
        thresholds.score_limit = float(self._scores[index])

    def _report_none_validated(self, thresholds: ValidationThresholds, confidence_limit: float) -> None:
        thresholds.none_validated = True
        thresholds.confidence_limit = confidence_limit
        thresholds.fdr_limit = 0.0
        thresholds.fnr_limit = float(self._proba_fnr[0])
        thresholds.n = 0.0
        thresholds.n_fp = 0.0
        thresholds.n_tp_total = self._proba_n_total
        thresholds.score_limit = float(self._scores[0])
        logger.info("No hit could be validated at the requested threshold")

    def get_fdr_results(self, thresholds: ValidationThresholds) -> None:
        """Resolve ``thresholds.fdr_limit`` (percent) into a score limit.

        The limit is the highest score whose FDR, under the estimator of
        ``thresholds``, does not exceed the requested FDR.
        """
        fdr, _ = self._active_fdr(thresholds)
        index = _find_fdr_index(fdr, self._decoy, float(thresholds.fdr_limit))
        if index < 0:
            self._report_none_validated(thresholds, 0.0)
        else:
            self._report(thresholds, index)

    def get_confidence_results(self, thresholds: ValidationThresholds) -> None:
        """Resolve ``thresholds.confidence_limit`` (percent) into a score limit."""
        index = _find_confidence_index(self._confidence, self._decoy, float(thresholds.confidence_limit))
        if index < 0:
            self._report_none_validated(thresholds, float(self._confidence[0]))
        else:
            self._report(thresholds, index)

    def get_fnr_results(self, thresholds: ValidationThresholds) -> None:
        """Resolve ``thresholds.fnr_limit`` (percent) into a score limit."""
        index = _find_fnr_index(self._proba_fnr, self._decoy, float(thresholds.fnr_limit))
        if index < 0:
            self._report_none_validated(thresholds, float(self._confidence[0]))
        else:
            self._report(thresholds, index)

    def resolve(self, thresholds: ValidationThresholds) -> ValidationThresholds:
        """Resolve the criterion selected by ``thresholds.input_type``.

        ``thresholds.user_input`` is copied into the matching limit first.
        """
        thresholds.apply_user_input()
        if thresholds.input_type == InputType.CONFIDENCE:
            self.get_confidence_results(thresholds)
        elif thresholds.input_type == InputType.FDR:
            self.get_fdr_results(thresholds)
        else:
            self.get_fnr_results(thresholds)
        return thresholds

    def to_dataframe(self) -> pd.DataFrame:
        """Export the per-score series as a table.

        Returns
        -------
        df : pd.DataFrame
            One row per score (ascending), with counts, FDR, FNR, PEP and
            confidence columns in percent
        """
        import pandas as pd

        return pd.DataFrame(
            {
                "score": self._scores,
                "n": self._n,
                "classical_fp": self._classical_fp,
                "proba_fp": self._proba_fp,
                "classical_fdr": self._classical_fdr,
                "proba_fdr": self._proba_fdr,
                "proba_fnr": self._proba_fnr,
                "pep": self._pep,
                "confidence": self._confidence,
                "decoy": self._decoy,
            }
        )

    # -------------------------------------------------------------------------
    # Series
    # -------------------------------------------------------------------------

    @property
    def scores(self) -> np.ndarray:
        return self._scores

    @property
    def scores_log(self) -> np.ndarray:
        return self._scores_log

    @property
    def confidence(self) -> np.ndarray:
        return self._confidence

    @property
    def confidence_log(self) -> np.ndarray:
        """Confidence aligned with ``scores_log``."""
        return self._confidence_log

    @property
    def pep(self) -> np.ndarray:
        """PEP in percent."""
        return self._pep

    @property
    def n(self) -> np.ndarray:
        return self._n

    @property
    def classical_fp(self) -> np.ndarray:
        return self._classical_fp

    @property
    def proba_fp(self) -> np.ndarray:
        return self._proba_fp

    @property
    def classical_fdr(self) -> np.ndarray:
        return self._classical_fdr

    @property
    def proba_fdr(self) -> np.ndarray:
        return self._proba_fdr

    @property
    def proba_fnr(self) -> np.ndarray:
        return self._proba_fnr

    @property
    def proba_benefit(self) -> np.ndarray:
        return self._proba_benefit

    @property
    def decoy(self) -> np.ndarray:
        """True where the score only holds decoy hits."""
        return self._decoy

    @property
    def proba_n_total(self) -> float:
        """Estimated number of true positives in the dataset."""
        return self._proba_n_total

    @property
    def td_bins(self) -> np.ndarray:
        return self._td_bins

    @property
    def hist_n_target(self) -> np.ndarray:
        return self._hist_n_target

    @property
    def hist_n_decoy(self) -> np.ndarray:
        return self._hist_n_decoy

    def __len__(self) -> int:
        return len(self._scores)
