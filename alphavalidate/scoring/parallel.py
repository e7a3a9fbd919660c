"""Parallel submission of target/decoy hits into a score distribution.

Scoring pipelines usually score candidate matches in worker threads and push
the resulting ``(score, is_decoy)`` events into the distribution of the
category the match belongs to. This module provides the batch version of that
pattern: the hits are split into contiguous chunks and each chunk is submitted
by a thread of a pool sized to the available cores.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed

import numpy as np

from alphavalidate.scoring.distribution import ScoreDistributionMap

logger = logging.getLogger(__name__)

# Fallback when the core count cannot be determined
DEFAULT_NUM_THREADS = 4


def _submit_chunk(
    distribution: ScoreDistributionMap, scores: np.ndarray, is_decoy: np.ndarray
) -> int:
    for score, decoy in zip(scores.tolist(), is_decoy.tolist()):
        distribution.put(score, decoy)
    return len(scores)


def accumulate_hits(
    distribution: ScoreDistributionMap,
    scores: np.ndarray,
    is_decoy: np.ndarray,
    num_threads: int | None = None,
) -> int:
    """Put every hit into ``distribution`` using a thread pool.

    Parameters
    ----------
    distribution : ScoreDistributionMap
        Map receiving the hits
    scores : np.ndarray
        Hit scores
    is_decoy : np.ndarray
        Boolean array indicating decoy status
    num_threads : int, optional
        Number of worker threads, defaults to the number of cores

    Returns
    -------
    int
        Number of hits submitted

    Raises
    ------
    ValueError
        If ``scores`` and ``is_decoy`` differ in length

    Notes
    -----
    The final counts do not depend on the submission order. All workers are
    joined before returning, so the map can be finalized right after.
    """
    scores = np.asarray(scores, dtype=np.float64)
    is_decoy = np.asarray(is_decoy, dtype=np.bool_)
    if len(scores) != len(is_decoy):
        raise ValueError(
            f"scores and is_decoy must have the same length ({len(scores)} != {len(is_decoy)})"
        )
    if len(scores) == 0:
        return 0

    if num_threads is None:
        num_threads = os.cpu_count() or DEFAULT_NUM_THREADS

    chunk_size = max(1, -(-len(scores) // num_threads))
    chunks = [
        (scores[start:start + chunk_size], is_decoy[start:start + chunk_size])
        for start in range(0, len(scores), chunk_size)
    ]

    n_submitted = 0
    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        futures = [
            executor.submit(_submit_chunk, distribution, chunk_scores, chunk_decoy)
            for chunk_scores, chunk_decoy in chunks
        ]
        for future in as_completed(futures):
            n_submitted += future.result()

    logger.debug(f"Submitted {n_submitted:,} hits with {num_threads} threads")
    return n_submitted
