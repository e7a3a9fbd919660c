"""Tests for parallel hit accumulation."""

import numpy as np
import pytest

from alphavalidate.scoring import ScoreDistributionMap, accumulate_hits


class TestAccumulateHits:
    """Parallel accumulation must match sequential accumulation."""

    def test_matches_sequential(self, synthetic_hits, make_map):
        scores = np.array([score for score, _ in synthetic_hits])
        is_decoy = np.array([decoy for _, decoy in synthetic_hits])

        parallel = ScoreDistributionMap()
        n_submitted = accumulate_hits(parallel, scores, is_decoy, num_threads=8)
        sequential = make_map(synthetic_hits)

        assert n_submitted == len(synthetic_hits)
        assert parallel.get_scores() == sequential.get_scores()
        for score in sequential.get_scores():
            assert parallel.get_n_target(score) == sequential.get_n_target(score)
            assert parallel.get_n_decoy(score) == sequential.get_n_decoy(score)

    def test_same_peps(self, synthetic_hits, synthetic_map):
        scores = np.array([score for score, _ in synthetic_hits])
        is_decoy = np.array([decoy for _, decoy in synthetic_hits])

        parallel = ScoreDistributionMap()
        accumulate_hits(parallel, scores, is_decoy, num_threads=4)
        parallel.estimate_probabilities()

        assert parallel.get_n_max() == synthetic_map.get_n_max()
        peps = [point.p for point in parallel.points()]
        expected = [point.p for point in synthetic_map.points()]
        assert peps == pytest.approx(expected)

    def test_duplicate_scores_counted_once_per_hit(self):
        """Many threads hitting the same score create a single point."""
        distribution = ScoreDistributionMap()
        scores = np.full(5000, 0.01)
        is_decoy = np.arange(5000) % 5 == 0

        accumulate_hits(distribution, scores, is_decoy, num_threads=16)

        assert len(distribution) == 1
        assert distribution.get_n_target(0.01) == 4000
        assert distribution.get_n_decoy(0.01) == 1000

    def test_more_threads_than_hits(self):
        distribution = ScoreDistributionMap()
        assert accumulate_hits(distribution, [0.1, 0.2], [False, True], num_threads=8) == 2
        assert len(distribution) == 2

    def test_empty_input(self):
        distribution = ScoreDistributionMap()
        assert accumulate_hits(distribution, [], []) == 0
        assert len(distribution) == 0

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="same length"):
            accumulate_hits(ScoreDistributionMap(), [0.1, 0.2], [False])

    def test_worker_error_propagates(self):
        class FailingMap(ScoreDistributionMap):
            def put(self, score, is_decoy):
                raise RuntimeError("storage unavailable")

        with pytest.raises(RuntimeError, match="storage unavailable"):
            accumulate_hits(FailingMap(), [0.1, 0.2, 0.3], [False, False, True], num_threads=2)
