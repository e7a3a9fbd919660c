"""Score distributions of target and decoy hits.

This module accumulates the target/decoy hits of an identification pipeline
and estimates their posterior error probabilities:
- ScorePoint: target/decoy counts at one score
- ScoreDistributionMap: per-category distribution, Nmax and PEP estimation
- CategoryScoreMaps: category/file partitioning with grouping of small maps
- accumulate_hits: thread-pool submission of hit batches

Examples
--------
>>> from alphavalidate.scoring import ScoreDistributionMap, accumulate_hits
>>>
>>> distribution = ScoreDistributionMap()
>>> accumulate_hits(distribution, scores, is_decoy)
>>> distribution.estimate_probabilities()
>>> print(f"Nmax: {distribution.get_n_max()}")
"""

from .category_maps import CategoryScoreMaps
from .distribution import ScoreDistributionMap
from .parallel import accumulate_hits
from .score_point import ScorePoint

__all__ = [
    "ScorePoint",
    "ScoreDistributionMap",
    "CategoryScoreMaps",
    "accumulate_hits",
]
