"""Category- and file-specific score distributions.

Identification results are usually validated per category (e.g. precursor
charge) and per spectrum file. Small or poorly separated files do not carry
enough decoy hits for a reliable PEP estimate, so ``clean`` merges them:

1. Within a category, all suspicious file distributions are merged into one
   grouped distribution.
2. If the grouped distribution is still suspicious, it is merged into the
   grouped distribution of the previous suspicious category (categories are
   visited in ascending order), and the category is redirected there.
"""

from __future__ import annotations

import logging
import threading

from alphavalidate.scoring.distribution import ScoreDistributionMap

logger = logging.getLogger(__name__)


class CategoryScoreMaps:
    """Score distributions indexed by category and spectrum file.

    Examples
    --------
    >>> maps = CategoryScoreMaps()
    >>> maps.add_point("run1.mgf", 2, 0.001, False)
    >>> maps.add_point("run1.mgf", 3, 0.2, True)
    >>> maps.clean(minimal_fdr=0.01)
    >>> maps.estimate_probabilities()
    >>> pep = maps.get_probability("run1.mgf", 2, 0.001)
    """

    def __init__(self):
        self._file_maps: dict[int, dict[str, ScoreDistributionMap]] = {}
        self._file_grouping: dict[int, set[str]] = {}
        self._grouped_maps: dict[int, ScoreDistributionMap] = {}
        self._grouping: dict[int, int] = {}
        self._lock = threading.Lock()

    def add_point(self, file_name: str, category: int, score: float, is_decoy: bool) -> None:
        """Add a hit to the distribution of the given category and file."""
        distribution = self._file_maps.get(category, {}).get(file_name)
        if distribution is None:
            with self._lock:
                file_maps = self._file_maps.setdefault(category, {})
                distribution = file_maps.get(file_name)
                if distribution is None:
                    distribution = ScoreDistributionMap()
                    file_maps[file_name] = distribution
        distribution.put(score, is_decoy)

    def clean(self, minimal_fdr: float) -> None:
        """Group the distributions that are too small for a reliable estimate.

        Parameters
        ----------
        minimal_fdr : float
            Minimal FDR requested (as a fraction), see
            ``ScoreDistributionMap.suspicious_input``
        """
        reference = None

        for category in sorted(self._file_maps):
            grouped = ScoreDistributionMap()
            suspicious_files = set()
            for file_name, distribution in self._file_maps[category].items():
                if distribution.suspicious_input(minimal_fdr):
                    suspicious_files.add(file_name)
                    grouped.add_all(distribution)

            if not suspicious_files:
                reference = None
                continue

            self._grouped_maps[category] = grouped
            self._file_grouping[category] = suspicious_files
            logger.info(
                f"Category {category}: grouped {len(suspicious_files)} of "
                f"{len(self._file_maps[category])} files"
            )

            if grouped.suspicious_input(minimal_fdr):
                if reference is not None:
                    self._grouped_maps[reference].add_all(grouped)
                    self._grouping[category] = reference
                    logger.warning(
                        f"Category {category} has too few hits for validation, "
                        f"merged into category {reference}"
                    )
                else:
                    reference = category
            else:
                reference = None

    def estimate_probabilities(self, cancel_event: threading.Event | None = None) -> bool:
        """Estimate PEPs in every distribution used for validation.

        Returns
        -------
        bool
            False if estimation was cancelled
        """
        for distribution in self.get_maps():
            if not distribution.estimate_probabilities(cancel_event):
                return False
        return True

    def get_probability(self, file_name: str, category: int, score: float) -> float:
        """PEP at the given score, 1.0 when no distribution covers the hit."""
        distribution = self.get_map(category, file_name)
        if distribution is None:
            return 1.0
        return distribution.get_probability(score)

    def get_map(self, category: int, file_name: str | None = None) -> ScoreDistributionMap | None:
        """Distribution used to validate hits of the given category and file."""
        if file_name is not None and not self.is_file_grouped(category, file_name):
            return self._file_maps.get(category, {}).get(file_name)
        return self._grouped_maps.get(self.get_corrected_category(category))

    def is_file_grouped(self, category: int, file_name: str) -> bool:
        return file_name in self._file_grouping.get(category, ())

    def get_corrected_category(self, category: int) -> int:
        """Category whose grouped distribution is used for ``category``."""
        return self._grouping.get(category, category)

    @property
    def categories(self) -> list[int]:
        return sorted(self._file_maps)

    @property
    def grouped_categories(self) -> list[int]:
        """Categories owning a grouped distribution after redirection."""
        return sorted({self.get_corrected_category(category) for category in self._grouped_maps})

    def get_files(self, category: int) -> list[str]:
        return sorted(self._file_maps.get(category, {}))

    def get_category_grouping(self) -> dict[int, list[int]]:
        """Map each grouped category to the categories redirected to it."""
        result: dict[int, list[int]] = {}
        for category in sorted(self._grouped_maps):
            corrected = self.get_corrected_category(category)
            secondary = result.setdefault(corrected, [])
            if corrected != category:
                secondary.append(category)
        return result

    def get_maps(self) -> list[ScoreDistributionMap]:
        """Every distribution used for validation: ungrouped files, then groups."""
        result = [
            distribution
            for category, file_maps in sorted(self._file_maps.items())
            for file_name, distribution in sorted(file_maps.items())
            if not self.is_file_grouped(category, file_name)
        ]
        result.extend(self._grouped_maps[category] for category in self.grouped_categories)
        return result

    def __len__(self) -> int:
        """Total number of score points over all distributions."""
        n_file_points = sum(
            len(distribution)
            for file_maps in self._file_maps.values()
            for distribution in file_maps.values()
        )
        return n_file_points + sum(len(distribution) for distribution in self._grouped_maps.values())
