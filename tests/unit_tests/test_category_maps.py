"""Tests for category- and file-specific score distributions.

Scenario used throughout: category 1 holds a single large file that supports
a reliable estimate, categories 2 and 3 each hold a small file. Category 2 is
grouped on its own, category 3 is too small and merged into category 2.
"""

import pytest

from alphavalidate.scoring import CategoryScoreMaps, ScoreDistributionMap

MINIMAL_FDR = 0.01


@pytest.fixture
def category_maps(reliable_hits, probability_hits):
    maps = CategoryScoreMaps()
    for score, is_decoy in reliable_hits:
        maps.add_point("large.mgf", 1, score, is_decoy)
    for score, is_decoy in probability_hits:
        maps.add_point("small.mgf", 2, score, is_decoy)
        maps.add_point("tiny.mgf", 3, score, is_decoy)
    return maps


@pytest.fixture
def cleaned_maps(category_maps):
    category_maps.clean(MINIMAL_FDR)
    return category_maps


class TestAccumulation:
    """Test lazy creation of file distributions."""

    def test_file_maps_created(self, category_maps):
        assert category_maps.categories == [1, 2, 3]
        assert category_maps.get_files(2) == ["small.mgf"]
        assert category_maps.get_files(4) == []

    def test_points_routed(self, category_maps):
        distribution = category_maps.get_map(2, "small.mgf")
        assert distribution.get_n_target(0.2) == 2
        assert distribution.get_n_decoy(0.1) == 1
        assert len(category_maps) == 452 + 4 + 4

    def test_suspicious_inputs(self, category_maps):
        assert not category_maps.get_map(1, "large.mgf").suspicious_input(MINIMAL_FDR)
        assert category_maps.get_map(2, "small.mgf").suspicious_input(MINIMAL_FDR)


class TestClean:
    """Test grouping of suspicious distributions."""

    def test_file_grouping(self, cleaned_maps):
        assert not cleaned_maps.is_file_grouped(1, "large.mgf")
        assert cleaned_maps.is_file_grouped(2, "small.mgf")
        assert cleaned_maps.is_file_grouped(3, "tiny.mgf")

    def test_category_redirect(self, cleaned_maps):
        assert cleaned_maps.get_corrected_category(1) == 1
        assert cleaned_maps.get_corrected_category(2) == 2
        assert cleaned_maps.get_corrected_category(3) == 2
        assert cleaned_maps.grouped_categories == [2]
        assert cleaned_maps.get_category_grouping() == {2: [3]}

    def test_merged_counts(self, cleaned_maps):
        """Category 2 now validates the hits of both small files."""
        grouped = cleaned_maps.get_map(2)
        assert cleaned_maps.get_map(3) is grouped
        assert cleaned_maps.get_map(3, "tiny.mgf") is grouped
        assert grouped.get_n_target(0.2) == 4
        assert grouped.get_n_decoy(0.3) == 2

    def test_maps_used_for_validation(self, cleaned_maps):
        maps = cleaned_maps.get_maps()
        assert len(maps) == 2
        assert maps[0] is cleaned_maps.get_map(1, "large.mgf")
        assert maps[1] is cleaned_maps.get_map(2)

    def test_reliable_category_resets_reference(self, reliable_hits, probability_hits):
        """A small category after a reliable one is not merged backwards."""
        maps = CategoryScoreMaps()
        for score, is_decoy in probability_hits:
            maps.add_point("a.mgf", 1, score, is_decoy)
            maps.add_point("c.mgf", 3, score, is_decoy)
        for score, is_decoy in reliable_hits:
            maps.add_point("b.mgf", 2, score, is_decoy)

        maps.clean(MINIMAL_FDR)

        assert maps.get_category_grouping() == {1: [], 3: []}
        assert maps.grouped_categories == [1, 3]


class TestProbabilities:
    """Test PEP lookup through the right distribution."""

    def test_estimate_and_lookup(self, cleaned_maps):
        assert cleaned_maps.estimate_probabilities()

        grouped = cleaned_maps.get_map(2)
        pep = cleaned_maps.get_probability("tiny.mgf", 3, 0.2)
        assert pep == grouped.get_probability(0.2)

        large = cleaned_maps.get_map(1, "large.mgf")
        assert cleaned_maps.get_probability("large.mgf", 1, 0.001) == large.get_probability(0.001)

    def test_missing_map(self, cleaned_maps):
        assert cleaned_maps.get_probability("other.mgf", 7, 0.01) == 1.0
        assert cleaned_maps.get_map(7, "other.mgf") is None

    def test_grouped_map_type(self, cleaned_maps):
        assert isinstance(cleaned_maps.get_map(2), ScoreDistributionMap)
