"""Tests for vote statistics."""

from __future__ import annotations

import pytest

from planning_poker.decks import resolve
from planning_poker.stats import compute_statistics, numeric_rank, suggest_estimate

LINEAR = resolve("LINEAR")
FIBONACCI = resolve("FIBONACCI")
TSHIRT = resolve("TSHIRT")


class TestNumericRank:
    """Test card value to number mapping."""

    def test_numbers(self):
        assert numeric_rank("3") == 3
        assert numeric_rank("0.5") == 0.5

    def test_size_labels(self):
        assert [numeric_rank(v) for v in TSHIRT] == [1, 2, 3, 4, 5]

    @pytest.mark.parametrize("value", ["?", "☕", "inf", "nan", "XXL", ""])
    def test_non_numeric(self, value: str):
        assert numeric_rank(value) is None


class TestComputeStatistics:
    """Test aggregate computation over a round's votes."""

    def test_linear_votes(self):
        """Test basic aggregates on numeric votes."""
        stats = compute_statistics(["1", "2", "3"], LINEAR)

        assert stats.average == 2.0
        assert stats.median == 2
        assert stats.highest == "3"
        assert stats.lowest == "1"
        assert stats.suggested_estimate == "2"
        assert stats.distribution == {"1": 1, "2": 1, "3": 1}

    def test_tshirt_votes(self):
        """Test size labels take part through their ranks."""
        stats = compute_statistics(["S", "M", "M", "L"], TSHIRT)

        assert stats.average == 3.0
        assert stats.median == 3.0
        assert stats.suggested_estimate == "M"
        assert stats.highest == "L"
        assert stats.lowest == "S"
        assert stats.distribution == {"S": 1, "M": 2, "L": 1}

    def test_even_count_median_is_mean_of_middle(self):
        stats = compute_statistics(["8", "1", "3", "5"], FIBONACCI)

        assert stats.median == 4.0
        assert stats.average == 4.25

    def test_non_numeric_votes_only_counted_in_distribution(self):
        """Test ? and coffee votes are excluded from numeric aggregates."""
        stats = compute_statistics(["3", "?", "5", "☕"], FIBONACCI)

        assert stats.average == 4.0
        assert stats.median == 4.0
        assert stats.highest == "5"
        assert stats.lowest == "3"
        assert stats.distribution == {"3": 1, "?": 1, "5": 1, "☕": 1}

    def test_all_non_numeric_falls_back_to_first_vote(self):
        stats = compute_statistics(["?", "☕", "?"], FIBONACCI)

        assert stats.average == 0
        assert stats.median == 0
        assert stats.highest == "?"
        assert stats.lowest == "?"
        assert stats.distribution == {"?": 2, "☕": 1}

    def test_no_votes(self):
        stats = compute_statistics([], FIBONACCI)

        assert stats.average == 0
        assert stats.median == 0
        assert stats.highest == ""
        assert stats.lowest == ""
        assert stats.suggested_estimate == ""
        assert stats.distribution == {}

    def test_end_to_end_example(self):
        stats = compute_statistics(["3", "5"], FIBONACCI)

        assert stats.average == 4.0
        assert stats.distribution == {"3": 1, "5": 1}
        assert stats.suggested_estimate == "3"


class TestSuggestEstimate:
    """Test picking the deck value closest to the average."""

    def test_rounds_half_up(self):
        assert suggest_estimate(2.5, LINEAR) == "3"

    def test_closest_fibonacci_value(self):
        assert suggest_estimate(10.0, FIBONACCI) == "8"
        assert suggest_estimate(11.0, FIBONACCI) == "13"

    def test_ties_go_to_earlier_deck_value(self):
        """Test 4 is equally close to 3 and 5; 3 comes first in the deck."""
        assert suggest_estimate(4.0, FIBONACCI) == "3"

    def test_deck_without_numeric_values(self):
        assert suggest_estimate(2.4, ["?", "☕"]) == "2"
