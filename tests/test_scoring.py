"""Tests for descriptor similarity scoring and ranking."""

import numpy as np
import pytest

from art_similarity.errors import DescriptorMismatchError
from art_similarity.scoring import cell_similarity, score_similarity, rank_results


def random_descriptor(rng, n_cells=16, top_colors=8):
    descriptor = []
    for _ in range(n_cells):
        n_colors = rng.randint(0, top_colors + 1)
        codes = rng.choice(64, size=n_colors, replace=False)
        counts = rng.randint(1, 500, size=n_colors)
        descriptor.append(sorted(zip(codes.tolist(), counts.tolist()),
                                 key=lambda p: (-p[1], p[0])))
    return descriptor


class TestCellSimilarity:
    """Tests for the per-cell overlap measure."""

    def test_identical_cells(self):
        cell = [(48, 600), (3, 424)]
        assert cell_similarity(cell, cell) == 1.0

    def test_disjoint_cells(self):
        assert cell_similarity([(48, 1024)], [(3, 1024)]) == 0.0

    def test_partial_overlap(self):
        # intersection = min(600, 200) = 200, totals = 1000 + 1000
        a = [(48, 600), (3, 400)]
        b = [(48, 200), (12, 800)]
        assert cell_similarity(a, b) == pytest.approx(0.2)

    def test_totals_include_non_shared_colors(self):
        a = [(48, 100)]
        b = [(48, 100), (3, 300)]
        assert cell_similarity(a, b) == pytest.approx(2 * 100 / 500)

    def test_both_empty_is_zero(self):
        assert cell_similarity([], []) == 0.0

    def test_one_empty_is_zero(self):
        assert cell_similarity([(48, 10)], []) == 0.0

    def test_more_shared_mass_scores_higher(self):
        base = [(48, 500), (3, 500)]
        less = [(48, 100), (12, 900)]
        more = [(48, 300), (12, 700)]
        assert cell_similarity(base, more) > cell_similarity(base, less)


class TestScoreSimilarity:
    """Tests for whole-descriptor similarity."""

    def test_self_similarity_exact(self):
        rng = np.random.RandomState(0)
        desc = random_descriptor(rng)
        desc = [cell or [(0, 1)] for cell in desc]
        assert score_similarity(desc, desc) == 1.0

    def test_symmetric(self):
        rng = np.random.RandomState(1)
        for _ in range(50):
            a = random_descriptor(rng)
            b = random_descriptor(rng)
            assert score_similarity(a, b) == score_similarity(b, a)

    def test_bounded(self):
        rng = np.random.RandomState(2)
        for _ in range(50):
            a = random_descriptor(rng)
            b = random_descriptor(rng)
            assert 0.0 <= score_similarity(a, b) <= 1.0

    def test_disjoint_colors_score_zero(self):
        a = [[(48, 1024)], [(12, 500), (13, 524)]]
        b = [[(3, 1024)], [(48, 1024)]]
        assert score_similarity(a, b) == 0.0

    def test_mean_over_cells(self):
        a = [[(48, 1024)], [(48, 1024)], [(3, 1024)], [(3, 1024)]]
        b = [[(48, 1024)], [(3, 1024)], [(3, 1024)], [(48, 1024)]]
        assert score_similarity(a, b) == pytest.approx(0.5)

    def test_order_within_cell_ignored(self):
        a = [[(48, 10), (3, 5)]]
        b = [[(3, 5), (48, 10)]]
        assert score_similarity(a, b) == 1.0

    def test_mismatched_cell_count_raises(self):
        with pytest.raises(DescriptorMismatchError, match="64 and 16"):
            score_similarity([[]] * 64, [[]] * 16)

    def test_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            score_similarity([[(1, 1)]], [])

    def test_empty_descriptors(self):
        assert score_similarity([], []) == 0.0


class TestRankResults:
    """Tests for result ranking."""

    def test_ranks_by_score_descending(self):
        results = [
            {"id": "a", "score": 0.5},
            {"id": "b", "score": 0.8},
            {"id": "c", "score": 0.3},
        ]
        ranked = rank_results(results)
        assert [r["id"] for r in ranked] == ["b", "a", "c"]

    def test_ties_keep_input_order(self):
        results = [
            {"id": "c1", "score": 0.0},
            {"id": "c2", "score": 1.0},
            {"id": "c3", "score": 0.0},
            {"id": "c4", "score": 1.0},
        ]
        ranked = rank_results(results)
        assert [r["id"] for r in ranked] == ["c2", "c4", "c1", "c3"]

    def test_does_not_mutate_input(self):
        results = [{"id": 1, "score": 0.1}, {"id": 2, "score": 0.9}]
        rank_results(results)
        assert results[0]["id"] == 1

    def test_empty_list(self):
        assert rank_results([]) == []
