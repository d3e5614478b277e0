"""
Descriptor similarity scoring and result ranking.

Two descriptors are compared cell by cell. Each pair of cells is scored
with a Dice-style histogram overlap:

    2 * sum(min(count_a[c], count_b[c])) / (total_a + total_b)

and the overall similarity is the mean over all cells. Scores lie in
[0, 1], are symmetric, and equal 1.0 for a descriptor compared with
itself when every cell holds pixels.
"""

import logging
from typing import Any, Dict, List

from .errors import DescriptorMismatchError

logger = logging.getLogger(__name__)


def cell_similarity(cell_a, cell_b) -> float:
    """
    Overlap of two cell summaries, 0.0 when both are empty.

    Args:
        cell_a: Sequence of (color_code, count) pairs.
        cell_b: Sequence of (color_code, count) pairs.
    """
    counts_a = dict(cell_a)
    counts_b = dict(cell_b)

    intersection = 0
    for code, count in counts_a.items():
        if code in counts_b:
            intersection += min(count, counts_b[code])

    total = sum(counts_a.values()) + sum(counts_b.values())
    if total == 0:
        return 0.0
    return 2 * intersection / total


def score_similarity(descriptor_a, descriptor_b) -> float:
    """
    Compute the similarity of two descriptors.

    Args:
        descriptor_a: Sequence of cell summaries.
        descriptor_b: Sequence of cell summaries with the same length.

    Returns:
        Mean per-cell overlap in [0, 1]. Two empty descriptors score 0.0.

    Raises:
        DescriptorMismatchError: If the cell counts differ.
    """
    if len(descriptor_a) != len(descriptor_b):
        raise DescriptorMismatchError(
            f"Cannot compare descriptors with {len(descriptor_a)} and "
            f"{len(descriptor_b)} cells"
        )

    n_cells = len(descriptor_a)
    if n_cells == 0:
        return 0.0

    total = 0.0
    for cell_a, cell_b in zip(descriptor_a, descriptor_b):
        total += cell_similarity(cell_a, cell_b)

    return total / n_cells


def rank_results(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Sort results by 'score', highest first.

    The sort is stable: results with equal scores keep their input order.
    """
    return sorted(results, key=lambda x: -x['score'])
