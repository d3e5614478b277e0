"""
Artwork similarity engine.

Ranks a set of candidate artworks against one target artwork:
    1. Extract the target descriptor (failures propagate to the caller)
    2. Extract candidate descriptors on a bounded thread pool
    3. Score each candidate against the target
    4. Stable-sort by score and keep the top N

A candidate whose image cannot be read or decoded is logged and skipped;
the rest of the ranking still completes. Results are ranked only after
every extraction has settled, so completion order never affects output.
"""

import os
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_COMPLETED
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

import numpy as np

from .cache import DescriptorCache
from .descriptors import (
    Descriptor, GRID_SIZE, CANONICAL_SIZE, TOP_COLORS,
    compute_descriptor, extract_descriptor, validate_parameters,
)
from .errors import ImageLoadError, RankingCancelled
from .preprocessing import read_image_bytes, decode_image
from .scoring import score_similarity, rank_results

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = int(os.environ.get("CCV_TOP_N", "5"))
DEFAULT_MAX_WORKERS = int(
    os.environ.get("CCV_MAX_WORKERS", str(min(32, os.cpu_count() or 1)))
)

# Seconds between cancellation checks while waiting on extractions
CANCEL_POLL_INTERVAL = 0.05


class Candidate(NamedTuple):
    """An image to rank, with the identifier the caller maps back from."""
    id: Any
    path: Any


def as_candidate(item) -> Candidate:
    """Accept a Candidate, an {'id', 'path'} dict or an (id, path) pair."""
    if isinstance(item, Candidate):
        return item
    if isinstance(item, dict):
        try:
            return Candidate(item["id"], item["path"])
        except KeyError as e:
            raise ValueError(f"Candidate dict is missing {e.args[0]!r}") from e
    if isinstance(item, (tuple, list)) and len(item) == 2:
        return Candidate(item[0], item[1])
    raise ValueError(f"Cannot interpret {item!r} as a candidate")


class SimilarityEngine:
    """
    Color-coherence similarity engine.

    Holds extraction parameters, the worker limit and an optional
    descriptor cache. Holds no per-request state, so one instance can
    serve concurrent requests.
    """

    def __init__(self,
                 grid_size: int = GRID_SIZE,
                 canonical_size: int = CANONICAL_SIZE,
                 top_colors: int = TOP_COLORS,
                 max_workers: int = DEFAULT_MAX_WORKERS,
                 cache: Optional[DescriptorCache] = None):
        """
        Args:
            grid_size: Cells per side of the descriptor grid.
            canonical_size: Edge length images are resampled to.
            top_colors: Colors kept per cell.
            max_workers: Upper bound on concurrent candidate extractions.
            cache: Optional descriptor cache shared across requests.
        """
        validate_parameters(grid_size, canonical_size, top_colors)
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")

        self.grid_size = grid_size
        self.canonical_size = canonical_size
        self.top_colors = top_colors
        self.max_workers = max_workers
        self.cache = cache

    def describe(self, source) -> Descriptor:
        """
        Extract the descriptor of one image with this engine's parameters.

        Raises:
            ReadError: If the image cannot be read.
            DecodeError: If the image cannot be decoded.
        """
        if self.cache is None or isinstance(source, np.ndarray):
            return compute_descriptor(
                source, self.grid_size, self.canonical_size, self.top_colors
            )

        data = read_image_bytes(source)
        key = self.cache.make_key(
            data, self.grid_size, self.canonical_size, self.top_colors
        )
        return self.cache.get_or_compute(
            key,
            lambda: extract_descriptor(
                decode_image(data, source),
                self.grid_size, self.canonical_size, self.top_colors,
            ),
        )

    def find_top_similar(self,
                         target,
                         candidates: Iterable,
                         top_n: int = DEFAULT_TOP_N,
                         cancel_event: Optional[threading.Event] = None
                         ) -> List[Dict[str, Any]]:
        """
        Rank candidate images by similarity to a target image.

        Args:
            target: Path, bytes, stream or array of the target image.
            candidates: Candidates as Candidate, {'id', 'path'} dicts or
                (id, path) pairs.
            top_n: Maximum number of results to return.
            cancel_event: Optional event; once set, pending extractions
                are abandoned and RankingCancelled is raised.

        Returns:
            List of {'id', 'path', 'score'} dicts, highest score first.
            Equal scores keep candidate input order. Empty when no
            candidate could be described.

        Raises:
            ReadError, DecodeError: If the target image fails.
            RankingCancelled: If cancel_event was set.
            ValueError: If top_n is not a positive integer.
        """
        _check_top_n(top_n)
        candidates = [as_candidate(c) for c in candidates]
        _raise_if_cancelled(cancel_event)

        target_descriptor = self.describe(target)
        if not candidates:
            _raise_if_cancelled(cancel_event)
            return []

        descriptors = self._describe_all(candidates, cancel_event)

        results = []
        for candidate, descriptor in zip(candidates, descriptors):
            if descriptor is None:
                continue
            results.append({
                "id": candidate.id,
                "path": candidate.path,
                "score": score_similarity(target_descriptor, descriptor),
            })

        ranked = rank_results(results)[:top_n]

        logger.info(
            f"Similarity ranking complete: {len(results)}/{len(candidates)} "
            f"candidates scored → {len(ranked)} results"
        )
        return ranked

    def rank_descriptors(self,
                         target_descriptor: Descriptor,
                         candidates: Iterable,
                         top_n: int = DEFAULT_TOP_N) -> List[Dict[str, Any]]:
        """
        Rank precomputed descriptors against a target descriptor.

        Args:
            target_descriptor: Descriptor of the target image.
            candidates: Mapping of id -> descriptor, or (id, descriptor)
                pairs in ranking-tiebreak order.
            top_n: Maximum number of results to return.

        Returns:
            List of {'id', 'score'} dicts, highest score first.

        Raises:
            DescriptorMismatchError: If any cell count differs.
        """
        _check_top_n(top_n)
        if isinstance(candidates, dict):
            candidates = candidates.items()

        results = [
            {"id": candidate_id, "score": score_similarity(target_descriptor, descriptor)}
            for candidate_id, descriptor in candidates
        ]
        return rank_results(results)[:top_n]

    def _describe_all(self, candidates: List[Candidate],
                      cancel_event: Optional[threading.Event]
                      ) -> List[Optional[Descriptor]]:
        """Describe candidates in parallel; failed ones come back as None."""
        descriptors: List[Optional[Descriptor]] = [None] * len(candidates)
        workers = min(self.max_workers, len(candidates))
        timeout = CANCEL_POLL_INTERVAL if cancel_event is not None else None
        cancelled = False

        executor = ThreadPoolExecutor(max_workers=workers,
                                      thread_name_prefix="ccv-extract")
        try:
            futures = {
                executor.submit(self.describe, candidate.path): i
                for i, candidate in enumerate(candidates)
            }
            pending = set(futures)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
                done, pending = wait(pending, timeout=timeout,
                                     return_when=FIRST_COMPLETED)
                for future in done:
                    i = futures[future]
                    try:
                        descriptors[i] = future.result()
                    except ImageLoadError as e:
                        logger.warning(
                            f"Skipping candidate {candidates[i].id}: {e}"
                        )
        finally:
            executor.shutdown(wait=not cancelled, cancel_futures=True)

        if cancelled:
            logger.info(
                f"Similarity ranking cancelled with {len(pending)} "
                f"extractions outstanding"
            )
        _raise_if_cancelled(cancel_event)
        return descriptors


def rank_similar(target_path,
                 candidates: Iterable,
                 top_n: int = DEFAULT_TOP_N,
                 cancel_event: Optional[threading.Event] = None,
                 **engine_kwargs) -> List[Dict[str, Any]]:
    """
    Rank candidates against a target with a one-off engine.

    Keyword arguments beyond cancel_event configure the SimilarityEngine
    (grid_size, canonical_size, top_colors, max_workers, cache).
    """
    engine = SimilarityEngine(**engine_kwargs)
    return engine.find_top_similar(target_path, candidates, top_n, cancel_event)


def _check_top_n(top_n):
    if isinstance(top_n, bool) or not isinstance(top_n, int) or top_n < 1:
        raise ValueError(f"top_n must be a positive integer, got {top_n!r}")


def _raise_if_cancelled(cancel_event):
    if cancel_event is not None and cancel_event.is_set():
        raise RankingCancelled("Similarity ranking was cancelled")
