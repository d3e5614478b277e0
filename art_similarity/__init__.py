"""
art_similarity — Color-coherence similarity search for artwork galleries.

Extracts a localized color descriptor from each artwork and ranks a
gallery by how closely each piece matches a target.

Modules:
    engine             SimilarityEngine and rank_similar()
    descriptors        Grid color-histogram descriptor extraction
    scoring            Descriptor similarity and stable ranking
    preprocessing      Image reading, decoding and resampling
    cache              Content-addressed descriptor cache
    descriptor_store   Batch descriptor precomputation
    errors             ReadError, DecodeError, DescriptorMismatchError
"""

from .cache import DescriptorCache
from .descriptor_store import build_descriptor_store, load_descriptor_store
from .descriptors import compute_descriptor, extract_descriptor
from .engine import Candidate, SimilarityEngine, rank_similar
from .errors import (
    SimilarityError, ImageLoadError, ReadError, DecodeError,
    DescriptorMismatchError, RankingCancelled,
)
from .scoring import score_similarity

similarity = score_similarity

__version__ = "1.0.0"

__all__ = [
    "Candidate",
    "DecodeError",
    "DescriptorCache",
    "DescriptorMismatchError",
    "ImageLoadError",
    "RankingCancelled",
    "ReadError",
    "SimilarityEngine",
    "SimilarityError",
    "build_descriptor_store",
    "compute_descriptor",
    "extract_descriptor",
    "load_descriptor_store",
    "rank_similar",
    "score_similarity",
    "similarity",
]
