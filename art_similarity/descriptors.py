"""
Localized color-coherence descriptor extraction.

An image is stretched to a square canonical size, laid out on a
grid_size x grid_size grid, and each cell is summarized by its most
frequent quantized colors:

    - every channel is quantized to 4 levels (value // 64)
    - a quantized color is encoded as r*16 + g*4 + b, giving codes 0-63
    - a cell keeps its top TOP_COLORS (code, count) pairs, sorted by
      count descending and then by code ascending

The descriptor is the list of cell summaries in row-major order. Grid
size, canonical size and colors per cell are configurable via
environment variables (CCV_GRID_SIZE, CCV_CANONICAL_SIZE, CCV_TOP_COLORS).
"""

import os
import logging
from typing import List, Tuple

import numpy as np

from .preprocessing import load_image, normalize_image, resize_to_canonical

logger = logging.getLogger(__name__)

GRID_SIZE = int(os.environ.get("CCV_GRID_SIZE", "8"))
CANONICAL_SIZE = int(os.environ.get("CCV_CANONICAL_SIZE", "256"))
TOP_COLORS = int(os.environ.get("CCV_TOP_COLORS", "8"))

# 4 levels per channel -> 64 quantized colors
QUANT_STEP = 64
LEVELS = 256 // QUANT_STEP
N_COLORS = LEVELS ** 3

CellSummary = List[Tuple[int, int]]
Descriptor = List[CellSummary]


def encode_color(r_level: int, g_level: int, b_level: int) -> int:
    """Pack per-channel levels (0-3) into a color code (0-63)."""
    for level in (r_level, g_level, b_level):
        if not 0 <= level < LEVELS:
            raise ValueError(f"Quantization level {level} outside 0-{LEVELS - 1}")
    return r_level * LEVELS * LEVELS + g_level * LEVELS + b_level


def decode_color(code: int) -> Tuple[int, int, int]:
    """Unpack a color code into its (r, g, b) levels."""
    if not 0 <= code < N_COLORS:
        raise ValueError(f"Color code {code} outside 0-{N_COLORS - 1}")
    return code // (LEVELS * LEVELS), (code // LEVELS) % LEVELS, code % LEVELS


def quantize_image(image_np: np.ndarray) -> np.ndarray:
    """
    Map every pixel of an RGB uint8 image to its color code.

    Returns:
        (H, W) int32 array of codes in [0, 63].
    """
    levels = (image_np // QUANT_STEP).astype(np.int32)
    return levels[..., 0] * LEVELS * LEVELS + levels[..., 1] * LEVELS + levels[..., 2]


def summarize_cell(codes: np.ndarray, top_colors: int = TOP_COLORS) -> CellSummary:
    """
    Count color codes in one cell and keep the most frequent ones.

    Ties on count are ordered by color code so the retained subset is the
    same on every run.
    """
    counts = np.bincount(codes.ravel(), minlength=N_COLORS)
    present = np.flatnonzero(counts)
    order = present[np.lexsort((present, -counts[present]))]
    return [(int(code), int(counts[code])) for code in order[:top_colors]]


def extract_descriptor(image_np: np.ndarray,
                       grid_size: int = GRID_SIZE,
                       canonical_size: int = CANONICAL_SIZE,
                       top_colors: int = TOP_COLORS) -> Descriptor:
    """
    Extract a color-coherence descriptor from a decoded image.

    Process:
        1. Normalize to uint8 RGB
        2. Stretch to canonical_size x canonical_size
        3. Quantize every pixel to a color code
        4. Split into grid_size x grid_size cells of
           canonical_size // grid_size pixels per side
        5. Summarize each cell, row by row

    When canonical_size is not a multiple of grid_size, cell ranges are
    clamped to the image and the trailing pixels are not counted.

    Args:
        image_np: RGB image array (grayscale and RGBA are accepted).
        grid_size: Cells per side; the descriptor has grid_size**2 cells.
        canonical_size: Edge length of the resampled image.
        top_colors: Maximum (code, count) pairs kept per cell.

    Returns:
        List of grid_size**2 cell summaries.

    Raises:
        ValueError: If a size parameter is out of range.
        DecodeError: If the array is not an image.
    """
    validate_parameters(grid_size, canonical_size, top_colors)

    image_np = normalize_image(image_np)
    canonical = resize_to_canonical(image_np, canonical_size)
    codes = quantize_image(canonical)

    height, width = codes.shape
    cell_h = height // grid_size
    cell_w = width // grid_size

    descriptor = []
    for gy in range(grid_size):
        y0, y1 = gy * cell_h, min((gy + 1) * cell_h, height)
        for gx in range(grid_size):
            x0, x1 = gx * cell_w, min((gx + 1) * cell_w, width)
            descriptor.append(summarize_cell(codes[y0:y1, x0:x1], top_colors))

    return descriptor


def compute_descriptor(source,
                       grid_size: int = GRID_SIZE,
                       canonical_size: int = CANONICAL_SIZE,
                       top_colors: int = TOP_COLORS) -> Descriptor:
    """
    Read, decode and describe an image.

    Args:
        source: Path, bytes, binary stream or RGB array.
        grid_size: Cells per side.
        canonical_size: Edge length of the resampled image.
        top_colors: Maximum colors kept per cell.

    Raises:
        ReadError: If the source cannot be read.
        DecodeError: If the data is not a decodable image.
    """
    validate_parameters(grid_size, canonical_size, top_colors)
    image = load_image(source)
    return extract_descriptor(image, grid_size, canonical_size, top_colors)


def validate_parameters(grid_size, canonical_size, top_colors):
    for name, value in (("grid_size", grid_size),
                        ("canonical_size", canonical_size),
                        ("top_colors", top_colors)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")
    if grid_size > canonical_size:
        raise ValueError(
            f"grid_size {grid_size} exceeds canonical_size {canonical_size}"
        )
