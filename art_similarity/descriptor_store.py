"""
Batch descriptor precomputation for a gallery directory.

Extracts a descriptor for every image in a directory and saves them to a
single compressed store so rankings over a stable gallery can skip the
decode work:
    - descriptors.npz / descriptors — int32 (n, cells, top_colors, 2)
      array of (color_code, count) pairs, padded with -1
    - descriptors.npz / filenames — ordered filename list
    - descriptors.npz / params — grid_size, canonical_size, top_colors
"""

import os
import json
import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from .descriptors import (
    Descriptor, GRID_SIZE, CANONICAL_SIZE, TOP_COLORS,
    compute_descriptor, validate_parameters,
)
from .errors import ImageLoadError

logger = logging.getLogger(__name__)

STORE_FILENAME = "descriptors.npz"
IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.webp'}
PAD = -1


def descriptor_to_array(descriptor: Descriptor, top_colors: int) -> np.ndarray:
    """Pack a descriptor into a dense (cells, top_colors, 2) int32 array."""
    packed = np.full((len(descriptor), top_colors, 2), PAD, dtype=np.int32)
    for i, cell in enumerate(descriptor):
        if len(cell) > top_colors:
            raise ValueError(
                f"Cell {i} holds {len(cell)} colors, store allows {top_colors}"
            )
        for j, (code, count) in enumerate(cell):
            packed[i, j] = (code, count)
    return packed


def array_to_descriptor(packed: np.ndarray) -> Descriptor:
    """Inverse of descriptor_to_array; padding entries are dropped."""
    return [
        [(int(code), int(count)) for code, count in cell if code != PAD]
        for cell in packed
    ]


def build_descriptor_store(image_dir: str,
                           output_dir: str,
                           grid_size: int = GRID_SIZE,
                           canonical_size: int = CANONICAL_SIZE,
                           top_colors: int = TOP_COLORS,
                           metadata_path: Optional[str] = None) -> dict:
    """
    Build a descriptor store from a directory of artwork images.

    Args:
        image_dir: Directory containing artwork images.
        output_dir: Directory to write descriptors.npz into.
        grid_size: Cells per side.
        canonical_size: Edge length images are resampled to.
        top_colors: Colors kept per cell.
        metadata_path: Optional JSON metadata file (must have 'filename'
                       field per entry). If not provided, scans image_dir.

    Returns:
        Dict with 'success', 'processed', 'errors', 'cells' and 'store_path'.
    """
    validate_parameters(grid_size, canonical_size, top_colors)
    os.makedirs(output_dir, exist_ok=True)

    if metadata_path and os.path.exists(metadata_path):
        with open(metadata_path, 'r', encoding='utf-8') as f:
            metadata = json.load(f)
        filenames = [e.get('filename') for e in metadata if e.get('filename')]
    else:
        filenames = sorted(
            f for f in os.listdir(image_dir)
            if os.path.splitext(f)[1].lower() in IMAGE_EXTENSIONS
        )

    packed = []
    valid_filenames = []
    errors = 0

    logger.info(f"Building descriptor store from {len(filenames)} images in {image_dir}")

    for i, filename in enumerate(filenames):
        filepath = os.path.join(image_dir, filename)
        try:
            descriptor = compute_descriptor(
                filepath, grid_size, canonical_size, top_colors
            )
        except ImageLoadError as e:
            logger.warning(f"Failed to process {filename}: {e}")
            errors += 1
            continue

        packed.append(descriptor_to_array(descriptor, top_colors))
        valid_filenames.append(filename)

        if (i + 1) % 500 == 0:
            logger.info(f"Processed {i + 1}/{len(filenames)} images")

    if not packed:
        return {"success": False, "error": "No valid images processed", "errors": errors}

    store_path = os.path.join(output_dir, STORE_FILENAME)
    np.savez_compressed(
        store_path,
        descriptors=np.stack(packed),
        filenames=np.array(valid_filenames),
        params=np.array([grid_size, canonical_size, top_colors], dtype=np.int32),
    )

    logger.info(
        f"Descriptor store built: {len(valid_filenames)} images, "
        f"{grid_size * grid_size} cells, {errors} errors"
    )

    return {
        "success": True,
        "processed": len(valid_filenames),
        "errors": errors,
        "cells": grid_size * grid_size,
        "store_path": store_path,
    }


def load_descriptor_store(store_dir: str) -> Tuple[Dict[str, Descriptor], dict]:
    """
    Load a store written by build_descriptor_store().

    Returns:
        Tuple of ({filename: descriptor} in stored order, params dict with
        'grid_size', 'canonical_size' and 'top_colors').
    """
    store_path = os.path.join(store_dir, STORE_FILENAME)
    with np.load(store_path, allow_pickle=False) as data:
        packed = data["descriptors"]
        filenames: List[str] = [str(f) for f in data["filenames"]]
        grid_size, canonical_size, top_colors = (int(v) for v in data["params"])

    descriptors = {
        filename: array_to_descriptor(packed[i])
        for i, filename in enumerate(filenames)
    }
    logger.info(f"Loaded {len(descriptors)} descriptors from {store_path}")

    params = {
        "grid_size": grid_size,
        "canonical_size": canonical_size,
        "top_colors": top_colors,
    }
    return descriptors, params
