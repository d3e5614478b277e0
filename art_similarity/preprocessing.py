"""
Image access and normalization for descriptor extraction.

Turns whatever the caller hands over (a path, raw bytes, an open binary
stream or an already-decoded array) into a uint8 RGB array, and stretches
it to the square canonical size the descriptor grid is laid over.
"""

import os
import logging

import cv2
import numpy as np

from .errors import ReadError, DecodeError

logger = logging.getLogger(__name__)


def read_image_bytes(source) -> bytes:
    """
    Obtain the encoded bytes of an image source.

    Args:
        source: File path (str or os.PathLike), bytes-like object, or a
            binary stream with a read() method.

    Returns:
        The raw encoded bytes.

    Raises:
        ReadError: If the path cannot be opened or the stream fails.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)

    if hasattr(source, "read"):
        try:
            data = source.read()
        except (OSError, ValueError) as e:
            raise ReadError(source, f"Could not read stream ({e})") from e
        if isinstance(data, str):
            raise ReadError(source, "Stream is in text mode")
        return data

    if isinstance(source, (str, os.PathLike)):
        try:
            with open(source, "rb") as f:
                return f.read()
        except OSError as e:
            raise ReadError(source, f"Could not open image ({e.strerror or e})") from e

    raise ReadError(source, f"Unsupported image source type {type(source).__name__}")


def decode_image(data: bytes, source=None) -> np.ndarray:
    """
    Decode encoded image bytes (PNG, JPEG, WebP, ...) into RGB uint8.

    Raises:
        DecodeError: If the bytes are empty or not a supported raster.
    """
    source = source if source is not None else data
    if not data:
        raise DecodeError(source, "Empty image data")

    buffer = np.frombuffer(data, dtype=np.uint8)
    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise DecodeError(source, f"Image decoder failed ({e})") from e

    if image is None:
        raise DecodeError(source, "Not a decodable image")

    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def load_image(source) -> np.ndarray:
    """
    Load an image source into a uint8 RGB array.

    Arrays are taken as already-decoded RGB and only normalized; any
    other source is read and decoded.
    """
    if isinstance(source, np.ndarray):
        return normalize_image(source)

    data = read_image_bytes(source)
    image = decode_image(data, source)
    logger.debug(f"Decoded {source if isinstance(source, (str, os.PathLike)) else 'image'}: "
                 f"{image.shape[1]}x{image.shape[0]}")
    return image


def normalize_image(image_np: np.ndarray) -> np.ndarray:
    """Ensure image is uint8 RGB format."""
    if image_np.ndim == 3 and image_np.shape[2] == 1:
        image_np = image_np[:, :, 0]

    if image_np.ndim == 2:
        image_np = np.stack([image_np] * 3, axis=-1)
    elif image_np.ndim == 3 and image_np.shape[2] == 4:
        image_np = image_np[:, :, :3]

    if image_np.ndim != 3 or image_np.shape[2] != 3:
        raise DecodeError(image_np, "Expected an HxW, HxWx3 or HxWx4 image array")
    if image_np.shape[0] == 0 or image_np.shape[1] == 0:
        raise DecodeError(image_np, "Image has no pixels")

    if image_np.dtype == np.bool_:
        return image_np.astype(np.uint8) * 255
    if not (np.issubdtype(image_np.dtype, np.integer)
            or np.issubdtype(image_np.dtype, np.floating)):
        raise DecodeError(image_np, f"Unsupported pixel dtype {image_np.dtype}")

    if image_np.dtype != np.uint8:
        if np.issubdtype(image_np.dtype, np.floating) and image_np.max() <= 1.0:
            image_np = np.clip(image_np * 255, 0, 255).astype(np.uint8)
        else:
            image_np = np.clip(image_np, 0, 255).astype(np.uint8)
    return image_np


def resize_to_canonical(image_np: np.ndarray, size: int) -> np.ndarray:
    """
    Stretch an RGB image to size x size pixels.

    Aspect ratio is not preserved. INTER_AREA is used when shrinking,
    INTER_CUBIC when enlarging.

    Args:
        image_np: RGB uint8 image.
        size: Target edge length in pixels.

    Returns:
        Contiguous (size, size, 3) uint8 array.
    """
    h, w = image_np.shape[:2]
    if h == size and w == size:
        return np.ascontiguousarray(image_np)

    if h >= size and w >= size:
        interpolation = cv2.INTER_AREA
    else:
        interpolation = cv2.INTER_CUBIC

    resized = cv2.resize(image_np, (size, size), interpolation=interpolation)
    return np.ascontiguousarray(resized)
