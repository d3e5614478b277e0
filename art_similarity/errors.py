"""
Error types raised by the similarity engine.

Image failures are split into read and decode errors so callers can tell
"the file is unreadable" apart from "the file is not an image". Both carry
the offending source so batch callers can log which candidate failed.
"""


class SimilarityError(Exception):
    """Base class for all art_similarity errors."""


class ImageLoadError(SimilarityError):
    """An image could not be turned into pixels."""

    def __init__(self, source, message: str):
        self.source = source
        super().__init__(f"{message}: {_describe(source)}")


class ReadError(ImageLoadError):
    """The image bytes could not be obtained (missing file, I/O failure)."""


class DecodeError(ImageLoadError):
    """The bytes were read but are not a decodable raster image."""


class DescriptorMismatchError(SimilarityError, ValueError):
    """Two descriptors with different cell counts were compared."""


class RankingCancelled(SimilarityError):
    """A ranking request was cancelled before it completed."""


def _describe(source) -> str:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return f"<{len(source)} bytes>"
    if hasattr(source, "read"):
        return f"<stream {getattr(source, 'name', type(source).__name__)}>"
    if hasattr(source, "shape"):
        return f"<array {tuple(source.shape)}>"
    return str(source)
