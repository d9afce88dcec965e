"""
synvm — Program Image Loader

An image is a flat sequence of little-endian unsigned 16-bit words,
loaded verbatim at address 0. No header, no relocation.
"""

import logging
import struct
from pathlib import Path
from typing import List, Union

from .errors import ImageError
from .words import MEMORY_WORDS

log = logging.getLogger(__name__)


def words_from_bytes(data: bytes) -> List[int]:
    """Split raw image bytes into little-endian u16 words."""
    if len(data) % 2:
        raise ImageError(f"image has odd length ({len(data)} bytes)")
    count = len(data) // 2
    if count > MEMORY_WORDS:
        raise ImageError(f"image has {count} words, memory holds {MEMORY_WORDS}")
    return list(struct.unpack(f'<{count}H', data))


def words_to_bytes(words) -> bytes:
    """Inverse of words_from_bytes (used to write test images)."""
    words = list(words)
    return struct.pack(f'<{len(words)}H', *words)


def load_image(path_or_data: Union[str, Path, bytes, bytearray]) -> List[int]:
    """Read a program image from a file path or raw bytes."""
    if isinstance(path_or_data, (str, Path)):
        path = Path(path_or_data)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageError(f"cannot read image {path}: {e}") from e
        words = words_from_bytes(data)
        log.info(f"Loaded {len(words)} words from {path}")
        return words
    return words_from_bytes(bytes(path_or_data))
