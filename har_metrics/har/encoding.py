"""Decoding of Content-Encoding compressed bodies before classification."""

import zlib
from typing import Optional

import brotli

from har_metrics.exceptions import ContentDecodingError


def decompress_content(content: bytes, encoding: Optional[str]) -> bytes:
    """Decompresses content based on the provided encoding.

    Args:
        content: The byte content to decompress.
        encoding: The content encoding (e.g., 'gzip', 'deflate', 'br'). Case-insensitive.
            Stacked encodings (``gzip, br``) are undone in reverse order.

    Returns:
        The decompressed content as bytes.

    Raises:
        ContentDecodingError: If the encoding is unsupported or decompression fails.
    """
    if not content or not encoding:
        return content

    codings = [coding.strip().lower() for coding in encoding.split(",") if coding.strip()]
    for coding in reversed(codings):
        content = _decompress_one(content, coding)
    return content


def _decompress_one(content: bytes, coding: str) -> bytes:
    if coding == "identity":
        return content
    elif coding in ("gzip", "x-gzip"):
        try:
            return zlib.decompress(content, wbits=16 + zlib.MAX_WBITS)
        except zlib.error as e:
            raise ContentDecodingError(f"Failed to decompress gzip content: {e}") from e
    elif coding == "deflate":
        # Raw deflate first; some servers send deflate with a zlib header instead
        try:
            return zlib.decompress(content, wbits=-zlib.MAX_WBITS)
        except zlib.error as e:
            try:
                return zlib.decompress(content, wbits=zlib.MAX_WBITS)
            except zlib.error:
                raise ContentDecodingError(f"Failed to decompress deflate content: {e}") from e
    elif coding == "br":
        try:
            return brotli.decompress(content)
        except brotli.error as e:
            raise ContentDecodingError(f"Failed to decompress brotli content: {e}") from e
    else:
        raise ContentDecodingError(f"Unsupported encoding: {coding}")
