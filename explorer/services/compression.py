"""
gzip + base64 text codec used for the manufacturer description block.
"""

import base64
import binascii
import gzip
import zlib

from explorer.exceptions import CompressionError


def compress(text: str) -> str:
    return base64.b64encode(gzip.compress(text.encode("utf-8"))).decode("ascii")


def decompress(data: str) -> str:
    """
    Inverse of ``compress``.

    Raises:
        CompressionError: if ``data`` is not base64 encoded gzip of UTF-8 text
    """
    try:
        raw = base64.b64decode(data, validate=True)
        return gzip.decompress(raw).decode("utf-8")
    except (binascii.Error, OSError, EOFError, zlib.error, UnicodeDecodeError, ValueError) as e:
        raise CompressionError(f"Cannot decompress payload: {e}") from e
