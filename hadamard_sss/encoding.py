"""
Portable text form of a share.

    HSSS_SHARE_v1:<tag>:<index>:<data_hex>:<crc32>

The tag ties a share to the vault or matrix it came from, the index is
the party's incidence row and data_hex is the payload zero-padded to
the scheme width. The CRC catches transcription errors, not tampering:
use the scheme's validate() for that.
"""

import binascii
import struct

from .scheme import Share

VERSION = 'HSSS_SHARE_v1'


def _crc32(data: bytes) -> str:
    return struct.pack('>I', binascii.crc32(data) & 0xFFFFFFFF).hex()


def _payload(tag: str, index: int, data_hex: str) -> str:
    return f"{VERSION}:{tag}:{index:03d}:{data_hex}"


def format_share(tag: str, share, width: int) -> str:
    """Format an (index, data) share as a checksummed string."""
    if ':' in tag:
        raise ValueError("Share tag must not contain ':'")
    index, data = share
    digits = (width + 3) // 4
    payload = _payload(tag, index, format(data, f'0{digits}x'))
    return f"{payload}:{_crc32(payload.encode())}"


def parse_share(text: str) -> tuple:
    """
    Parse a formatted share string.

    Returns: (tag, Share)
    Raises ValueError if format or checksum is invalid.
    """
    parts = text.strip().split(':')
    if len(parts) != 5:
        raise ValueError(f"Invalid share format: expected 5 parts, got {len(parts)}")

    version, tag, index_str, data_hex, checksum = parts
    if version != VERSION:
        raise ValueError(f"Unknown share version: {version}")

    try:
        index = int(index_str)
        data = int(data_hex, 16)
    except ValueError:
        raise ValueError("Share index or payload is not a number")

    expected = _crc32(_payload(tag, index, data_hex).encode())
    if checksum != expected:
        raise ValueError("Share checksum mismatch (corrupted or tampered)")

    return tag, Share(index, data)
