"""
The two variable-length integer encodings found on a node's disk.

CompactSize is the prefix-tagged form used inside block and transaction bytes.
The base-128 "varint" (src/serialize.h VARINT) is only used inside block index
(LevelDB) values. They are not interchangeable: decoding one with the other
yields garbage without any error.
"""
import struct
from typing import Tuple

from .cursor import Cursor
from .errors import TruncationError


def read_compact_size(cursor: Cursor) -> int:
    """Read Bitcoin CompactSize integer from the cursor."""
    first_byte = cursor.read_uint8()
    if first_byte < 0xfd:
        return first_byte
    elif first_byte == 0xfd:
        return cursor.read_uint16()
    elif first_byte == 0xfe:
        return cursor.read_uint32()
    else:  # 0xff
        return cursor.read_uint64()


def encode_compact_size(n: int) -> bytes:
    """Shortest CompactSize encoding of n."""
    if n < 0 or n > 0xffffffffffffffff:
        raise ValueError(f"CompactSize out of range: {n}")
    if n < 0xfd:
        return bytes([n])
    elif n <= 0xffff:
        return b'\xfd' + struct.pack('<H', n)
    elif n <= 0xffffffff:
        return b'\xfe' + struct.pack('<I', n)
    else:
        return b'\xff' + struct.pack('<Q', n)


def read_varint(cursor: Cursor) -> int:
    """Read Bitcoin Core varint (MSB base-128, +1 per continuation byte)."""
    n = 0
    while True:
        ch = cursor.read_uint8()
        n = (n << 7) | (ch & 0x7F)
        if ch & 0x80:
            n += 1
        else:
            return n


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode Bitcoin Core varint from a buffer. Returns (value, new_offset)."""
    n = 0
    start = offset
    while offset < len(data):
        ch = data[offset]
        offset += 1
        n = (n << 7) | (ch & 0x7F)
        if ch & 0x80:
            n += 1
        else:
            return n, offset
    raise TruncationError(offset - start + 1, offset - start, start)


def encode_varint(n: int) -> bytes:
    """Inverse of read_varint, as the node writes it."""
    if n < 0:
        raise ValueError(f"varint must be non-negative: {n}")
    tmp = []
    while True:
        tmp.append((n & 0x7F) | (0x80 if tmp else 0x00))
        if n <= 0x7F:
            break
        n = (n >> 7) - 1
    return bytes(reversed(tmp))
