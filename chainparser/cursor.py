"""
Positionable little-endian byte reader over a block file or an in-memory buffer.

A Cursor is owned by one decode operation at a time. Independent cursors over
separately opened files share nothing and can be driven in parallel.
"""
import io
import struct
from typing import BinaryIO, Optional

from .errors import TruncationError


class Cursor:
    """
    Sequential reader with save/seek/peek.

    Args:
        stream: Seekable binary file object (open(..., 'rb') or BytesIO).
        xor_key: Optional obfuscation key (Bitcoin Core 28+ blocks/xor.dat).
            Bytes are de-obfuscated by absolute stream position.
    """

    def __init__(self, stream: BinaryIO, xor_key: Optional[bytes] = None):
        self.stream = stream
        self.xor_key = xor_key or None

    @classmethod
    def from_bytes(cls, data: bytes, xor_key: Optional[bytes] = None) -> "Cursor":
        return cls(io.BytesIO(data), xor_key=xor_key)

    def tell(self) -> int:
        return self.stream.tell()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move to an absolute (SEEK_SET) or relative (SEEK_CUR, SEEK_END) position."""
        return self.stream.seek(offset, whence)

    def size(self) -> int:
        pos = self.stream.tell()
        end = self.stream.seek(0, io.SEEK_END)
        self.stream.seek(pos)
        return end

    def remaining(self) -> int:
        return self.size() - self.tell()

    def _deobfuscate(self, data: bytes, pos: int) -> bytes:
        key = self.xor_key
        n = len(key)
        return bytes(b ^ key[(pos + i) % n] for i, b in enumerate(data))

    def read_bytes(self, length: int) -> bytes:
        """Read exactly `length` bytes; the position is unchanged if fewer are available."""
        pos = self.stream.tell()
        available = self.size() - pos
        if length > available:
            # Declared lengths go up to 2**64 - 1, so bound them before read()
            raise TruncationError(length, max(available, 0), pos)
        data = self.stream.read(length)
        if len(data) < length:
            self.stream.seek(pos)
            raise TruncationError(length, len(data), pos)
        if self.xor_key:
            data = self._deobfuscate(data, pos)
        return data

    def peek(self, length: int = 1) -> bytes:
        """Return the next `length` bytes without consuming them."""
        pos = self.stream.tell()
        try:
            return self.read_bytes(length)
        finally:
            self.stream.seek(pos)

    def _unpack(self, fmt: str, size: int) -> int:
        return struct.unpack(fmt, self.read_bytes(size))[0]

    def read_uint8(self) -> int:
        return self.read_bytes(1)[0]

    def read_uint16(self) -> int:
        return self._unpack('<H', 2)

    def read_int16(self) -> int:
        return self._unpack('<h', 2)

    def read_uint32(self) -> int:
        return self._unpack('<I', 4)

    def read_int32(self) -> int:
        return self._unpack('<i', 4)

    def read_uint64(self) -> int:
        return self._unpack('<Q', 8)

    def read_int64(self) -> int:
        return self._unpack('<q', 8)
