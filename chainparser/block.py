"""
Block header and block structures.

Header layout (80 bytes, little-endian):
  version(4) | prev_block_hash(32) | merkle_root(32) | timestamp(4) | bits(4) | nonce(4)
"""
import struct
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .cursor import Cursor
from .hashing import double_sha256, hash_to_hex
from .transaction import Transaction

HEADER_SIZE = 80


class BlockHeader:
    """
    Decoded block header. `bits` is kept as the opaque compact target.
    The block hash is computed on first access and cached on the instance.
    """

    def __init__(self, version: int, prev_hash: bytes, merkle_root: bytes,
                 timestamp: int, bits: int, nonce: int):
        self.version = version
        self.prev_hash = prev_hash
        self.merkle_root = merkle_root
        self.timestamp = timestamp
        self.bits = bits
        self.nonce = nonce
        self._hash = None

    @classmethod
    def from_bytes(cls, header_bytes: bytes) -> "BlockHeader":
        if len(header_bytes) != HEADER_SIZE:
            raise ValueError(f"Block header must be 80 bytes, got {len(header_bytes)}")
        return read_block_header(Cursor.from_bytes(header_bytes))

    @property
    def time(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    def serialize(self) -> bytes:
        return (
            struct.pack('<i', self.version) +
            self.prev_hash +
            self.merkle_root +
            struct.pack('<I', self.timestamp) +
            struct.pack('<I', self.bits) +
            struct.pack('<I', self.nonce)
        )

    @property
    def hash(self) -> bytes:
        if self._hash is None:
            self._hash = double_sha256(self.serialize())
        return self._hash

    @property
    def hash_hex(self) -> str:
        return hash_to_hex(self.hash)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hash': self.hash_hex,
            'version': self.version,
            'prev_block_hash': hash_to_hex(self.prev_hash),
            'merkle_root': hash_to_hex(self.merkle_root),
            'timestamp': self.timestamp,
            'bits': self.bits,
            'nonce': self.nonce,
        }


class Block:
    """
    One record of a blk*.dat file: magic, declared length, header and
    transactions. `start_pos` is the file offset of the magic bytes.
    """

    def __init__(self, header: BlockHeader, magic: int, length: int,
                 transactions: List[Transaction], start_pos: Optional[int] = None):
        self.header = header
        self.magic = magic
        self.length = length
        self.transactions = transactions
        self.start_pos = start_pos

    @property
    def tx_count(self) -> int:
        return len(self.transactions)

    @property
    def hash(self) -> bytes:
        return self.header.hash

    @property
    def hash_hex(self) -> str:
        return self.header.hash_hex

    def to_dict(self) -> Dict[str, Any]:
        return {
            'magic': f"0x{self.magic:08x}",
            'block_size': self.length,
            'start_pos': self.start_pos,
            'header': self.header.to_dict(),
            'tx_count': self.tx_count,
            'transactions': [tx.to_dict() for tx in self.transactions],
        }

    def __repr__(self):
        return f"Block(hash={self.hash_hex}, tx_count={self.tx_count})"


def read_block_header(cursor: Cursor) -> BlockHeader:
    """Decode the 80-byte header at the cursor; fails only on truncation."""
    raw = cursor.read_bytes(HEADER_SIZE)
    version, = struct.unpack('<i', raw[0:4])
    timestamp, bits, nonce = struct.unpack('<III', raw[68:80])
    return BlockHeader(version, raw[4:36], raw[36:68], timestamp, bits, nonce)
