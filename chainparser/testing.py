"""
Test helpers: the mainnet genesis block as raw bytes, a blk*.dat record
builder and an in-memory stand-in for the LevelDB stores.
"""
import struct

from .blk_file import MAINNET_MAGIC
from .varint import encode_varint

GENESIS_HASH = '000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f'
GENESIS_TXID = '4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b'

GENESIS_HEADER_HEX = (
    '0100000000000000000000000000000000000000000000000000000000000000'
    '000000003ba3edfd7a7b12b27ac72c3e67768f617fc81bc3888a51323a9fb8aa'
    '4b1e5e4a29ab5f49ffff001d1dac2b7c'
)
GENESIS_TX_HEX = (
    '01000000010000000000000000000000000000000000000000000000000000000000000000ffffffff'
    '4d04ffff001d0104455468652054696d65732030332f4a616e2f32303039204368616e63656c6c6f72'
    '206f6e206272696e6b206f66207365636f6e64206261696c6f757420666f722062616e6b73ffffffff'
    '0100f2052a01000000434104678afdb0fe5548271967f1a67130b7105cd6a828e03909a67962e0ea1f'
    '61deb649f6bc3f4cef38c4f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac00000000'
)


class FakeDb:
    """dict-backed object with the plyvel.DB methods the LevelDB views use."""

    def __init__(self, data=None):
        self.data = dict(data or {})
        self.closed = False

    def get(self, key):
        return self.data.get(key)

    def close(self):
        self.closed = True


def make_record(body: bytes, magic: int = MAINNET_MAGIC) -> bytes:
    """magic | length | body, as written to blk*.dat."""
    return struct.pack('<II', magic, len(body)) + body


def make_block_index_value(height, status, tx_count, header_bytes, file=None, data_pos=None, undo_pos=None):
    value = encode_varint(259900) + encode_varint(height) + encode_varint(status) + encode_varint(tx_count)
    for field in (file, data_pos, undo_pos):
        if field is not None:
            value += encode_varint(field)
    return value + header_bytes


def make_flag_key(name: str) -> bytes:
    return b'F' + bytes([len(name)]) + name.encode()
