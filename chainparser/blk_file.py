"""
Reading block records from Bitcoin Core's flat files (blocks/blkNNNNN.dat).

Each record is:
  magic(4) | length(4) | header(80) | tx_count(CompactSize) | transactions...
`length` covers everything after itself. Block index offsets (nDataPos) point
at the header, i.e. 8 bytes past the record start.
"""
import io
import os
import struct
from typing import Iterator, List, Optional

from . import config
from .block import Block, read_block_header
from .cursor import Cursor
from .errors import ChainParserError, FramingError, TruncationError
from .transaction import Transaction, read_transaction
from .varint import read_compact_size

# Bitcoin block file magic bytes, read as little-endian uint32
# (on disk: f9 be b4 d9 for mainnet, 0b 11 09 07 for testnet3)
MAINNET_MAGIC = 0xd9b4bef9
TESTNET_MAGIC = 0x0709110b

MAGIC_BY_NETWORK = {
    'mainnet': MAINNET_MAGIC,
    'testnet': TESTNET_MAGIC,
}

GENESIS_HASH_BY_NETWORK = {
    'mainnet': '000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f',
    'testnet': '000000000933ea01ad0ee984209779baaec3ced90fa3f408719526f8d77f4943',
}

RECORD_PREFIX_SIZE = 8
SCAN_CHUNK = 1 << 20


def magic_for_network(network: str) -> int:
    try:
        return MAGIC_BY_NETWORK[network]
    except KeyError:
        raise ValueError(f"Unknown network: {network}") from None


def blk_path_from_file_number(blocks_dir: str, n_file: int) -> str:
    """Return path to blkNNNNN.dat for given file number."""
    return os.path.join(blocks_dir, f"blk{n_file:05d}.dat")


def read_xor_key(blocks_dir: str) -> Optional[bytes]:
    """
    Bitcoin Core 28+ obfuscates block files with the key in blocks/xor.dat.
    Returns the key, or None when the file is missing or the key is all zeros.
    """
    path = os.path.join(blocks_dir, "xor.dat")
    if not os.path.isfile(path):
        return None
    with open(path, 'rb') as f:
        key = f.read()
    if not any(key):
        return None
    if config.VERBOSE:
        print(f"Loaded XOR key from xor.dat ({len(key)} bytes)")
    return key


class BlockFile:
    """
    One blk*.dat file opened read-only, with a Cursor positioned at 0.

    Usage:
        with BlockFile(blocks_dir, 3) as blk:
            blk.cursor.seek(pos)
            block = read_block(blk.cursor, MAINNET_MAGIC)
    """

    def __init__(self, blocks_dir: str, file_num: int, xor_key: Optional[bytes] = None):
        self.file_num = file_num
        self.path = blk_path_from_file_number(blocks_dir, file_num)
        if not os.path.isfile(self.path):
            raise FileNotFoundError(f"Block file not found: {self.path}")
        self._file = open(self.path, 'rb')
        self.cursor = Cursor(self._file, xor_key=xor_key)

    def close(self):
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def read_block(cursor: Cursor, magic: int) -> Block:
    """
    Decode the block record at the cursor.

    Raises FramingError if the magic does not match; the cursor is then back
    at the record start so the caller can probe further. Any later failure
    also restores the cursor and propagates.
    """
    start = cursor.tell()
    found = cursor.read_uint32()
    if found != magic:
        cursor.seek(start)
        raise FramingError(found, magic, start)

    try:
        length = cursor.read_uint32()
        header = read_block_header(cursor)
        tx_count = read_compact_size(cursor)
        transactions = [read_transaction(cursor) for _ in range(tx_count)]
    except ChainParserError:
        cursor.seek(start)
        raise

    return Block(header, found, length, transactions, start_pos=start)


def _seek_next_magic(cursor: Cursor, magic: int) -> bool:
    """Move to the next occurrence of the magic after the current byte. False at end of data."""
    needle = struct.pack('<I', magic)
    pos = cursor.tell() + 1
    while True:
        cursor.seek(pos)
        n = min(SCAN_CHUNK, cursor.remaining())
        if n < len(needle):
            return False
        idx = cursor.read_bytes(n).find(needle)
        if idx >= 0:
            cursor.seek(pos + idx)
            return True
        pos += n - len(needle) + 1


def scan_blocks(cursor: Cursor, magic: int) -> Iterator[Block]:
    """
    Yield every decodable record from the cursor position to the end of data.
    Bytes that do not start a record (e.g. the zero padding Core preallocates)
    are skipped. Stops at the first truncated record.
    """
    while cursor.remaining() >= RECORD_PREFIX_SIZE:
        start = cursor.tell()
        try:
            block = read_block(cursor, magic)
        except FramingError:
            if not _seek_next_magic(cursor, magic):
                return
            continue
        except TruncationError:
            return
        cursor.seek(start + RECORD_PREFIX_SIZE + block.length)
        yield block


def read_blk_file(blk_file_path: str, magic: int, max_blocks: int = 1,
                  xor_key: Optional[bytes] = None) -> List[Block]:
    """
    Read up to max_blocks records from the start of a single blk*.dat file.
    """
    if not os.path.isfile(blk_file_path):
        raise FileNotFoundError(f"Block file not found: {blk_file_path}")

    if config.VERBOSE:
        print(f"Reading block file: {blk_file_path}")
        print(f"File size: {os.path.getsize(blk_file_path):,} bytes")

    blocks = []
    with open(blk_file_path, 'rb') as f:
        for block in scan_blocks(Cursor(f, xor_key=xor_key), magic):
            blocks.append(block)
            if len(blocks) >= max_blocks:
                break
    return blocks


def _seek_record(cursor: Cursor, data_pos: int):
    record_pos = data_pos - RECORD_PREFIX_SIZE
    if record_pos < 0:
        raise ValueError(f"Data offset {data_pos} is before the first record")
    if config.VERBOSE:
        print(f"Seeking to block at {data_pos}...")
    cursor.seek(record_pos)


def read_block_at(blocks_dir: str, magic: int, file_num: int, data_pos: int,
                  xor_key: Optional[bytes] = None) -> Block:
    """Decode the block whose header starts at data_pos in blkNNNNN.dat."""
    with BlockFile(blocks_dir, file_num, xor_key=xor_key) as blk:
        _seek_record(blk.cursor, data_pos)
        return read_block(blk.cursor, magic)


def read_tx_at(blocks_dir: str, magic: int, file_num: int, data_pos: int, tx_offset: int,
               xor_key: Optional[bytes] = None) -> Transaction:
    """
    Decode a single transaction. tx_offset is counted from the end of the
    block header, as stored in the transaction index.
    """
    with BlockFile(blocks_dir, file_num, xor_key=xor_key) as blk:
        cursor = blk.cursor
        _seek_record(cursor, data_pos)
        start = cursor.tell()
        found = cursor.read_uint32()
        if found != magic:
            cursor.seek(start)
            raise FramingError(found, magic, start)
        cursor.read_uint32()
        read_block_header(cursor)
        cursor.seek(tx_offset, io.SEEK_CUR)
        return read_transaction(cursor)
