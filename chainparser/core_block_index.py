"""
Read Bitcoin Core's block index (LevelDB) to get blk*.dat file number and offset
for blocks and transactions. This allows direct seeks instead of scanning files.
Requires plyvel and Core's blocks/index.

Index path: BLOCKS_DIR/index (e.g. /path/to/data-bitcoin/blocks/index).
Note: LevelDB does not allow concurrent access. If Bitcoin Core is running it
holds the index lock; stop it or point BLOCK_INDEX_DIR at a copy.

Keys:
  'b' + 32-byte block hash (internal order = RPC hash hex decoded then reversed)
      -> CDiskBlockIndex (varints + 80-byte header)
  'f' + 4-byte little-endian file number -> CBlockFileInfo (7 varints)
  't' + 32-byte txid (internal order) -> CDiskTxPos (3 varints)
  'l' -> last block file number used (uint32 LE)
  'R' -> present while reindexing
  'F' + len(name) + name -> b'1' / b'0'

Chainstate ('B' -> best block hash) is read through ChainstateDb; its values
are XORed with the key stored under 0e 00 "obfuscate_key".

All integers in values use Core's base-128 varint, not CompactSize.
"""
import struct
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .block import BlockHeader
from .cursor import Cursor
from .errors import MalformedRecordError, NotFoundError, TruncationError
from .hashing import hash_to_hex, hex_to_hash
from .varint import read_varint

# Status flags from Bitcoin Core chain.h
BLOCK_VALID_UNKNOWN = 0
BLOCK_VALID_HEADER = 1        # parsed, version ok, hash satisfies claimed PoW
BLOCK_VALID_TREE = 2          # all parent headers found, difficulty matches
BLOCK_VALID_TRANSACTIONS = 3  # only first tx is coinbase, merkle root ok
BLOCK_VALID_CHAIN = 4         # outputs do not overspend inputs, no double spends
BLOCK_VALID_SCRIPTS = 5       # scripts & signatures ok
BLOCK_VALID_MASK = 7          # validity levels are values, not independent bits

BLOCK_HAVE_DATA = 8   # full block available in blk*.dat
BLOCK_HAVE_UNDO = 16  # undo data in rev*.dat
BLOCK_HAVE_MASK = BLOCK_HAVE_DATA | BLOCK_HAVE_UNDO

BLOCK_FAILED_VALID = 32  # stage after last reached validness failed
BLOCK_FAILED_CHILD = 64  # descends from failed block
BLOCK_FAILED_MASK = BLOCK_FAILED_VALID | BLOCK_FAILED_CHILD

BLOCK_OPT_WITNESS = 128  # block data was received with a witness-enforcing client

VALIDITY_NAMES = {
    BLOCK_VALID_UNKNOWN: 'unknown',
    BLOCK_VALID_HEADER: 'header',
    BLOCK_VALID_TREE: 'tree',
    BLOCK_VALID_TRANSACTIONS: 'transactions',
    BLOCK_VALID_CHAIN: 'chain',
    BLOCK_VALID_SCRIPTS: 'scripts',
}


def _utc(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class BlockIndexRecord:
    """
    Decoded 'b' record. file / data_pos / undo_pos are None when the status
    bits say they are not stored, which is distinct from a stored zero.
    """

    def __init__(self, height: int, status: int, tx_count: int,
                 file: Optional[int], data_pos: Optional[int], undo_pos: Optional[int],
                 version: int, prev_hash: bytes, merkle_root: bytes,
                 timestamp: int, bits: int, nonce: int):
        self.height = height
        self.status = status
        self.tx_count = tx_count
        self.file = file
        self.data_pos = data_pos
        self.undo_pos = undo_pos
        self.version = version
        self.prev_hash = prev_hash
        self.merkle_root = merkle_root
        self.timestamp = timestamp
        self.bits = bits
        self.nonce = nonce

    @property
    def has_data(self) -> bool:
        return bool(self.status & BLOCK_HAVE_DATA)

    @property
    def has_undo(self) -> bool:
        return bool(self.status & BLOCK_HAVE_UNDO)

    @property
    def validity(self) -> int:
        """Highest validity level reached (BLOCK_VALID_*)."""
        return self.status & BLOCK_VALID_MASK

    @property
    def failed(self) -> bool:
        return bool(self.status & BLOCK_FAILED_MASK)

    @property
    def time(self) -> datetime:
        return _utc(self.timestamp)

    def header(self) -> BlockHeader:
        """Rebuild the block header from the copy kept in the index."""
        return BlockHeader(self.version, self.prev_hash, self.merkle_root,
                           self.timestamp, self.bits, self.nonce)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hash': self.header().hash_hex,
            'height': self.height,
            'status': self.status,
            'validity': VALIDITY_NAMES.get(self.validity, str(self.validity)),
            'have_data': self.has_data,
            'have_undo': self.has_undo,
            'failed': self.failed,
            'tx_count': self.tx_count,
            'file': self.file,
            'data_pos': self.data_pos,
            'undo_pos': self.undo_pos,
            'version': self.version,
            'prev_block_hash': hash_to_hex(self.prev_hash),
            'merkle_root': hash_to_hex(self.merkle_root),
            'timestamp': self.timestamp,
            'bits': self.bits,
            'nonce': self.nonce,
        }


class FileInfoRecord:
    """Decoded 'f' record: bookkeeping for one blk/rev file pair."""

    def __init__(self, blocks: int, size: int, undo_size: int,
                 height_first: int, height_last: int, time_first: int, time_last: int):
        self.blocks = blocks
        self.size = size
        self.undo_size = undo_size
        self.height_first = height_first
        self.height_last = height_last
        self.time_first = time_first
        self.time_last = time_last

    def to_dict(self) -> Dict[str, Any]:
        return {
            'blocks': self.blocks,
            'size': self.size,
            'undo_size': self.undo_size,
            'height_first': self.height_first,
            'height_last': self.height_last,
            'time_first': _utc(self.time_first).isoformat(),
            'time_last': _utc(self.time_last).isoformat(),
        }


class TxIndexRecord:
    """Decoded 't' record. tx_offset is counted from the end of the block header."""

    def __init__(self, file: int, data_pos: int, tx_offset: int):
        self.file = file
        self.data_pos = data_pos
        self.tx_offset = tx_offset

    def to_dict(self) -> Dict[str, Any]:
        return {'file': self.file, 'data_pos': self.data_pos, 'tx_offset': self.tx_offset}


def decode_block_index_record(value: bytes) -> BlockIndexRecord:
    """Decode a CDiskBlockIndex value."""
    cursor = Cursor.from_bytes(value)
    try:
        # Leading varint (format/client version); not interpreted
        read_varint(cursor)
        height = read_varint(cursor)
        status = read_varint(cursor)
        tx_count = read_varint(cursor)

        file = data_pos = undo_pos = None
        if status & BLOCK_HAVE_MASK:
            file = read_varint(cursor)
        if status & BLOCK_HAVE_DATA:
            data_pos = read_varint(cursor)
        if status & BLOCK_HAVE_UNDO:
            undo_pos = read_varint(cursor)

        # The embedded header is fixed-width
        version = cursor.read_int32()
        prev_hash = cursor.read_bytes(32)
        merkle_root = cursor.read_bytes(32)
        timestamp, bits, nonce = struct.unpack('<III', cursor.read_bytes(12))
    except TruncationError as e:
        raise MalformedRecordError(f"Truncated block index record: {e}") from e

    return BlockIndexRecord(height, status, tx_count, file, data_pos, undo_pos,
                            version, prev_hash, merkle_root, timestamp, bits, nonce)


def decode_file_info_record(value: bytes) -> FileInfoRecord:
    """Decode a CBlockFileInfo value."""
    cursor = Cursor.from_bytes(value)
    try:
        fields = [read_varint(cursor) for _ in range(7)]
    except TruncationError as e:
        raise MalformedRecordError(f"Truncated file info record: {e}") from e
    return FileInfoRecord(*fields)


def decode_tx_index_record(value: bytes) -> TxIndexRecord:
    """Decode a CDiskTxPos value."""
    cursor = Cursor.from_bytes(value)
    try:
        fields = [read_varint(cursor) for _ in range(3)]
    except TruncationError as e:
        raise MalformedRecordError(f"Truncated tx index record: {e}") from e
    return TxIndexRecord(*fields)


class LevelDbView:
    """
    Read-only view of one of the node's LevelDB stores. `db` is an open
    plyvel.DB or any object with get(key) -> Optional[bytes].
    """
    name = "LevelDB"

    def __init__(self, db):
        self.db = db

    @classmethod
    def open(cls, path: str):
        import plyvel
        return cls(plyvel.DB(path, create_if_missing=False))

    def close(self):
        close = getattr(self.db, 'close', None)
        if close is not None:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _get(self, key: bytes, what: str) -> bytes:
        value = self.db.get(key)
        if value is None:
            raise NotFoundError(f"{what} not found in {self.name}")
        return value


class IndexDb(LevelDbView):
    """Lookups in blocks/index (and indexes/txindex for 't' records)."""
    name = "block index"

    def get_block_index_record(self, block_hash: bytes) -> BlockIndexRecord:
        """Look up by 32-byte hash in internal byte order."""
        value = self._get(b'b' + block_hash, f"Block {hash_to_hex(block_hash)}")
        return decode_block_index_record(value)

    def get_block_index_record_by_hex(self, block_hash_hex: str) -> BlockIndexRecord:
        """Look up by display hex (RPC order, 64 chars)."""
        return self.get_block_index_record(hex_to_hash(block_hash_hex))

    def get_file_info_record(self, n_file: int) -> FileInfoRecord:
        value = self._get(b'f' + struct.pack('<I', n_file), f"File info {n_file}")
        return decode_file_info_record(value)

    def get_tx_index_record(self, txid: bytes) -> TxIndexRecord:
        """Look up by 32-byte txid in internal byte order."""
        value = self._get(b't' + txid, f"Transaction {hash_to_hex(txid)}")
        return decode_tx_index_record(value)

    def get_tx_index_record_by_hex(self, txid_hex: str) -> TxIndexRecord:
        return self.get_tx_index_record(hex_to_hash(txid_hex))

    def get_last_block_file(self) -> int:
        value = self._get(b'l', "Last block file number")
        if len(value) < 4:
            raise MalformedRecordError(f"Last block file record is {len(value)} bytes, expected 4")
        return struct.unpack('<I', value[:4])[0]

    def is_reindexing(self) -> bool:
        return self.db.get(b'R') is not None

    def get_flag(self, name: str) -> bool:
        raw_name = name.encode()
        value = self._get(b'F' + bytes([len(raw_name)]) + raw_name, f"Flag {name}")
        return value[:1] == b'1'


# Chainstate values are XORed with this key; its own value is a length-prefixed key
OBFUSCATE_KEY_KEY = b'\x0e\x00obfuscate_key'


class ChainstateDb(LevelDbView):
    """Read-only view of <datadir>/chainstate (the UTXO set)."""
    name = "chainstate"

    def obfuscate_key(self) -> bytes:
        value = self.db.get(OBFUSCATE_KEY_KEY)
        if not value:
            return b''
        return value[1:1 + value[0]]

    def get_best_block(self) -> bytes:
        """Hash of the block the UTXO set is synced to, internal byte order."""
        value = self._get(b'B', "Best block")
        key = self.obfuscate_key()
        if any(key):
            value = bytes(b ^ key[i % len(key)] for i, b in enumerate(value))
        if len(value) != 32:
            raise MalformedRecordError(f"Best block record is {len(value)} bytes, expected 32")
        return value

    def get_best_block_hex(self) -> str:
        return hash_to_hex(self.get_best_block())
