"""
Transaction decoding for both serializations found in block files.

Legacy:   version | vin | vout | locktime
Extended: version | 0x00 marker | flag | vin | vout | witnesses (if flag & 1) | locktime

The txid is always the double SHA256 of the legacy form, so witness data never
changes it. The wtxid covers the extended form.
"""
import enum
import struct
from typing import Any, Dict, List, Optional, Tuple

from .cursor import Cursor
from .errors import ChainParserError
from .hashing import double_sha256, hash_to_hex
from .utils import address_for_script, get_script_type
from .varint import encode_compact_size, read_compact_size

COIN = 100_000_000
WITNESS_FLAG = 0x01


class TxEncoding(enum.Enum):
    LEGACY = 'legacy'
    EXTENDED = 'extended'


class TxInput:
    def __init__(self, prev_hash: bytes, prev_index: int, script: bytes, sequence: int,
                 witness: Optional[List[bytes]] = None):
        self.prev_hash = prev_hash
        self.prev_index = prev_index
        self.script = script
        self.sequence = sequence
        # None unless the transaction was extended-encoded with the witness flag set
        self.witness = witness

    def is_coinbase(self) -> bool:
        return self.prev_hash == b'\x00' * 32 and self.prev_index == 0xffffffff

    def serialize(self) -> bytes:
        return (
            self.prev_hash +
            struct.pack('<I', self.prev_index) +
            encode_compact_size(len(self.script)) +
            self.script +
            struct.pack('<I', self.sequence)
        )

    def serialize_witness(self) -> bytes:
        items = self.witness or []
        out = encode_compact_size(len(items))
        for item in items:
            out += encode_compact_size(len(item)) + item
        return out

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'prev_tx_hash': hash_to_hex(self.prev_hash),
            'prev_output_index': self.prev_index,
            'script_hex': self.script.hex(),
            'sequence': self.sequence,
        }
        if self.witness is not None:
            d['witness'] = [item.hex() for item in self.witness]
        return d


class TxOutput:
    def __init__(self, value: int, script: bytes):
        self.value = value
        self.script = script

    @property
    def btc(self) -> float:
        return self.value / COIN

    @property
    def script_type(self) -> str:
        return get_script_type(self.script)

    def address(self, network_name: str = 'mainnet') -> Optional[str]:
        return address_for_script(self.script, network_name)

    def serialize(self) -> bytes:
        return struct.pack('<q', self.value) + encode_compact_size(len(self.script)) + self.script

    def to_dict(self) -> Dict[str, Any]:
        return {
            'value': self.value,
            'script_hex': self.script.hex(),
            'script_type': self.script_type,
        }


class Transaction:
    """
    A decoded transaction. Fields are not modified after decoding; txid is
    computed on first access and cached on the instance.
    """

    def __init__(self, version: int, inputs: List[TxInput], outputs: List[TxOutput], locktime: int,
                 encoding: TxEncoding = TxEncoding.LEGACY, flag: Optional[int] = None,
                 start_pos: Optional[int] = None):
        self.version = version
        self.inputs = inputs
        self.outputs = outputs
        self.locktime = locktime
        self.encoding = encoding
        self.flag = flag
        self.start_pos = start_pos
        self._txid = None

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Transaction":
        return read_transaction(Cursor.from_bytes(raw))

    @classmethod
    def from_hex(cls, raw_hex: str) -> "Transaction":
        return cls.from_bytes(bytes.fromhex(raw_hex))

    @property
    def witness_flag(self) -> bool:
        return self.flag is not None and bool(self.flag & WITNESS_FLAG)

    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def is_coinbase(self) -> bool:
        return len(self.inputs) == 1 and self.inputs[0].is_coinbase()

    def serialize(self, witness: bool = False) -> bytes:
        """
        Legacy serialization, or the extended one when `witness` is set and at
        least one input carries witness data.
        """
        extended = witness and self.has_witness()
        parts = [struct.pack('<i', self.version)]
        if extended:
            parts.append(bytes([0x00, WITNESS_FLAG]))
        parts.append(encode_compact_size(len(self.inputs)))
        parts.extend(inp.serialize() for inp in self.inputs)
        parts.append(encode_compact_size(len(self.outputs)))
        parts.extend(out.serialize() for out in self.outputs)
        if extended:
            parts.extend(inp.serialize_witness() for inp in self.inputs)
        parts.append(struct.pack('<I', self.locktime))
        return b''.join(parts)

    def to_hex(self) -> str:
        """Legacy hex, as accepted by the raw transaction RPCs."""
        return self.serialize().hex()

    @property
    def txid(self) -> bytes:
        if self._txid is None:
            self._txid = double_sha256(self.serialize())
        return self._txid

    @property
    def txid_hex(self) -> str:
        return hash_to_hex(self.txid)

    @property
    def wtxid(self) -> bytes:
        if not self.has_witness():
            return self.txid
        return double_sha256(self.serialize(witness=True))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'txid': self.txid_hex,
            'version': self.version,
            'encoding': self.encoding.value,
            'has_witness': self.has_witness(),
            'input_count': len(self.inputs),
            'output_count': len(self.outputs),
            'inputs': [inp.to_dict() for inp in self.inputs],
            'outputs': [out.to_dict() for out in self.outputs],
            'locktime': self.locktime,
        }

    def __repr__(self):
        return f"Transaction(txid={self.txid_hex}, inputs={len(self.inputs)}, outputs={len(self.outputs)})"


def _read_encoding(cursor: Cursor) -> Tuple[TxEncoding, Optional[int]]:
    """
    Peek the byte after the version. 0x00 followed by a non-zero flag is the
    extended marker; 0x00 followed by 0x00 is a legacy zero-input count.
    Consumes marker and flag only for the extended encoding.
    """
    if cursor.peek(1) != b'\x00':
        return TxEncoding.LEGACY, None
    flag = cursor.peek(2)[1]
    if flag == 0:
        return TxEncoding.LEGACY, None
    cursor.read_bytes(2)
    return TxEncoding.EXTENDED, flag


def _read_input(cursor: Cursor) -> TxInput:
    prev_hash = cursor.read_bytes(32)
    prev_index = cursor.read_uint32()
    script = cursor.read_bytes(read_compact_size(cursor))
    sequence = cursor.read_uint32()
    return TxInput(prev_hash, prev_index, script, sequence)


def _read_output(cursor: Cursor) -> TxOutput:
    value = cursor.read_int64()
    script = cursor.read_bytes(read_compact_size(cursor))
    return TxOutput(value, script)


def _read_witness_stack(cursor: Cursor) -> List[bytes]:
    item_count = read_compact_size(cursor)
    return [cursor.read_bytes(read_compact_size(cursor)) for _ in range(item_count)]


def read_transaction(cursor: Cursor) -> Transaction:
    """
    Decode one transaction at the cursor. On failure the cursor is restored
    to the transaction start and the error propagates.
    """
    start_pos = cursor.tell()
    try:
        version = cursor.read_int32()
        encoding, flag = _read_encoding(cursor)

        input_count = read_compact_size(cursor)
        inputs = [_read_input(cursor) for _ in range(input_count)]

        output_count = read_compact_size(cursor)
        outputs = [_read_output(cursor) for _ in range(output_count)]

        if encoding is TxEncoding.EXTENDED and flag & WITNESS_FLAG:
            for inp in inputs:
                inp.witness = _read_witness_stack(cursor)

        locktime = cursor.read_uint32()
    except ChainParserError:
        cursor.seek(start_pos)
        raise

    return Transaction(version, inputs, outputs, locktime,
                       encoding=encoding, flag=flag, start_pos=start_pos)
