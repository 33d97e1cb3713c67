import struct

import pytest

from .blk_file import MAINNET_MAGIC, TESTNET_MAGIC
from .block_reader import ChainReader
from .core_block_index import BLOCK_HAVE_DATA, BLOCK_VALID_SCRIPTS, BLOCK_VALID_TREE, IndexDb
from .errors import NotFoundError, ReindexingError
from .hashing import hash_to_hex, hex_to_hash
from .varint import encode_varint
from .testing import GENESIS_HASH, GENESIS_TXID, FakeDb, make_block_index_value, make_flag_key

DATA_POS = 120


@pytest.fixture
def chain(tmp_path, genesis_header_bytes, genesis_record):
    """blk00003.dat holds the genesis record at DATA_POS - 8, indexed under its hash."""
    blocks = tmp_path / "blocks"
    blocks.mkdir()
    (blocks / "blk00003.dat").write_bytes(b'\x00' * (DATA_POS - 8) + genesis_record)
    (blocks / "blk00000.dat").write_bytes(genesis_record)
    fake = FakeDb({
        b'b' + hex_to_hash(GENESIS_HASH): make_block_index_value(
            0, BLOCK_HAVE_DATA | BLOCK_VALID_SCRIPTS, 1, genesis_header_bytes, file=3, data_pos=DATA_POS),
        b't' + hex_to_hash(GENESIS_TXID): encode_varint(3) + encode_varint(DATA_POS) + encode_varint(1),
        b'f' + struct.pack('<I', 3): b''.join(encode_varint(f) for f in [1, 405, 0, 0, 0, 1231006505, 1231006505]),
        b'l': struct.pack('<I', 3),
        make_flag_key('txindex'): b'1',
    })
    return ChainReader(str(blocks), IndexDb(fake), MAINNET_MAGIC)


def test_block_by_hash(chain):
    block = chain.get_block(GENESIS_HASH)
    assert hash_to_hex(block.hash) == GENESIS_HASH
    assert block.start_pos == DATA_POS - 8
    assert block.transactions[0].txid_hex == GENESIS_TXID


def test_tx_by_txid(chain):
    tx = chain.get_tx(GENESIS_TXID)
    assert tx.txid_hex == GENESIS_TXID
    assert tx.is_coinbase()


def test_index_records(chain):
    assert chain.get_block_index_record(GENESIS_HASH).file == 3
    assert chain.get_tx_index_record(GENESIS_TXID).data_pos == DATA_POS
    assert chain.get_file_info_record(3).blocks == 1
    assert chain.get_last_block_file() == 3
    assert chain.get_flag('txindex')


def test_from_file(chain):
    assert chain.get_block_from_file(3, DATA_POS).hash_hex == GENESIS_HASH
    assert chain.get_tx_from_file(3, DATA_POS, 1).txid_hex == GENESIS_TXID


def test_unknown_hash(chain):
    with pytest.raises(NotFoundError):
        chain.get_block('00' * 32)


def test_block_without_data(chain, genesis_header_bytes):
    chain.index_db.db.data[b'b' + hex_to_hash(GENESIS_HASH)] = make_block_index_value(
        0, BLOCK_VALID_TREE, 1, genesis_header_bytes)
    with pytest.raises(NotFoundError):
        chain.get_block(GENESIS_HASH)


def test_refuses_lookups_while_reindexing(chain):
    chain.index_db.db.data[b'R'] = b'1'
    assert chain.is_reindexing()
    with pytest.raises(ReindexingError):
        chain.get_block(GENESIS_HASH)
    with pytest.raises(ReindexingError):
        chain.get_file_info_record(3)
    # File reads do not consult the index
    assert chain.get_block_from_file(3, DATA_POS).hash_hex == GENESIS_HASH


@pytest.mark.parametrize("flag_value", [b'0', None])
def test_tx_lookup_requires_txindex(chain, flag_value):
    key = make_flag_key('txindex')
    if flag_value is None:
        del chain.index_db.db.data[key]
    else:
        chain.index_db.db.data[key] = flag_value
    with pytest.raises(NotFoundError, match="txindex is not enabled"):
        chain.get_tx(GENESIS_TXID)


def test_separate_tx_index(chain):
    tx_fake = FakeDb({
        b't' + hex_to_hash(GENESIS_TXID): encode_varint(3) + encode_varint(DATA_POS) + encode_varint(1),
        make_flag_key('txindex'): b'1',
    })
    reader = ChainReader(chain.blocks_dir, chain.index_db, MAINNET_MAGIC, tx_index_db=IndexDb(tx_fake))
    del chain.index_db.db.data[make_flag_key('txindex')]
    assert reader.get_tx(GENESIS_TXID).txid_hex == GENESIS_TXID
    reader.close()
    assert tx_fake.closed
    assert chain.index_db.db.closed


def test_verify_first_block(chain):
    result = chain.verify_first_block(0)
    assert result == {
        'file': 'blk00000.dat',
        'hash': GENESIS_HASH,
        'block_size': 285,
        'tx_count': 1,
        'is_genesis': True,
    }
    # Zero padding before the record is skipped
    assert chain.verify_first_block(3)['hash'] == GENESIS_HASH


def test_verify_first_block_wrong_network(chain):
    reader = ChainReader(chain.blocks_dir, None, TESTNET_MAGIC)
    assert reader.network == 'testnet'
    with pytest.raises(NotFoundError):
        reader.verify_first_block(0)


def test_missing_blocks_dir(tmp_path):
    with pytest.raises(ValueError):
        ChainReader(str(tmp_path / "nope"), None, MAINNET_MAGIC)


def test_xor_key_read_from_blocks_dir(tmp_path, genesis_record):
    key = bytes.fromhex('a1b2c3d4e5f60718')
    (tmp_path / "xor.dat").write_bytes(key)
    (tmp_path / "blk00000.dat").write_bytes(bytes(b ^ key[i % 8] for i, b in enumerate(genesis_record)))
    with ChainReader(str(tmp_path), None, MAINNET_MAGIC) as reader:
        assert reader.xor_key == key
        assert reader.verify_first_block()['is_genesis']


def test_from_config(monkeypatch, tmp_path, genesis_record):
    (tmp_path / "blk00000.dat").write_bytes(genesis_record)
    opened = []

    def fake_open(cls, path):
        opened.append(path)
        return cls(FakeDb())

    monkeypatch.setattr(IndexDb, "open", classmethod(fake_open))
    reader = ChainReader.from_config("testnet", str(tmp_path), str(tmp_path / "index"), str(tmp_path / "txindex"))
    assert reader.magic == TESTNET_MAGIC
    assert opened == [str(tmp_path / "index"), str(tmp_path / "txindex")]
    assert reader.tx_index_db is not reader.index_db
    reader.close()
