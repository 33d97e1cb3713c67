import pytest

from .testing import GENESIS_HEADER_HEX, GENESIS_TX_HEX, make_record


@pytest.fixture
def genesis_header_bytes():
    return bytes.fromhex(GENESIS_HEADER_HEX)


@pytest.fixture
def genesis_tx_bytes():
    return bytes.fromhex(GENESIS_TX_HEX)


@pytest.fixture
def genesis_body(genesis_header_bytes, genesis_tx_bytes):
    """Header, tx count and the coinbase: the 285 bytes covered by the record length."""
    return genesis_header_bytes + b'\x01' + genesis_tx_bytes


@pytest.fixture
def genesis_record(genesis_body):
    return make_record(genesis_body)


@pytest.fixture
def blocks_dir(tmp_path, genesis_record):
    """A blocks/ directory whose blk00000.dat holds the genesis record followed by zero padding."""
    d = tmp_path / "blocks"
    d.mkdir()
    (d / "blk00000.dat").write_bytes(genesis_record + b'\x00' * 64)
    return d
