#!/usr/bin/env python3
"""
Check that the first blocks of a real blk00000.dat decode correctly and, when
Bitcoin Core RPC is reachable, that hashes and txids match the node.

Requires:
  - BLOCKS_DIR pointing to the blocks directory (e.g. /path/to/data-bitcoin/blocks)
    containing blk00000.dat.
  - Optionally Bitcoin Core RPC (RPC_URL / RPC_USER / RPC_PASSWORD) for the comparison tests.

Run:
  BLOCKS_DIR=/path/to/blocks pytest chainparser/test_blk_process.py -v
  # Fewer blocks for a quick run (default 100):
  BLK_TEST_N_BLOCKS=5 BLOCKS_DIR=/path/to/blocks pytest chainparser/test_blk_process.py -v
  python -m chainparser.test_blk_process
"""
import os
import sys

import pytest

from . import config
from .blk_file import GENESIS_HASH_BY_NETWORK, blk_path_from_file_number, magic_for_network, read_blk_file, read_xor_key
from .errors import ChainParserError
from .rpc import RpcClient

BLOCKS_DIR = config.BLOCKS_DIR
FIRST_N_BLOCKS = int(os.getenv("BLK_TEST_N_BLOCKS", "100"))


def _have_blk_files():
    return os.path.isfile(blk_path_from_file_number(BLOCKS_DIR, 0))


def _rpc_client():
    """RpcClient if the node answers, else None."""
    client = RpcClient.from_config()
    try:
        client.check()
    except ChainParserError:
        return None
    return client


def _read_first_blocks():
    return read_blk_file(
        blk_path_from_file_number(BLOCKS_DIR, 0),
        magic_for_network(config.NETWORK),
        max_blocks=FIRST_N_BLOCKS,
        xor_key=read_xor_key(BLOCKS_DIR),
    )


@pytest.fixture(scope="module")
def blk_blocks():
    return _read_first_blocks()


@pytest.fixture(scope="module")
def rpc():
    client = _rpc_client()
    if client is None:
        pytest.skip("Bitcoin RPC not reachable")
    return client


@pytest.mark.skipif(not _have_blk_files(), reason="Need BLOCKS_DIR containing blk00000.dat")
class TestBlkFirstBlocks:
    """Decode the head of blk00000.dat the same way get-block-from-file does."""

    def test_first_block_is_genesis(self, blk_blocks):
        assert blk_blocks, "no block records decoded"
        assert blk_blocks[0].hash_hex == GENESIS_HASH_BY_NETWORK[config.NETWORK]

    def test_blocks_start_with_coinbase(self, blk_blocks):
        for block in blk_blocks:
            assert block.tx_count >= 1, f"Block {block.hash_hex} has no transactions"
            assert block.transactions[0].is_coinbase()

    def test_records_do_not_overlap(self, blk_blocks):
        for prev, block in zip(blk_blocks, blk_blocks[1:]):
            assert block.start_pos >= prev.start_pos + 8 + prev.length

    def test_block_hashes_match_rpc(self, blk_blocks, rpc):
        for block in blk_blocks:
            header = rpc.call("getblockheader", block.hash_hex)
            assert header["hash"] == block.hash_hex
            assert header["nTx"] == block.tx_count

    def test_txids_match_rpc(self, blk_blocks, rpc):
        for block in blk_blocks:
            rpc_txids = rpc.call("getblock", block.hash_hex, 1)["tx"]
            blk_txids = [tx.txid_hex for tx in block.transactions]
            assert rpc_txids == blk_txids, (
                f"Block {block.hash_hex}: txid list mismatch. RPC count={len(rpc_txids)}, BLK count={len(blk_txids)}"
            )


def main():
    """Run the same checks as a script (no pytest)."""
    if not _have_blk_files():
        print("Skipping: set BLOCKS_DIR to a directory containing blk00000.dat.")
        print("  Example: BLOCKS_DIR=/root/data-bitcoin/blocks python -m chainparser.test_blk_process")
        sys.exit(0)

    blocks = _read_first_blocks()
    errors = []
    if not blocks or blocks[0].hash_hex != GENESIS_HASH_BY_NETWORK[config.NETWORK]:
        errors.append("First record of blk00000.dat is not the genesis block")

    rpc = _rpc_client()
    if rpc is None:
        print("RPC not reachable; skipping comparison with the node")
    else:
        for block in blocks:
            rpc_txids = rpc.call("getblock", block.hash_hex, 1)["tx"]
            if rpc_txids != [tx.txid_hex for tx in block.transactions]:
                errors.append(f"Block {block.hash_hex}: txids differ")

    if errors:
        for e in errors:
            print("FAIL:", e)
        sys.exit(1)
    print(f"OK: First {len(blocks)} blocks of blk00000.dat decoded"
          f"{'' if rpc is None else ' and match RPC (hashes, txids)'}.")


if __name__ == "__main__":
    main()
