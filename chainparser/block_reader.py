#!/usr/bin/env python3
"""
Hash-based retrieval of blocks and transactions from a node's data directory.
Looks up the file number and offset in the block index, then seeks straight
into the matching blk*.dat file.
"""
import os
from typing import Any, Dict, Optional

from . import config
from .blk_file import (
    GENESIS_HASH_BY_NETWORK, MAGIC_BY_NETWORK, blk_path_from_file_number,
    read_blk_file, read_block_at, read_tx_at, read_xor_key,
)
from .block import Block
from .core_block_index import BlockIndexRecord, FileInfoRecord, IndexDb, TxIndexRecord
from .errors import NotFoundError, ReindexingError
from .transaction import Transaction


class ChainReader:
    """
    Block and transaction reader backed by Core's block index and blk*.dat files.

    Args:
        blocks_dir: Path to the blocks directory (blk*.dat, xor.dat).
        index_db: IndexDb over blocks/index. May be None when only
            get_*_from_file and verify_first_block are used.
        magic: Network magic expected at each record start.
        xor_key: Block file obfuscation key. Read from xor.dat when omitted.
        tx_index_db: IndexDb holding 't' records, if not the block index itself.
    """

    def __init__(self, blocks_dir: str, index_db: Optional[IndexDb], magic: int,
                 xor_key: Optional[bytes] = None, tx_index_db: Optional[IndexDb] = None):
        if not os.path.isdir(blocks_dir):
            raise ValueError(f"Blocks directory not found: {blocks_dir}")
        self.blocks_dir = blocks_dir
        self.index_db = index_db
        self.tx_index_db = tx_index_db or index_db
        self.magic = magic
        self.network = next((name for name, m in MAGIC_BY_NETWORK.items() if m == magic), None)
        self.xor_key = xor_key if xor_key is not None else read_xor_key(blocks_dir)

    @classmethod
    def from_config(cls, network: str = config.NETWORK, blocks_dir: str = config.BLOCKS_DIR,
                    index_dir: str = config.BLOCK_INDEX_DIR,
                    tx_index_dir: str = config.TX_INDEX_DIR) -> "ChainReader":
        index_db = IndexDb.open(index_dir)
        tx_index_db = IndexDb.open(tx_index_dir) if tx_index_dir != index_dir else None
        return cls(blocks_dir, index_db, MAGIC_BY_NETWORK[network], tx_index_db=tx_index_db)

    def close(self):
        if self.tx_index_db is not None and self.tx_index_db is not self.index_db:
            self.tx_index_db.close()
        if self.index_db is not None:
            self.index_db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # -- block index -------------------------------------------------------

    def is_reindexing(self) -> bool:
        return self.index_db.is_reindexing()

    def fail_if_reindexing(self):
        if self.is_reindexing():
            raise ReindexingError("bitcoind is reindexing")

    def get_flag(self, name: str) -> bool:
        return self.index_db.get_flag(name)

    def require_txindex(self):
        try:
            enabled = self.tx_index_db.get_flag("txindex")
        except NotFoundError:
            enabled = False
        if not enabled:
            raise NotFoundError("txindex is not enabled for your bitcoind")

    def get_last_block_file(self) -> int:
        return self.index_db.get_last_block_file()

    def get_file_info_record(self, n_file: int) -> FileInfoRecord:
        self.fail_if_reindexing()
        return self.index_db.get_file_info_record(n_file)

    def get_block_index_record(self, block_hash_hex: str) -> BlockIndexRecord:
        self.fail_if_reindexing()
        return self.index_db.get_block_index_record_by_hex(block_hash_hex)

    def get_tx_index_record(self, txid_hex: str) -> TxIndexRecord:
        self.fail_if_reindexing()
        self.require_txindex()
        return self.tx_index_db.get_tx_index_record_by_hex(txid_hex)

    # -- block files -------------------------------------------------------

    def get_block_from_file(self, n_file: int, data_pos: int) -> Block:
        return read_block_at(self.blocks_dir, self.magic, n_file, data_pos, xor_key=self.xor_key)

    def get_tx_from_file(self, n_file: int, data_pos: int, tx_offset: int) -> Transaction:
        return read_tx_at(self.blocks_dir, self.magic, n_file, data_pos, tx_offset, xor_key=self.xor_key)

    def get_block(self, block_hash_hex: str) -> Block:
        record = self.get_block_index_record(block_hash_hex)
        if not record.has_data:
            raise NotFoundError(f"Block {block_hash_hex} has no data in blk*.dat (pruned or header-only)")
        return self.get_block_from_file(record.file, record.data_pos)

    def get_tx(self, txid_hex: str) -> Transaction:
        record = self.get_tx_index_record(txid_hex)
        return self.get_tx_from_file(record.file, record.data_pos, record.tx_offset)

    def verify_first_block(self, n_file: int = 0) -> Dict[str, Any]:
        """
        Decode the first record of blkNNNNN.dat and report whether it is the
        network's genesis block (expected for blk00000.dat).
        """
        path = blk_path_from_file_number(self.blocks_dir, n_file)
        blocks = read_blk_file(path, self.magic, max_blocks=1, xor_key=self.xor_key)
        if not blocks:
            raise NotFoundError(f"No block record found in {os.path.basename(path)}")
        first = blocks[0]
        return {
            'file': os.path.basename(path),
            'hash': first.hash_hex,
            'block_size': first.length,
            'tx_count': first.tx_count,
            'is_genesis': first.hash_hex == GENESIS_HASH_BY_NETWORK.get(self.network),
        }
