"""
Read Bitcoin Core's on-disk data: blk*.dat block files and the LevelDB
block index, plus a small JSON-RPC client for raw transactions.
"""
from .blk_file import MAINNET_MAGIC, TESTNET_MAGIC, BlockFile, read_block, scan_blocks
from .block import Block, BlockHeader
from .block_reader import ChainReader
from .core_block_index import BlockIndexRecord, ChainstateDb, FileInfoRecord, IndexDb, TxIndexRecord
from .cursor import Cursor
from .errors import (
    ChainParserError, FramingError, MalformedRecordError, NotFoundError,
    ProtocolError, ReindexingError, TruncationError,
)
from .rpc import RpcClient
from .transaction import Transaction, TxEncoding, TxInput, TxOutput

__version__ = "0.1.0"
