#!/usr/bin/env python3
"""
Inspect a Bitcoin Core data directory without running the node.

Usage:
  chainparser get-block 000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f
  chainparser --testnet get-block-from-file 0 8
  BITCOIN_DIR=/path/to/data-bitcoin chainparser get-tx <txid>
"""
import argparse
import os
import sys
from typing import Any, Dict

from .. import config
from ..blk_file import magic_for_network
from ..block import Block
from ..block_reader import ChainReader
from ..core_block_index import ChainstateDb, IndexDb
from ..errors import ChainParserError, NotFoundError
from ..transaction import Transaction

# Commands that only read blk*.dat files
FILE_COMMANDS = ('get-block-from-file', 'get-tx-from-file', 'verify-first-block')


def _print_fields(fields: Dict[str, Any], indent: str = ""):
    for key, value in fields.items():
        print(f"{indent}{key}: {value}")


def print_block(block: Block):
    print("=" * 70)
    print("BLOCK INFORMATION")
    print("=" * 70)
    print(f"Hash: {block.hash_hex}")
    print(f"Magic: 0x{block.magic:08x}")
    print(f"Block Size: {block.length:,} bytes")
    _print_fields({
        'Version': block.header.version,
        'Previous Block Hash': block.header.to_dict()['prev_block_hash'],
        'Merkle Root': block.header.to_dict()['merkle_root'],
        'Timestamp': f"{block.header.timestamp} ({block.header.time.isoformat()})",
        'Difficulty Bits': f"0x{block.header.bits:08x}",
        'Nonce': block.header.nonce,
        'Transaction Count': block.tx_count,
    })
    for idx, tx in enumerate(block.transactions):
        print(f"  TX {idx}: {tx.txid_hex} ({len(tx.inputs)} inputs, {len(tx.outputs)} outputs)")


def print_tx(tx: Transaction, network: str):
    print(f"Txid: {tx.txid_hex}")
    print(f"  Version: {tx.version}")
    print(f"  SegWit: {'Yes' if tx.has_witness() else 'No'}")
    print(f"  Locktime: {tx.locktime}")
    print(f"  Inputs: {len(tx.inputs)}")
    for i, inp in enumerate(tx.inputs):
        d = inp.to_dict()
        if inp.is_coinbase():
            print(f"    Input {i}: coinbase {d['script_hex']}")
        else:
            print(f"    Input {i}: {d['prev_tx_hash']}:{inp.prev_index}")
        if inp.witness:
            print(f"      Witness items: {len(inp.witness)}")
    print(f"  Outputs: {len(tx.outputs)}")
    for i, out in enumerate(tx.outputs):
        address = out.address(network) or '-'
        print(f"    Output {i}: {out.value:,} satoshis ({out.btc:.8f} BTC) {out.script_type} {address}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chainparser",
                                     description="Read blocks and index records from a Bitcoin Core data directory")
    parser.add_argument("--testnet", action="store_true", help="Use testnet (testnet3 data dir and magic)")
    parser.add_argument("--datadir", help="Bitcoin data path (default: BITCOIN_DIR or the platform default)")
    parser.add_argument("--blocks-dir", help="Path to blocks directory (default: <datadir>/blocks)")
    parser.add_argument("--index-dir", help="Path to block index LevelDB (default: <blocks>/index)")
    parser.add_argument("--txindex-dir", help="Path to LevelDB holding 't' records (default: block index)")
    parser.add_argument("--chainstate-dir", help="Path to chainstate LevelDB (default: <datadir>/chainstate)")

    sub = parser.add_subparsers(dest="command", metavar="command")
    sub.add_parser("get-block", help="Block by hash").add_argument("hash")
    sub.add_parser("get-block-index-record", help="Block index record by hash").add_argument("hash")
    p = sub.add_parser("get-block-from-file", help="Block at a file number and data offset")
    p.add_argument("file", type=int)
    p.add_argument("pos", type=int)
    sub.add_parser("get-tx", help="Transaction by txid (needs txindex)").add_argument("hash")
    sub.add_parser("get-tx-index-record", help="Transaction index record by txid").add_argument("hash")
    p = sub.add_parser("get-tx-from-file", help="Transaction at a file number, block offset and tx offset")
    p.add_argument("file", type=int)
    p.add_argument("pos", type=int)
    p.add_argument("txpos", type=int)
    sub.add_parser("get-file-info-record", help="Block file info record").add_argument("file", type=int)
    sub.add_parser("get-last-block-file", help="Last block file number used")
    sub.add_parser("get-flag", help="Boolean flag stored in the block index").add_argument("name")
    sub.add_parser("get-reindexing", help="Whether the node is reindexing")
    sub.add_parser("get-best-block", help="Best block hash recorded in the chainstate")
    p = sub.add_parser("verify-first-block", help="Decode the first block of a file and check genesis")
    p.add_argument("file", type=int, nargs="?", default=0)
    return parser


def resolve_paths(args) -> Dict[str, str]:
    network = "testnet" if args.testnet else config.NETWORK
    if args.datadir or args.testnet:
        datadir = os.path.expanduser(args.datadir or config.BITCOIN_DIR)
        net_dir = config.network_data_dir(datadir, network)
        blocks_dir = os.path.join(net_dir, "blocks")
        chainstate_dir = os.path.join(net_dir, "chainstate")
        index_dir = os.path.join(blocks_dir, "index")
        tx_index_dir = index_dir
    else:
        blocks_dir = config.BLOCKS_DIR
        index_dir = config.BLOCK_INDEX_DIR
        tx_index_dir = config.TX_INDEX_DIR
        chainstate_dir = config.CHAINSTATE_DIR
    blocks_dir = os.path.expanduser(args.blocks_dir or blocks_dir)
    index_dir = os.path.expanduser(args.index_dir or index_dir)
    tx_index_dir = os.path.expanduser(args.txindex_dir or (index_dir if args.index_dir else tx_index_dir))
    return {
        'network': network,
        'blocks_dir': blocks_dir,
        'index_dir': index_dir,
        'tx_index_dir': tx_index_dir,
        'chainstate_dir': os.path.expanduser(args.chainstate_dir or chainstate_dir),
    }


def open_reader(paths: Dict[str, str], need_index: bool) -> ChainReader:
    index_db = tx_index_db = None
    if need_index:
        index_db = IndexDb.open(paths['index_dir'])
        if paths['tx_index_dir'] != paths['index_dir']:
            tx_index_db = IndexDb.open(paths['tx_index_dir'])
    return ChainReader(paths['blocks_dir'], index_db, magic_for_network(paths['network']),
                       tx_index_db=tx_index_db)


def run(args, reader: ChainReader, network: str):
    cmd = args.command
    if cmd == "get-block":
        print_block(reader.get_block(args.hash))
    elif cmd == "get-block-index-record":
        _print_fields(reader.get_block_index_record(args.hash).to_dict())
    elif cmd == "get-block-from-file":
        print_block(reader.get_block_from_file(args.file, args.pos))
    elif cmd == "get-tx":
        print_tx(reader.get_tx(args.hash), network)
    elif cmd == "get-tx-index-record":
        _print_fields(reader.get_tx_index_record(args.hash).to_dict())
    elif cmd == "get-tx-from-file":
        print_tx(reader.get_tx_from_file(args.file, args.pos, args.txpos), network)
    elif cmd == "get-file-info-record":
        _print_fields(reader.get_file_info_record(args.file).to_dict())
    elif cmd == "get-last-block-file":
        print(reader.get_last_block_file())
    elif cmd == "get-flag":
        try:
            value = reader.get_flag(args.name)
        except NotFoundError:
            value = False
        print(f"flag {args.name} = {value}")
    elif cmd == "get-reindexing":
        print(reader.is_reindexing())
    elif cmd == "verify-first-block":
        result = reader.verify_first_block(args.file)
        _print_fields(result)
        if args.file == 0 and not result['is_genesis']:
            print(f"WARN: genesis expected for {result['file']}")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help(sys.stderr)
        return 2

    paths = resolve_paths(args)
    try:
        if args.command == "get-best-block":
            with ChainstateDb.open(paths['chainstate_dir']) as chainstate:
                print(chainstate.get_best_block_hex())
            return 0
        with open_reader(paths, need_index=args.command not in FILE_COMMANDS) as reader:
            run(args, reader, paths['network'])
    except (ChainParserError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
