"""
Central configuration for chainparser.
All settings can be overridden via environment variables; the CLI can
override the paths and network per invocation.
"""
import os
import sys


def default_bitcoin_dir() -> str:
    """Bitcoin Core's default data directory for this platform."""
    if sys.platform == "win32":
        return os.path.join(os.getenv("APPDATA", ""), "Bitcoin")
    if sys.platform == "darwin":
        return os.path.expanduser("~/Library/Application Support/Bitcoin")
    return os.path.expanduser("~/.bitcoin")


def network_data_dir(datadir: str, network: str) -> str:
    """Testnet data lives in a testnet3 subdirectory of the data dir."""
    if network == "testnet":
        return os.path.join(datadir, "testnet3")
    return datadir


# ---------------------------------------------------------------------------
# Network / paths
# ---------------------------------------------------------------------------
NETWORK = os.getenv("NETWORK", "mainnet")  # 'mainnet' | 'testnet'

# Node data dir (e.g. ~/.bitcoin). Testnet appends testnet3.
BITCOIN_DIR = os.path.expanduser(os.getenv("BITCOIN_DIR", "").strip() or default_bitcoin_dir())
# Path to blocks directory containing blk*.dat (and xor.dat on Core 28+)
BLOCKS_DIR = os.path.expanduser(
    os.getenv("BLOCKS_DIR", "").strip() or os.path.join(network_data_dir(BITCOIN_DIR, NETWORK), "blocks")
)
# Path to block index (LevelDB). If Bitcoin Core is running it holds the lock; use a copy:
# stop Core, cp -r blocks/index /path/to/index-copy, start Core, then set BLOCK_INDEX_DIR.
BLOCK_INDEX_DIR = os.path.expanduser(os.getenv("BLOCK_INDEX_DIR", "").strip() or os.path.join(BLOCKS_DIR, "index"))
# Transaction index ('t' records). Older nodes keep it in the block index itself.
TX_INDEX_DIR = os.path.expanduser(os.getenv("TX_INDEX_DIR", "").strip() or BLOCK_INDEX_DIR)
# UTXO set LevelDB; only the best block hash is read from it
CHAINSTATE_DIR = os.path.expanduser(
    os.getenv("CHAINSTATE_DIR", "").strip() or os.path.join(network_data_dir(BITCOIN_DIR, NETWORK), "chainstate")
)

# ---------------------------------------------------------------------------
# RPC
# ---------------------------------------------------------------------------
RPC_USER = os.getenv("RPC_USER", "admin")
RPC_PASSWORD = os.getenv("RPC_PASSWORD", "pass")
RPC_HOST = os.getenv("RPC_HOST", "127.0.0.1")
RPC_PORT = int(os.getenv("RPC_PORT", "18332" if NETWORK == "testnet" else "8332"))
RPC_URL = os.getenv("RPC_URL", f"http://{RPC_HOST}:{RPC_PORT}/")
# Seconds before an RPC request is abandoned
RPC_TIMEOUT = float(os.getenv("RPC_TIMEOUT", "30"))

# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------
# Print progress lines from the block file layer
VERBOSE = bool(int(os.getenv("VERBOSE", "0")))
