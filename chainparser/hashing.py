"""
Hash identity: double SHA256 and display byte order.

Hashes are kept in internal (serialized) byte order everywhere; they are only
reversed when rendered as hex, which is how Bitcoin displays block hashes and
txids (and how RPC accepts them).
"""
import hashlib


def double_sha256(data: bytes) -> bytes:
    first_hash = hashlib.sha256(data).digest()
    return hashlib.sha256(first_hash).digest()


def reverse_bytes(data: bytes) -> bytes:
    return bytes(data[::-1])


def hash_to_hex(hash_bytes: bytes) -> str:
    """Internal-order hash -> display hex (reversed)."""
    return hash_bytes[::-1].hex()


def hex_to_hash(hash_hex: str) -> bytes:
    """
    Display hex (RPC order, 64 chars) -> internal-order bytes, as used in
    block index keys and in serialized blocks.
    """
    hash_bytes = bytes.fromhex(hash_hex)
    if len(hash_bytes) != 32:
        raise ValueError(f"Hash must be 32 bytes, got {len(hash_bytes)}")
    return hash_bytes[::-1]
