"""
Proof of Reserve - Merkle commitments over user balances.

This package builds a tagged-hash Merkle tree over user balance records,
publishes its root and produces per-user inclusion paths.
"""

from importlib.metadata import PackageNotFoundError, version

__version__ = "0.1.0"

try:
    __version__ = version("proof-of-reserve")
except PackageNotFoundError:
    pass

# Core components
from proof_of_reserve.core import (
    DEFAULT_BRANCH_TAG,
    DEFAULT_LEAF_TAG,
    DEFAULT_RECORDS,
    Direction,
    EmptyTreeError,
    MalformedIdentifier,
    MerkleProof,
    MerkleTree,
    MerkleTreeError,
    Node,
    RecordLoadError,
    RecordNotFoundError,
    TraversePath,
    UserRecord,
    compute_root,
    load_records,
    parse_user_id,
    tagged_hash,
    tagged_hash_hex,
)

__all__ = [
    # Hashing
    "tagged_hash",
    "tagged_hash_hex",
    # Tree
    "MerkleTree",
    "Node",
    "TraversePath",
    "compute_root",
    "DEFAULT_LEAF_TAG",
    "DEFAULT_BRANCH_TAG",
    # Models
    "Direction",
    "MerkleProof",
    "UserRecord",
    "DEFAULT_RECORDS",
    "load_records",
    "parse_user_id",
    # Errors
    "EmptyTreeError",
    "MalformedIdentifier",
    "MerkleTreeError",
    "RecordLoadError",
    "RecordNotFoundError",
]
