"""
Core functionality for Proof of Reserve.

This package contains the tagged hasher, the record models and the Merkle tree
used to commit to user balances and produce inclusion paths.
"""

from .crypto import tagged_hash, tagged_hash_hex
from .merkle import (
    DEFAULT_BRANCH_TAG,
    DEFAULT_LEAF_TAG,
    EmptyTreeError,
    MerkleTree,
    MerkleTreeError,
    Node,
    RecordNotFoundError,
    TraversePath,
    compute_root,
)
from .models import (
    DEFAULT_RECORDS,
    Direction,
    MalformedIdentifier,
    MerkleProof,
    RecordLoadError,
    UserRecord,
    load_records,
    parse_user_id,
)

__all__ = [
    'DEFAULT_BRANCH_TAG', 'DEFAULT_LEAF_TAG', 'DEFAULT_RECORDS', 'Direction',
    'EmptyTreeError', 'MalformedIdentifier', 'MerkleProof', 'MerkleTree',
    'MerkleTreeError', 'Node', 'RecordLoadError', 'RecordNotFoundError',
    'TraversePath', 'UserRecord', 'compute_root', 'load_records',
    'parse_user_id', 'tagged_hash', 'tagged_hash_hex',
]
