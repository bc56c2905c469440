"""
Cryptographic primitives for Proof of Reserve.

This module provides the domain-separated hash used for every node of the
reserve Merkle tree.
"""

import hashlib
from typing import Union


def _tag_bytes(tag: Union[str, bytes]) -> bytes:
    if isinstance(tag, str):
        return tag.encode("utf-8")
    if isinstance(tag, (bytes, bytearray)):
        return bytes(tag)
    raise TypeError(f"Tag must be str or bytes, got {type(tag).__name__}")


def tagged_hash(tag: Union[str, bytes], data: bytes) -> bytes:
    """
    Compute a tagged SHA-256 hash.

    The digest is SHA-256(tag || tag || data), computed in a single hash
    invocation. Hashes made for different purposes (leaves, branches, other
    applications) use different tags and so never collide on equal inputs.

    Args:
        tag: Domain separation tag
        data: Payload to hash

    Returns:
        bytes: The 32-byte digest
    """
    tag_bytes = _tag_bytes(tag)
    hasher = hashlib.sha256()
    hasher.update(tag_bytes)
    hasher.update(tag_bytes)
    hasher.update(data)
    return hasher.digest()


def tagged_hash_hex(tag: Union[str, bytes], data: bytes) -> str:
    """Compute a tagged SHA-256 hash and return it as a lowercase hex string."""
    return tagged_hash(tag, data).hex()


__all__ = ["tagged_hash", "tagged_hash_hex"]
