"""
Merkle Tree implementation for the proof of reserve commitment.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from proof_of_reserve.core.crypto import tagged_hash
from proof_of_reserve.core.models import Direction, MerkleProof, UserRecord

logger = logging.getLogger(__name__)

# Default domain separation tags
DEFAULT_LEAF_TAG = "ProofOfReserve_Leaf"
DEFAULT_BRANCH_TAG = "ProofOfReserve_Branch"

TraversePath = List[Tuple[bytes, Direction]]
Predicate = Callable[[UserRecord], bool]


class MerkleTreeError(LookupError):
    """Base class for lookups that produce no proof."""

    pass


class EmptyTreeError(MerkleTreeError):
    """Raised when a proof is requested from a tree built from zero records."""

    pass


class RecordNotFoundError(MerkleTreeError):
    """Raised when no leaf satisfies the requested lookup."""

    pass


@dataclass(frozen=True)
class Node:
    """A node in the Merkle tree.

    A leaf carries a record and no children; a branch carries two children
    and no record.
    """
    hash: bytes
    left: Optional['Node'] = None
    right: Optional['Node'] = None
    record: Optional[UserRecord] = None
    leaf_index: Optional[int] = None

    @property
    def is_leaf(self) -> bool:
        return self.record is not None

    @property
    def hex(self) -> str:
        return self.hash.hex()


def _pair_up(nodes: List[Node], branch_tag: str) -> List[Node]:
    """Reduce one level: hash consecutive pairs, pairing an odd last node with itself."""
    next_level = []
    for i in range(0, len(nodes), 2):
        left = nodes[i]
        right = nodes[i + 1] if i + 1 < len(nodes) else left
        next_level.append(Node(
            hash=tagged_hash(branch_tag, left.hash + right.hash),
            left=left,
            right=right,
        ))
    return next_level


class MerkleTree:
    """
    An immutable binary Merkle tree over user balance records.

    Leaves are ``tagged_hash(leaf_tag, "(id,balance)")``; branches are
    ``tagged_hash(branch_tag, left || right)``. When a level has an odd number
    of nodes the last one is paired with itself. The tree is built once and
    never mutated, so any number of readers may share it.
    """

    def __init__(self, leaf_tag: str, branch_tag: str, levels: List[List[Node]]):
        self.leaf_tag = leaf_tag
        self.branch_tag = branch_tag
        self._levels = levels
        self.root_node: Optional[Node] = levels[-1][0] if levels else None

    @classmethod
    def build(
        cls,
        leaf_tag: str = DEFAULT_LEAF_TAG,
        branch_tag: str = DEFAULT_BRANCH_TAG,
        records: Iterable[UserRecord] = (),
    ) -> 'MerkleTree':
        """Build a tree from an ordered sequence of records."""
        # Hash all leaves
        nodes = [
            Node(
                hash=tagged_hash(leaf_tag, record.serialize()),
                record=record,
                leaf_index=i,
            )
            for i, record in enumerate(records)
        ]
        if not nodes:
            logger.debug("Built empty Merkle tree")
            return cls(leaf_tag, branch_tag, [])

        levels = [nodes]
        while len(nodes) > 1:
            nodes = _pair_up(nodes, branch_tag)
            levels.append(nodes)

        tree = cls(leaf_tag, branch_tag, levels)
        logger.debug("Built Merkle tree over %d records, root %s", tree.size, tree.root())
        return tree

    @property
    def root_hash(self) -> Optional[bytes]:
        """Get the raw root hash of the tree."""
        return self.root_node.hash if self.root_node else None

    def root(self) -> Optional[str]:
        """Get the root hash as lowercase hex, or None for an empty tree."""
        return self.root_node.hex if self.root_node else None

    @property
    def size(self) -> int:
        """Number of records committed to by the tree."""
        return len(self._levels[0]) if self._levels else 0

    @property
    def height(self) -> int:
        """Number of branch levels above the leaves."""
        return len(self._levels) - 1 if self._levels else 0

    def levels(self) -> List[List[Node]]:
        """Nodes of each level, leaves first and root last."""
        return [list(level) for level in self._levels]

    def leaves(self) -> List[Node]:
        """Leaf nodes in input order."""
        return list(self._levels[0]) if self._levels else []

    def search(self, predicate: Predicate) -> Optional[Tuple[Node, TraversePath]]:
        """
        Find the first leaf whose record satisfies ``predicate``.

        The walk is depth-first, pre-order, left before right. Each step down
        records the ancestor's own hash and the direction taken from it; the
        path is truncated again when the walk backtracks.

        Args:
            predicate: Pure function deciding whether a record matches.

        Returns:
            The matched leaf and a copy of the root-to-leaf path, or None if
            the tree is empty or nothing matches.
        """
        if self.root_node is None:
            return None

        path: TraversePath = []
        # (node, path length at the parent, step taken from the parent)
        stack: List[Tuple[Node, int, Optional[Tuple[bytes, Direction]]]] = [
            (self.root_node, 0, None)
        ]
        while stack:
            node, depth, step = stack.pop()
            del path[depth:]
            if step is not None:
                path.append(step)

            if node.is_leaf and predicate(node.record):
                return node, list(path)

            # Right is pushed first so the left subtree is walked first
            if node.right is not None:
                stack.append((node.right, len(path), (node.hash, Direction.RIGHT)))
            if node.left is not None:
                stack.append((node.left, len(path), (node.hash, Direction.LEFT)))

        return None

    def find_user(self, user_id: int) -> Optional[Tuple[Node, TraversePath]]:
        """Search for the leaf holding ``user_id``."""
        return self.search(lambda record: record.id == user_id)

    def get_proof(self, user_id: int) -> MerkleProof:
        """
        Build the served inclusion proof for a user.

        Raises:
            EmptyTreeError: If the tree holds no records.
            RecordNotFoundError: If no leaf holds ``user_id``.
        """
        if self.root_node is None:
            raise EmptyTreeError("Merkle tree is empty")

        found = self.find_user(user_id)
        if found is None:
            logger.debug("No record for user %d", user_id)
            raise RecordNotFoundError(f"User not found: {user_id}")

        node, path = found
        return MerkleProof(
            user_balance=node.record.balance,
            proof=[(ancestor.hex(), int(direction)) for ancestor, direction in path],
        )


def compute_root(branch_tag: str, leaf_tag: str, items: Sequence[str]) -> str:
    """
    Compute the hex Merkle root over plain strings.

    Uses the same tagging and odd-node policy as ``MerkleTree`` but keeps only
    hashes, not nodes.

    Raises:
        ValueError: If ``items`` is empty.
    """
    if not items:
        raise ValueError("Cannot compute a Merkle root over no items")

    hashes = [tagged_hash(leaf_tag, item.encode("utf-8")) for item in items]
    while len(hashes) > 1:
        hashes = [
            tagged_hash(branch_tag, hashes[i] + (hashes[i + 1] if i + 1 < len(hashes) else hashes[i]))
            for i in range(0, len(hashes), 2)
        ]
    return hashes[0].hex()
