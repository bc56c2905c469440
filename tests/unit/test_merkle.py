"""Unit tests for the reserve Merkle tree."""

import math
from concurrent.futures import ThreadPoolExecutor

import pytest

from proof_of_reserve.core.crypto import tagged_hash
from proof_of_reserve.core.merkle import (
    EmptyTreeError,
    MerkleTree,
    RecordNotFoundError,
    compute_root,
)
from proof_of_reserve.core.models import Direction, UserRecord

from tests.conftest import BRANCH_TAG, FIVE_ROOT, LEAF_TAG

# Intermediate hashes of the five record tree
ROOT = bytes.fromhex(FIVE_ROOT)
LEFT_1234 = bytes.fromhex("09e1f208d3b96f4d5948225f3a1ea83fbc0017a80d1fcd2603ca537e958fcc57")
RIGHT_55 = bytes.fromhex("7cabcc2201d36734dfa1b29484c76146508fdf1429a6c3366217d97feba0bbc0")
NODE_34 = bytes.fromhex("76437464d68b779571e1d94270df86792faad0bdcfe2c0868459d4c9bd0ff5da")
NODE_55 = bytes.fromhex("ba783e833cbfe38388c5212daf60e453e7cd6f7524a40aee6a84f705494c25b0")


def test_root_for_known_records(five_tree) -> None:
    """Five records under the reserve tags give the published root."""
    assert five_tree.root() == FIVE_ROOT
    assert five_tree.root_hash == ROOT


def test_root_is_deterministic(five_records) -> None:
    first = MerkleTree.build(LEAF_TAG, BRANCH_TAG, five_records)
    second = MerkleTree.build(LEAF_TAG, BRANCH_TAG, list(five_records))
    assert first.root() == second.root()


def test_default_tags(five_records) -> None:
    assert MerkleTree.build(records=five_records).root() == FIVE_ROOT


def test_root_depends_on_order(five_records) -> None:
    reordered = MerkleTree.build(LEAF_TAG, BRANCH_TAG, list(reversed(five_records)))
    assert reordered.root() != FIVE_ROOT


def test_root_depends_on_tags(five_records) -> None:
    swapped = MerkleTree.build(BRANCH_TAG, LEAF_TAG, five_records)
    assert swapped.root() != FIVE_ROOT


def test_odd_level_pairs_last_node_with_itself(five_tree) -> None:
    """The fifth leaf is duplicated, not promoted, giving a three node level."""
    levels = five_tree.levels()
    assert [len(level) for level in levels] == [5, 3, 2, 1]

    leaves = levels[0]
    last = levels[1][2]
    assert last.left is leaves[4]
    assert last.right is leaves[4]
    assert last.hash == tagged_hash(BRANCH_TAG, leaves[4].hash * 2)
    assert last.hash == NODE_55


def test_branch_hash_is_tagged_concatenation(five_tree) -> None:
    for level in five_tree.levels()[1:]:
        for node in level:
            assert not node.is_leaf
            assert node.hash == tagged_hash(BRANCH_TAG, node.left.hash + node.right.hash)


def test_leaf_hash_is_tagged_record(five_tree, five_records) -> None:
    for node, record in zip(five_tree.leaves(), five_records):
        assert node.is_leaf
        assert node.left is None and node.right is None
        assert node.hash == tagged_hash(LEAF_TAG, record.serialize())


@pytest.mark.parametrize("count", [1, 2, 3, 4, 5, 7, 8, 9, 16, 17])
def test_height(count) -> None:
    records = [UserRecord(id=i, balance=i) for i in range(count)]
    tree = MerkleTree.build(LEAF_TAG, BRANCH_TAG, records)
    assert tree.size == count
    assert tree.height == math.ceil(math.log2(count))


def test_empty_tree() -> None:
    """An empty record list builds a tree with no root and no matches."""
    tree = MerkleTree.build(LEAF_TAG, BRANCH_TAG, [])
    assert tree.root() is None
    assert tree.root_hash is None
    assert tree.size == 0
    assert tree.levels() == []
    assert tree.search(lambda record: True) is None


def test_empty_tree_proof_raises() -> None:
    tree = MerkleTree.build(LEAF_TAG, BRANCH_TAG, [])
    with pytest.raises(EmptyTreeError):
        tree.get_proof(1)


def test_single_record() -> None:
    """A single record tree is its own leaf and matches with an empty path."""
    record = UserRecord(id=1, balance=1111)
    tree = MerkleTree.build(LEAF_TAG, BRANCH_TAG, [record])

    assert tree.root_hash == tagged_hash(LEAF_TAG, b"(1,1111)")
    assert tree.height == 0

    node, path = tree.search(lambda r: r.id == 1)
    assert node.record == record
    assert path == []


def test_search_path_shape(five_tree) -> None:
    """Searching for id 3 goes left, right, left from the root."""
    node, path = five_tree.search(lambda record: record.id == 3)

    assert node.record == UserRecord(id=3, balance=3333)
    assert len(path) == 3
    assert path == [
        (ROOT, Direction.LEFT),
        (LEFT_1234, Direction.RIGHT),
        (NODE_34, Direction.LEFT),
    ]


def test_search_finds_duplicated_leaf_through_left_copy(five_tree) -> None:
    node, path = five_tree.search(lambda record: record.id == 5)

    assert node.record.balance == 5555
    assert path == [
        (ROOT, Direction.RIGHT),
        (RIGHT_55, Direction.LEFT),
        (NODE_55, Direction.LEFT),
    ]


def test_search_is_left_before_right(five_tree) -> None:
    """The first matching leaf in left-to-right order wins."""
    node, _ = five_tree.search(lambda record: record.balance > 2000)
    assert node.record.id == 2


def test_search_not_found(five_tree) -> None:
    assert five_tree.search(lambda record: record.id == 42) is None


def test_search_returns_independent_paths(five_tree) -> None:
    _, first = five_tree.search(lambda record: record.id == 1)
    first.clear()
    _, second = five_tree.search(lambda record: record.id == 1)
    assert len(second) == 3


def test_find_user(five_tree) -> None:
    node, path = five_tree.find_user(4)
    assert node.record.id == 4
    assert [direction for _, direction in path] == [Direction.LEFT, Direction.RIGHT, Direction.RIGHT]


def test_get_proof(five_tree) -> None:
    proof = five_tree.get_proof(3)
    assert proof.user_balance == 3333
    assert proof.proof == [
        (ROOT.hex(), 0),
        (LEFT_1234.hex(), 1),
        (NODE_34.hex(), 0),
    ]


def test_get_proof_not_found(five_tree) -> None:
    with pytest.raises(RecordNotFoundError):
        five_tree.get_proof(99)


def test_read_operations_are_idempotent(five_tree) -> None:
    results = {(five_tree.root(), tuple(five_tree.search(lambda r: r.id == 2)[1])) for _ in range(5)}
    assert len(results) == 1
    assert five_tree.root() == FIVE_ROOT


def test_concurrent_reads(five_tree) -> None:
    with ThreadPoolExecutor(max_workers=4) as pool:
        proofs = list(pool.map(five_tree.get_proof, [1, 2, 3, 4, 5] * 10))
    assert [p.user_balance for p in proofs[:5]] == [1111, 2222, 3333, 4444, 5555]
    assert all(len(p.proof) == 3 for p in proofs)


def test_deep_tree_search() -> None:
    records = [UserRecord(id=i, balance=i) for i in range(2049)]
    tree = MerkleTree.build(LEAF_TAG, BRANCH_TAG, records)
    node, path = tree.find_user(2048)
    assert node.record.id == 2048
    assert len(path) == tree.height == 12


@pytest.mark.parametrize("branch_tag,leaf_tag,expected", [
    ("Bitcoin_Transaction", "Bitcoin_Transaction",
     "03c310cf2ad354009c474d1471c535065138ad1c976567451b7787a1983af425"),
    ("ProofOfReserve_Branch", "ProofOfReserve_Leaf",
     "61e782c764bbdc8f705a5d9db4c28a54eed85b6f047d85a08649bd40404b3495"),
])
def test_compute_root(branch_tag, leaf_tag, expected) -> None:
    items = ["aaa", "bbb", "ccc", "ddd", "eee"]
    assert compute_root(branch_tag, leaf_tag, items) == expected


def test_compute_root_empty() -> None:
    with pytest.raises(ValueError):
        compute_root(BRANCH_TAG, LEAF_TAG, [])


@pytest.mark.parametrize("count", [3, 5, 6, 7, 11])
def test_every_node_has_one_parent(count) -> None:
    """A self-paired node is held only by its own parent."""
    records = [UserRecord(id=i, balance=i) for i in range(count)]
    tree = MerkleTree.build(LEAF_TAG, BRANCH_TAG, records)

    parents = {}
    for level in tree.levels()[1:]:
        for node in level:
            for child in (node.left, node.right):
                parents.setdefault(id(child), set()).add(id(node))

    non_root = [node for level in tree.levels()[:-1] for node in level]
    assert all(len(parents[id(node)]) == 1 for node in non_root)
