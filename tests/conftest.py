import pytest

from proof_of_reserve.core.merkle import MerkleTree
from proof_of_reserve.core.models import UserRecord

LEAF_TAG = "ProofOfReserve_Leaf"
BRANCH_TAG = "ProofOfReserve_Branch"

FIVE_ROOT = "857f9bdfbbee9207675cbde460c99682015758111b8f9aad7193832619fb1782"


@pytest.fixture
def five_records():
    return [UserRecord(id=i, balance=i * 1111) for i in range(1, 6)]


@pytest.fixture
def five_tree(five_records):
    return MerkleTree.build(LEAF_TAG, BRANCH_TAG, five_records)
