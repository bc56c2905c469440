"""Data models for reserve records and inclusion proofs."""

import json
import re
from enum import IntEnum
from pathlib import Path
from typing import Any, List, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

_USER_ID_RE = re.compile(r"^[0-9]+$")

# Largest identifier accepted at the boundary (u32)
MAX_USER_ID = 2**32 - 1


class MalformedIdentifier(ValueError):
    """Raised when a caller-supplied user identifier cannot be parsed."""

    pass


class RecordLoadError(ValueError):
    """Raised when a record file cannot be read or contains invalid records."""

    pass


class Direction(IntEnum):
    """Which child was followed from an ancestor while descending."""
    LEFT = 0
    RIGHT = 1


class UserRecord(BaseModel):
    """A single user balance committed to by one leaf of the tree."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0, le=MAX_USER_ID, strict=True, description="Caller-supplied user identifier.")
    balance: int = Field(..., ge=0, strict=True, description="User balance in base units.")

    def serialize(self) -> bytes:
        """Canonical leaf encoding: ``(id,balance)``."""
        return f"({self.id},{self.balance})".encode("utf-8")

    def label(self) -> str:
        """Label used when rendering the leaf in a diagram."""
        return f"<br>User ID: {self.id}<br>Balance: {self.balance}"


class MerkleProof(BaseModel):
    """Inclusion evidence for one user, as served to clients.

    ``proof`` lists ``(ancestor_hash_hex, direction)`` pairs ordered from the
    root down to the matched leaf.
    """
    user_balance: int
    proof: List[Tuple[str, int]] = Field(default_factory=list)


def parse_user_id(raw: Any) -> int:
    """
    Parse a user identifier supplied at a boundary (URL, command line).

    Raises:
        MalformedIdentifier: If the value is not a non-negative decimal integer
            that fits in 32 bits.
    """
    text = str(raw).strip()
    if not _USER_ID_RE.match(text):
        raise MalformedIdentifier(f"Invalid user id: {raw!r}")
    user_id = int(text)
    if user_id > MAX_USER_ID:
        raise MalformedIdentifier(f"User id out of range: {raw!r}")
    return user_id


def _coerce_record(item: Any) -> UserRecord:
    if isinstance(item, dict):
        return UserRecord(**item)
    if isinstance(item, (list, tuple)) and len(item) == 2:
        return UserRecord(id=item[0], balance=item[1])
    raise RecordLoadError(f"Unsupported record entry: {item!r}")


def records_from_pairs(pairs) -> List[UserRecord]:
    """Build records from ``(id, balance)`` pairs or dicts, keeping input order."""
    try:
        return [_coerce_record(item) for item in pairs]
    except ValidationError as e:
        raise RecordLoadError(f"Invalid record: {e}") from e


def load_records(path: Union[str, Path]) -> List[UserRecord]:
    """
    Load an ordered record list from a JSON file.

    The file holds a JSON array whose entries are either objects with ``id``
    and ``balance`` keys or two-element ``[id, balance]`` arrays.

    Raises:
        RecordLoadError: If the file is missing, not valid JSON, or holds
            invalid records.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RecordLoadError(f"Error loading records from {path}: {e}") from e

    if not isinstance(data, list):
        raise RecordLoadError(f"Expected a JSON array of records in {path}")

    return records_from_pairs(data)


DEFAULT_RECORDS: List[UserRecord] = records_from_pairs(
    (user_id, user_id * 1111) for user_id in range(1, 9)
)


__all__ = [
    "DEFAULT_RECORDS",
    "Direction",
    "MalformedIdentifier",
    "MAX_USER_ID",
    "MerkleProof",
    "RecordLoadError",
    "UserRecord",
    "load_records",
    "parse_user_id",
    "records_from_pairs",
]
