from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from frontdesk.lottery import split_items


def test_even_split() -> None:
    shares = split_items(9, ["a", "b", "c"], random.Random(1))
    assert shares == [("a", 3), ("b", 3), ("c", 3)]


def test_remainder_goes_to_distinct_participants() -> None:
    shares = dict(split_items(11, ["a", "b", "c", "d"], random.Random(7)))
    assert sum(shares.values()) == 11
    assert sorted(shares.values()) == [2, 3, 3, 3]


def test_fewer_items_than_participants() -> None:
    shares = dict(split_items(2, ["a", "b", "c", "d", "e"], random.Random(3)))
    assert sorted(shares.values()) == [0, 0, 0, 1, 1]


@pytest.mark.parametrize("count", [0, -3])
def test_invalid_item_count(count: int) -> None:
    with pytest.raises(ValueError):
        split_items(count, ["a"])


def test_nobody_checked_in() -> None:
    with pytest.raises(ValueError, match="No customers"):
        split_items(5, [])
