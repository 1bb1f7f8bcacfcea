from __future__ import annotations

import random
from typing import Dict, Hashable, List, Optional, Sequence, Tuple


def split_items(item_count: int, participants: Sequence[Hashable],
                rng: Optional[random.Random] = None) -> List[Tuple[Hashable, int]]:
    """Share ``item_count`` items evenly; the remainder goes one each to random participants.

    Returns ``(participant, items)`` pairs in the input order.
    """
    if item_count <= 0:
        raise ValueError("Please enter a valid number of items.")
    if not participants:
        raise ValueError("No customers are currently checked in.")
    rng = rng or random.Random()
    base, remainder = divmod(item_count, len(participants))
    shares: Dict[Hashable, int] = {p: base for p in participants}
    for lucky in rng.sample(list(participants), remainder):
        shares[lucky] += 1
    return [(p, shares[p]) for p in participants]
