"""Final export set: processed games first, then everything the run never reached."""
from typing import Dict, Iterable, List

from game_models import Item, ItemStatus


def merge_results(original: Iterable[Item], accumulated: Dict[str, Item]) -> List[Item]:
    """
    Combine processed items with the untouched input list.

    Processed items win and keep their processing order; input items whose name
    was never processed follow in input order, marked PENDING. The output never
    holds two items with the same name.
    """
    merged: Dict[str, Item] = dict(accumulated)
    for item in original:
        if item.name not in merged:
            merged[item.name] = item.with_status(ItemStatus.PENDING)
    return list(merged.values())
