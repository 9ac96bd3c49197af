"""
Source diversification for the final top-K.
"""

from typing import Dict, List, Sequence, TypeVar

T = TypeVar("T")


def diversify_by_source(sorted_items: Sequence[T], limit: int, soft_cap: int = 2) -> List[T]:
    """
    Cap each source at soft_cap results, backfilling from the overflow.

    Rank order is preserved on both sides of the split, and a source is only
    held back while other sources can fill the slots.

    Args:
        sorted_items: Ranked items exposing a `source` attribute
        limit: Number of results wanted
        soft_cap: Results per source before backfill kicks in

    Returns:
        min(limit, len(sorted_items)) items
    """
    if len(sorted_items) <= limit:
        return list(sorted_items)

    selected: List[T] = []
    overflow: List[T] = []
    counts: Dict[str, int] = {}

    for item in sorted_items:
        source_count = counts.get(item.source, 0)
        if source_count < soft_cap:
            selected.append(item)
            counts[item.source] = source_count + 1
        else:
            overflow.append(item)

    if len(selected) < limit:
        selected.extend(overflow[: limit - len(selected)])

    return selected[:limit]
