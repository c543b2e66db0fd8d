#!/usr/bin/env python3
"""
Keyed averaging used both per URL (across runs) and per batch (across pages)

Rounding is half-up: 2.5 -> 3. Metrics are never negative, so this is the
same as rounding half away from zero.
"""

import math
from collections import OrderedDict
from typing import Callable, Dict, Hashable, Iterable, List, Sequence, TypeVar

T = TypeVar('T')


def round_half_up(value: float) -> int:
    """Round a non-negative float to the nearest integer, ties going up"""
    if value < 0:
        return -round_half_up(-value)
    return int(math.floor(value + 0.5))


def mean_by_key(
    items: Iterable[T],
    key: Callable[[T], Hashable],
    fields: Sequence[str],
) -> Dict[Hashable, Dict[str, int]]:
    """
    Average numeric attributes of items grouped by key

    Args:
        items: Samples to group
        key: Grouping function (container ID per URL, constant for a batch)
        fields: Attribute names to average independently

    Returns:
        Ordered mapping of group key -> {field: rounded mean}, in first-seen
        key order. Each group is averaged over its own sample count only.
    """
    groups: 'OrderedDict[Hashable, List[T]]' = OrderedDict()
    for item in items:
        groups.setdefault(key(item), []).append(item)

    averaged = OrderedDict()
    for group_key, samples in groups.items():
        averaged[group_key] = {
            name: round_half_up(sum(getattr(sample, name) for sample in samples) / len(samples))
            for name in fields
        }
    return averaged
