"""
Ordered set reconciliation for influxsync.

The primitive every differ is built on: split observed and desired keys
into the ones to delete, the ones to compare and the ones to create.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, List, TypeVar


K = TypeVar("K")


@dataclass
class KeyPartition(Generic[K]):
    """Result of reconciling observed keys against desired keys."""

    only_observed: List[K] = field(default_factory=list)
    in_both: List[K] = field(default_factory=list)
    only_desired: List[K] = field(default_factory=list)

    @property
    def is_unchanged(self) -> bool:
        """Check if both sides hold the same keys."""
        return not self.only_observed and not self.only_desired


def reconcile_keys(observed: Iterable[K], desired: Iterable[K]) -> KeyPartition[K]:
    """
    Partition two key sets with a single sorted merge.

    Both inputs are sorted (duplicates collapse) and scanned once in
    lockstep, so every list in the result is in ascending key order.
    Only key equality is looked at, never the values behind the keys.

    Args:
        observed: Keys of objects that exist on the server
        desired: Keys of objects declared in configuration

    Returns:
        KeyPartition with ``only_observed``, ``in_both`` and ``only_desired``
    """
    left: List[Any] = sorted(set(observed))
    right: List[Any] = sorted(set(desired))
    partition: KeyPartition[K] = KeyPartition()

    i = j = 0
    while i < len(left) and j < len(right):
        if left[i] < right[j]:
            partition.only_observed.append(left[i])
            i += 1
        elif right[j] < left[i]:
            partition.only_desired.append(right[j])
            j += 1
        else:
            partition.in_both.append(left[i])
            i += 1
            j += 1

    partition.only_observed.extend(left[i:])
    partition.only_desired.extend(right[j:])
    return partition
