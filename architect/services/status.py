"""Batch status aggregation.

The outcome of a batch is a pure function of its item statuses; it does not
depend on how or in which run the items were processed.
"""
from typing import Iterable

from architect.models.status import BatchStatus

COMPLETE = "complete"


def count_complete(item_statuses: Iterable[str]) -> tuple[int, int]:
    """Return (completed, total) for a collection of item statuses."""
    completed = total = 0
    for status in item_statuses:
        total += 1
        if str(getattr(status, "value", status)) == COMPLETE:
            completed += 1
    return completed, total


def derive_batch_status(item_statuses: Iterable[str]) -> BatchStatus:
    """
    complete  if every item completed
    partial   if some but not all did
    error     if none did

    An empty batch has nothing left to do and counts as complete.
    """
    completed, total = count_complete(item_statuses)
    if completed == total:
        return BatchStatus.COMPLETE
    if completed > 0:
        return BatchStatus.PARTIAL
    return BatchStatus.ERROR
