"""
Status enums shared by batch entities, and the transition-table check.

Every status column is a closed str Enum with an explicit transition table.
Tables are checked for exhaustiveness at import time.
"""

from enum import Enum
from typing import Mapping, TypeVar

from architect.exceptions import InvalidStatusTransitionError

S = TypeVar("S", bound=Enum)


class BatchStatus(str, Enum):
    """Status of a Suite or Sequence."""
    GENERATING = "generating"
    COMPLETE = "complete"
    PARTIAL = "partial"
    ERROR = "error"


# A project may hold at most one batch in these states
ACTIVE_BATCH_STATUSES = frozenset({
    BatchStatus.GENERATING,
    BatchStatus.COMPLETE,
    BatchStatus.PARTIAL,
})


BATCH_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    # generating -> generating covers resuming a batch stuck after a crash
    BatchStatus.GENERATING: frozenset({
        BatchStatus.GENERATING,
        BatchStatus.COMPLETE,
        BatchStatus.PARTIAL,
        BatchStatus.ERROR,
    }),
    BatchStatus.PARTIAL: frozenset({BatchStatus.GENERATING}),
    BatchStatus.ERROR: frozenset({BatchStatus.GENERATING}),
    BatchStatus.COMPLETE: frozenset(),
}


def ensure_exhaustive(table: Mapping[S, frozenset[S]], enum_cls: type[S]) -> None:
    """Fail fast if a transition table misses a state or names a foreign one."""
    missing = set(enum_cls) - set(table)
    if missing:
        raise RuntimeError(f"{enum_cls.__name__} transition table misses {sorted(m.value for m in missing)}")
    for targets in table.values():
        stray = {t for t in targets if not isinstance(t, enum_cls)}
        if stray:
            raise RuntimeError(f"{enum_cls.__name__} transition table names foreign states {stray}")


def check_transition(
    table: Mapping[S, frozenset[S]],
    entity: str,
    current: str | S,
    requested: str | S,
) -> S:
    """
    Validate current -> requested against the table.

    Returns the requested state as an enum member.
    Raises InvalidStatusTransitionError if the move is not allowed.
    """
    enum_cls = type(next(iter(table)))
    current_state = enum_cls(current)
    requested_state = enum_cls(requested)
    if requested_state not in table[current_state]:
        raise InvalidStatusTransitionError(entity, current_state.value, requested_state.value)
    return requested_state


ensure_exhaustive(BATCH_TRANSITIONS, BatchStatus)
