"""Two-slot country selection with stalest-slot eviction."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

Slot = Literal["A", "B"]


@dataclass(frozen=True, slots=True)
class SelectionState:
    """Up to two selected ISO-3 codes held in slots A and B.

    The assignment timestamps belong to the slots, not to the codes, so a
    swap exchanges the codes and leaves the timestamps where they are.
    """

    a: str | None = None
    b: str | None = None
    a_assigned_at: int = 0
    b_assigned_at: int = 0

    @property
    def codes(self) -> tuple[str | None, str | None]:
        return (self.a, self.b)

    def slot_of(self, iso3: str) -> Slot | None:
        code = iso3.strip().upper()
        if code and code == self.a:
            return "A"
        if code and code == self.b:
            return "B"
        return None


def select(state: SelectionState, iso3: str | None, now_ms: int) -> SelectionState:
    """Fill an empty slot, or evict the slot assigned earliest.

    Selecting a code already held by either slot returns the state unchanged.
    """
    if not iso3 or not iso3.strip():
        return state
    code = iso3.strip().upper()
    if state.slot_of(code) is not None:
        return state

    if state.a is None:
        return replace(state, a=code, a_assigned_at=now_ms)
    if state.b is None:
        return replace(state, b=code, b_assigned_at=now_ms)
    if state.a_assigned_at <= state.b_assigned_at:
        return replace(state, a=code, a_assigned_at=now_ms)
    return replace(state, b=code, b_assigned_at=now_ms)


def swap(state: SelectionState) -> SelectionState:
    return replace(state, a=state.b, b=state.a)


def clear(state: SelectionState) -> SelectionState:
    _ = state
    return SelectionState()
