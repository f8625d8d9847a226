# sellerops/status_lifecycle.py
# Forward-only lifecycle checks ("status went backward" data-quality alerts)
#
# Orders:  pending -> picked_up -> shipped -> out_for_delivery -> delivered,
#          cancelled / exception reachable from any non-terminal state.
# Returns: initiated/in_progress (incl. pickup_scheduled) -> quality_check ->
#          completed, rejected reachable from any non-terminal state.
# Classification only: nothing here blocks an update.

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

from sellerops.status_normalizer import normalize_status
from sellerops.status_vocab import (
    EntityType,
    deviation_states,
    equivalence_key,
    is_canonical,
    lifecycle,
    terminal_states,
)


class TransitionKind(str, enum.Enum):
    SAME = "same"
    FORWARD = "forward"
    LATERAL = "lateral"
    DEVIATION = "deviation"
    BACKWARD = "backward"
    AFTER_TERMINAL = "after_terminal"
    UNKNOWN = "unknown"


VALID_KINDS = frozenset(
    {TransitionKind.SAME, TransitionKind.FORWARD, TransitionKind.LATERAL, TransitionKind.DEVIATION, TransitionKind.UNKNOWN}
)


@dataclass(frozen=True)
class TransitionCheck:
    previous: str
    current: str
    kind: TransitionKind

    @property
    def is_valid(self) -> bool:
        return self.kind in VALID_KINDS

    def to_dict(self) -> dict:
        return {"previous": self.previous, "current": self.current, "kind": self.kind.value}


def classify_transition(entity_type, previous: str, current: str) -> TransitionKind:
    """Classify a move between two canonical states."""
    et = EntityType.parse(entity_type)
    if not (is_canonical(et, previous) and is_canonical(et, current)):
        return TransitionKind.UNKNOWN

    if equivalence_key(et, previous) == equivalence_key(et, current):
        return TransitionKind.SAME
    if previous in terminal_states(et):
        return TransitionKind.AFTER_TERMINAL
    if current in deviation_states(et):
        return TransitionKind.DEVIATION

    ranks = lifecycle(et)
    if ranks[current] > ranks[previous]:
        return TransitionKind.FORWARD
    if ranks[current] < ranks[previous]:
        return TransitionKind.BACKWARD
    return TransitionKind.LATERAL


def check_transition(entity_type, previous_raw, current_raw) -> TransitionCheck:
    et = EntityType.parse(entity_type)
    prev = normalize_status(et, previous_raw)
    cur = normalize_status(et, current_raw)
    return TransitionCheck(previous=prev, current=cur, kind=classify_transition(et, prev, cur))


def find_regressions(entity_type, history: Iterable[str]) -> list[TransitionCheck]:
    """
    Walk a chronological list of raw statuses and return every invalid move.

    Empty and unrecognised statuses are skipped; each status is compared with
    the last recognised one before it.
    """
    et = EntityType.parse(entity_type)
    bad: list[TransitionCheck] = []
    last = None
    for raw in history:
        cur = normalize_status(et, raw)
        if not is_canonical(et, cur):
            continue
        if last is not None:
            kind = classify_transition(et, last, cur)
            if kind not in VALID_KINDS:
                bad.append(TransitionCheck(previous=last, current=cur, kind=kind))
        last = cur
    return bad


def history_statuses(tracking_data) -> list[str]:
    """Scan statuses (oldest first) from a stored `trackingData` object."""
    if not isinstance(tracking_data, dict):
        return []
    scans = tracking_data.get("trackingHistory") or []
    return [s["status"] for s in scans if isinstance(s, dict) and isinstance(s.get("status"), str)]
