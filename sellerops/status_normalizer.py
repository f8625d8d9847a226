# sellerops/status_normalizer.py
# Free-text marketplace / carrier status -> canonical lifecycle state
#
# One rule table per entity type. Rules are tried top to bottom and the first
# matching pattern wins, so the order of each table IS its priority:
# "out for delivery" must be tested before "in transit", "delivered" before
# everything else, etc. Every rule carries its priority number.

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sellerops.errors import MalformedEntityError
from sellerops.status_vocab import EMPTY_STATUS, EntityType, OrderStatus, ReturnStatus

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusRule:
    priority: int
    pattern: re.Pattern
    canonical: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


# word gaps also accept "_" and "-" ("IN_TRANSIT", "out-for-delivery")
_GAP = r"[\s_-]*"


def _rules(table) -> tuple[StatusRule, ...]:
    return tuple(
        StatusRule(priority=i, pattern=re.compile(rx.replace(r"\s*", _GAP)), canonical=state.value)
        for i, (rx, state) in enumerate(table, start=1)
    )


ORDER_STATUS_RULES = _rules(
    [
        (r"delivered|delivery\s*completed", OrderStatus.DELIVERED),
        (r"out\s*for\s*delivery|ofd", OrderStatus.OUT_FOR_DELIVERY),
        (r"in\s*transit|dispatched|shipped|received|arrival|arrived", OrderStatus.SHIPPED),
        (r"picked\s*up|pickup", OrderStatus.PICKED_UP),
        (r"cancel|cancelled|canceled", OrderStatus.CANCELLED),
        (r"exception|failed|undelivered", OrderStatus.EXCEPTION),
        (r"pending|processing|booked", OrderStatus.PENDING),
    ]
)

# groups 1 and 2 are coarse: refund == physical return delivery,
# initiated == in transit (both just mean "not resolved yet")
RETURN_STATUS_RULES = _rules(
    [
        (
            r"delivered\s*to\s*warehouse|return\s*delivered|delivered|refund|refunded"
            r"|completed|closed|settled|processed|finished",
            ReturnStatus.COMPLETED,
        ),
        (
            r"in\s*transit|ofd|out\s*for\s*delivery|received|arrival|arrived|facility"
            r"|shipment\s*received|initiated|new|pending|open|processing",
            ReturnStatus.IN_PROGRESS,
        ),
        (r"quality\s*check|qc", ReturnStatus.QUALITY_CHECK),
        (r"pickup|picked\s*up|pickup\s*scheduled", ReturnStatus.PICKUP_SCHEDULED),
        (r"reject|rejected|cancel", ReturnStatus.REJECTED),
    ]
)

RULES = {
    EntityType.ORDER: ORDER_STATUS_RULES,
    EntityType.RETURN: RETURN_STATUS_RULES,
}


def clean_status_text(raw) -> str:
    """Trim + case fold. None -> "". Anything that is not a string is rejected.

    upper() before lower() folds the long s to "s" and the dotless i to "i", so
    text and its upper-cased form always land on the same value.
    """
    if raw is None:
        return EMPTY_STATUS
    if not isinstance(raw, str):
        raise MalformedEntityError(
            f"Status must be a string, got {type(raw).__name__}: {raw!r}",
            field="status",
            value=raw,
        )
    return raw.strip().upper().lower()


def match_rule(entity_type, raw) -> Optional[StatusRule]:
    """Return the winning rule for `raw`, or None (empty input / no rule matched)."""
    s = clean_status_text(raw)
    if not s:
        return None
    for rule in RULES[EntityType.parse(entity_type)]:
        if rule.matches(s):
            return rule
    return None


def normalize_status(entity_type, raw) -> str:
    """
    Map a raw status string to one canonical state for `entity_type`.

    - empty / whitespace / None -> ""
    - first matching rule wins
    - nothing matched -> the trimmed, case-folded input (stable passthrough)
    """
    et = EntityType.parse(entity_type)
    s = clean_status_text(raw)
    if not s:
        return EMPTY_STATUS

    for rule in RULES[et]:
        if rule.matches(s):
            return rule.canonical

    if _logger.isEnabledFor(logging.DEBUG):
        _logger.debug("Unmapped %s status %r (kept as %r)", et.value, raw, s)
    return s


def is_recognized(entity_type, raw) -> bool:
    return match_rule(entity_type, raw) is not None


def normalize_order_status(raw) -> str:
    return normalize_status(EntityType.ORDER, raw)


def normalize_return_status(raw) -> str:
    return normalize_status(EntityType.RETURN, raw)
