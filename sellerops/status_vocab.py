# sellerops/status_vocab.py
# Canonical order / return lifecycle states and their ordering

from __future__ import annotations

import enum

from sellerops.errors import MalformedEntityError

# canonical value for empty / missing input, never a mismatch
EMPTY_STATUS = ""


class EntityType(str, enum.Enum):
    ORDER = "order"
    RETURN = "return"

    @classmethod
    def parse(cls, value) -> "EntityType":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            v = value.strip().lower()
            # tolerate plural / rtv spellings coming from query strings
            if v in ("order", "orders"):
                return cls.ORDER
            if v in ("return", "returns", "rtv"):
                return cls.RETURN
        raise MalformedEntityError(f"Unknown entity type: {value!r}", field="entity_type", value=value)


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PICKED_UP = "picked_up"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    EXCEPTION = "exception"


class ReturnStatus(str, enum.Enum):
    INITIATED = "initiated"
    IN_PROGRESS = "in_progress"
    QUALITY_CHECK = "quality_check"
    PICKUP_SCHEDULED = "pickup_scheduled"
    REJECTED = "rejected"
    COMPLETED = "completed"


# forward rank along the happy path; deviations share the top rank
ORDER_LIFECYCLE = {
    OrderStatus.PENDING.value: 0,
    OrderStatus.PICKED_UP.value: 1,
    OrderStatus.SHIPPED.value: 2,
    OrderStatus.OUT_FOR_DELIVERY.value: 3,
    OrderStatus.DELIVERED.value: 4,
    OrderStatus.CANCELLED.value: 4,
    OrderStatus.EXCEPTION.value: 4,
}

# pickup_scheduled is a sub-state of in_progress
RETURN_LIFECYCLE = {
    ReturnStatus.INITIATED.value: 0,
    ReturnStatus.IN_PROGRESS.value: 0,
    ReturnStatus.PICKUP_SCHEDULED.value: 0,
    ReturnStatus.QUALITY_CHECK.value: 1,
    ReturnStatus.COMPLETED.value: 2,
    ReturnStatus.REJECTED.value: 2,
}

ORDER_TERMINAL = frozenset({OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value, OrderStatus.EXCEPTION.value})
RETURN_TERMINAL = frozenset({ReturnStatus.COMPLETED.value, ReturnStatus.REJECTED.value})

ORDER_DEVIATIONS = frozenset({OrderStatus.CANCELLED.value, OrderStatus.EXCEPTION.value})
RETURN_DEVIATIONS = frozenset({ReturnStatus.REJECTED.value})

# states folded together before two canonical values are compared
RETURN_EQUIVALENCE = {
    ReturnStatus.INITIATED.value: ReturnStatus.IN_PROGRESS.value,
}

DISPLAY_NAMES = {
    EntityType.ORDER: {
        "pending": "Pending",
        "picked_up": "Picked Up",
        "shipped": "Shipped",
        "out_for_delivery": "Out for Delivery",
        "delivered": "Delivered",
        "cancelled": "Cancelled",
        "exception": "Exception",
    },
    EntityType.RETURN: {
        "initiated": "Initiated",
        "in_progress": "In Progress",
        "quality_check": "Quality Check",
        "pickup_scheduled": "Pickup Scheduled",
        "rejected": "Rejected",
        "completed": "Completed",
    },
}


def canonical_states(entity_type) -> tuple[str, ...]:
    et = EntityType.parse(entity_type)
    enum_cls = OrderStatus if et is EntityType.ORDER else ReturnStatus
    return tuple(s.value for s in enum_cls)


def is_canonical(entity_type, state: str) -> bool:
    return state in canonical_states(entity_type)


def lifecycle(entity_type) -> dict[str, int]:
    return ORDER_LIFECYCLE if EntityType.parse(entity_type) is EntityType.ORDER else RETURN_LIFECYCLE


def terminal_states(entity_type) -> frozenset[str]:
    return ORDER_TERMINAL if EntityType.parse(entity_type) is EntityType.ORDER else RETURN_TERMINAL


def deviation_states(entity_type) -> frozenset[str]:
    return ORDER_DEVIATIONS if EntityType.parse(entity_type) is EntityType.ORDER else RETURN_DEVIATIONS


def equivalence_key(entity_type, state: str) -> str:
    """Value used when two canonical states are compared for a mismatch."""
    if EntityType.parse(entity_type) is EntityType.RETURN:
        return RETURN_EQUIVALENCE.get(state, state)
    return state


def display_name(entity_type, state: str) -> str:
    names = DISPLAY_NAMES[EntityType.parse(entity_type)]
    if state in names:
        return names[state]
    if not state:
        return ""
    # unrecognised passthrough values: "customs hold" -> "Customs Hold"
    return state.replace("_", " ").title()
