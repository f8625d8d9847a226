# sellerops/status_resolver.py
# Picks the single best "our status" for an order / return before normalization
#
# Three sources disagree at different latencies (live carrier poll, backend
# batch sync, raw upload); the freshest non-empty one wins. The precedence is
# data (ORDER_RESOLUTION_CHAIN / RETURN_RESOLUTION_CHAIN), not inline or-chains.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from sellerops.errors import MalformedEntityError
from sellerops.status_vocab import EMPTY_STATUS, EntityType

SHIPPED_FALLBACK = "shipped"
RETURN_DELIVERED = "RETURN_DELIVERED"
RETURN_IN_TRANSIT = "IN_TRANSIT"
RETURN_INITIATED = "INITIATED"

THREE_PL_DELIVERY_FIELD = "3PL Delivery Status"


@dataclass(frozen=True)
class Entity:
    entity_type: EntityType
    id: str
    marketplace_status: str = ""
    tracking_status: str = ""
    normalized_status: str = ""
    delivery_status: str = ""
    # returns only: raw 3PL / return-workflow delivery status
    return_workflow_status: str = ""
    carrier_awb: str = ""


@dataclass(frozen=True)
class ResolutionStep:
    source: str
    pick: Callable[[Entity], str]


@dataclass(frozen=True)
class Resolution:
    value: str
    source: str


# -----------------------------------------------------------------------------
# Document -> Entity
# -----------------------------------------------------------------------------
def _status_field(doc: Mapping[str, Any], *path: str) -> str:
    """Read a (possibly nested) status field. Missing/None -> "", non-string -> error."""
    cur: Any = doc
    for i, key in enumerate(path):
        if cur is None:
            return ""
        if not isinstance(cur, Mapping):
            parent = ".".join(path[:i])
            raise MalformedEntityError(
                f"'{parent}' must be an object, got {type(cur).__name__}",
                field=parent,
                value=cur,
            )
        cur = cur.get(key)
    if cur is None:
        return ""
    if not isinstance(cur, str):
        field = ".".join(path)
        raise MalformedEntityError(
            f"'{field}' must be a string, got {type(cur).__name__}: {cur!r}",
            field=field,
            value=cur,
        )
    return cur.strip()


def _ref_field(doc: Mapping[str, Any], *keys: str) -> str:
    """Identifiers / AWBs: first non-empty of `keys`. Numbers from Excel are fine here."""
    for k in keys:
        v = doc.get(k)
        if v is None or isinstance(v, (dict, list, bool)):
            continue
        s = str(v).strip()
        if s:
            return s
    return ""


def _require_mapping(doc) -> Mapping[str, Any]:
    if isinstance(doc, Mapping):
        return doc
    raise MalformedEntityError(f"Entity document must be an object, got {type(doc).__name__}", value=doc)


def entity_from_order(doc: Mapping[str, Any]) -> Entity:
    doc = _require_mapping(doc)
    return Entity(
        entity_type=EntityType.ORDER,
        id=_ref_field(doc, "custOrderNo", "fwdSellerOrderNo", "_id", "id"),
        marketplace_status=_status_field(doc, "status"),
        tracking_status=_status_field(doc, "trackingData", "status"),
        normalized_status=_status_field(doc, "normalizedStatus"),
        delivery_status=_status_field(doc, "deliveryStatus"),
        carrier_awb=_ref_field(doc, "fwdAwb"),
    )


def entity_from_return(doc: Mapping[str, Any]) -> Entity:
    doc = _require_mapping(doc)
    return Entity(
        entity_type=EntityType.RETURN,
        id=_ref_field(doc, "returnId", "orderId", "_id", "id"),
        marketplace_status=_status_field(doc, "status"),
        tracking_status=_status_field(doc, "trackingData", "status"),
        normalized_status=_status_field(doc, "normalized", "status"),
        return_workflow_status=_status_field(doc, "rawRow", THREE_PL_DELIVERY_FIELD),
        carrier_awb=_ref_field(doc, "tracking_number", "trackingNumber"),
    )


def to_entity(doc_or_entity, entity_type=None) -> Entity:
    if isinstance(doc_or_entity, Entity):
        return doc_or_entity
    et = EntityType.parse(entity_type)
    if et is EntityType.ORDER:
        return entity_from_order(doc_or_entity)
    return entity_from_return(doc_or_entity)


# -----------------------------------------------------------------------------
# Heuristic fallbacks (no status field populated)
# -----------------------------------------------------------------------------
def _order_heuristic(e: Entity) -> str:
    # an AWB on a non-cancelled order means it has at least shipped
    if "cancel" not in e.marketplace_status.lower() and e.carrier_awb:
        return SHIPPED_FALLBACK
    return e.marketplace_status


def _return_heuristic(e: Entity) -> str:
    if "deliver" in e.return_workflow_status.lower():
        return RETURN_DELIVERED
    if e.carrier_awb:
        return RETURN_IN_TRANSIT
    return e.marketplace_status or RETURN_INITIATED


ORDER_RESOLUTION_CHAIN = (
    ResolutionStep("tracking", lambda e: e.tracking_status),
    ResolutionStep("normalized", lambda e: e.normalized_status),
    ResolutionStep("delivery", lambda e: e.delivery_status),
    ResolutionStep("heuristic", _order_heuristic),
)

RETURN_RESOLUTION_CHAIN = (
    ResolutionStep("tracking", lambda e: e.tracking_status),
    ResolutionStep("normalized", lambda e: e.normalized_status),
    ResolutionStep("heuristic", _return_heuristic),
)


def resolution_chain(entity_type) -> tuple[ResolutionStep, ...]:
    if EntityType.parse(entity_type) is EntityType.ORDER:
        return ORDER_RESOLUTION_CHAIN
    return RETURN_RESOLUTION_CHAIN


def explain_resolution(doc_or_entity, entity_type=None) -> Resolution:
    """Like resolve_our_status, but also reports which source won."""
    e = to_entity(doc_or_entity, entity_type)
    for step in resolution_chain(e.entity_type):
        value = (step.pick(e) or "").strip()
        if value:
            return Resolution(value=value, source=step.source)
    return Resolution(value=EMPTY_STATUS, source="none")


def resolve_our_status(doc_or_entity, entity_type: Optional[str] = None) -> str:
    return explain_resolution(doc_or_entity, entity_type).value
