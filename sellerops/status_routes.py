# sellerops/status_routes.py
# Reconciled order / return views, mismatch and regression lists, status sync and debug endpoints

from __future__ import annotations

from fastapi import APIRouter, Query

from sellerops.carriers import DelhiveryTracker, tracking_url
from sellerops.db import SessionLocal, resolve_workspace_id
from sellerops.models import DropshipOrder, RtvReturn
from sellerops.reconciliation import (
    find_mismatches,
    mismatch_summary,
    reconcile_entity,
    status_statistics,
)
from sellerops.status_lifecycle import find_regressions, history_statuses
from sellerops.status_normalizer import match_rule, normalize_status
from sellerops.status_resolver import to_entity
from sellerops.status_sync import run_sync
from sellerops.status_vocab import EntityType, display_name

router = APIRouter(prefix="/db", tags=["status"])

_MODELS = {
    EntityType.ORDER: DropshipOrder,
    EntityType.RETURN: RtvReturn,
}


def get_tracker() -> DelhiveryTracker:
    return DelhiveryTracker()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_documents(db, ws_id, entity_type: EntityType) -> list[tuple[object, dict]]:
    model = _MODELS[entity_type]
    rows = db.query(model).filter(model.workspace_id == ws_id).order_by(model.id.asc()).all()
    return [(r, r.to_document()) for r in rows]


def _row_payload(entity_type: EntityType, row, doc: dict) -> dict:
    rec = reconcile_entity(entity_type, doc)
    if entity_type is EntityType.ORDER:
        carrier, awb = row.fwd_carrier, row.fwd_awb
    else:
        carrier, awb = row.shipping_partner, row.tracking_number
    return {
        "row_id": row.id,
        "id": rec.entity_id,
        "marketplace_status": rec.marketplace_status_raw,
        "our_status": rec.our_status_raw,
        "our_status_source": rec.our_status_source,
        "marketplace_canonical": rec.marketplace_canonical,
        "our_canonical": rec.our_canonical,
        "marketplace_display": display_name(entity_type, rec.marketplace_canonical),
        "our_display": display_name(entity_type, rec.our_canonical),
        "is_mismatch": rec.is_mismatch,
        "carrier": carrier,
        "awb": awb,
        "tracking_url": tracking_url(carrier, awb),
    }


def _list(entity_type: EntityType, workspace_slug: str, limit: int, offset: int, mismatch_only: bool) -> dict:
    db = SessionLocal()
    try:
        ws_id = resolve_workspace_id(db, workspace_slug)
        items = [_row_payload(entity_type, r, d) for r, d in _load_documents(db, ws_id, entity_type)]
        if mismatch_only:
            items = [i for i in items if i["is_mismatch"]]
        return {
            "total": len(items),
            "mismatches": sum(1 for i in items if i["is_mismatch"]),
            "limit": limit,
            "offset": offset,
            "items": items[offset : offset + limit],
        }
    finally:
        db.close()


def _mismatches(entity_type: EntityType, workspace_slug: str) -> dict:
    db = SessionLocal()
    try:
        ws_id = resolve_workspace_id(db, workspace_slug)
        docs = [d for _, d in _load_documents(db, ws_id, entity_type)]
        records = find_mismatches(entity_type, docs)
        return {
            "entity_type": entity_type.value,
            "summary": mismatch_summary(records),
            "items": [r.to_dict() for r in records],
        }
    finally:
        db.close()


def _regressions(entity_type: EntityType, workspace_slug: str) -> dict:
    db = SessionLocal()
    try:
        ws_id = resolve_workspace_id(db, workspace_slug)
        items = []
        for row, doc in _load_documents(db, ws_id, entity_type):
            bad = find_regressions(entity_type, history_statuses(doc.get("trackingData")))
            if not bad:
                continue
            items.append({
                "row_id": row.id,
                "id": to_entity(doc, entity_type).id,
                "awb": row.fwd_awb if entity_type is EntityType.ORDER else row.tracking_number,
                "regressions": [b.to_dict() for b in bad],
            })
        return {"entity_type": entity_type.value, "count": len(items), "items": items}
    finally:
        db.close()


def _sync(entity_type: EntityType, workspace_slug: str, live: bool) -> dict:
    db = SessionLocal()
    try:
        ws_id = resolve_workspace_id(db, workspace_slug)
        result = run_sync(db, ws_id, entity_type, get_tracker() if live else None)
        return {"success": True, "live": live, **result}
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

@router.get("/orders")
def list_orders(
    workspace_slug: str = Query("default"),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    mismatch_only: bool = Query(False),
):
    return _list(EntityType.ORDER, workspace_slug, limit, offset, mismatch_only)


@router.get("/orders/mismatches")
def order_mismatches(workspace_slug: str = Query("default")):
    return _mismatches(EntityType.ORDER, workspace_slug)


@router.get("/orders/regressions")
def order_regressions(workspace_slug: str = Query("default")):
    return _regressions(EntityType.ORDER, workspace_slug)


@router.post("/sync/orders")
def sync_orders(workspace_slug: str = Query("default"), live: bool = Query(False)):
    return _sync(EntityType.ORDER, workspace_slug, live)


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------

@router.get("/returns")
def list_returns(
    workspace_slug: str = Query("default"),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    mismatch_only: bool = Query(False),
):
    return _list(EntityType.RETURN, workspace_slug, limit, offset, mismatch_only)


@router.get("/returns/mismatches")
def return_mismatches(workspace_slug: str = Query("default")):
    return _mismatches(EntityType.RETURN, workspace_slug)


@router.get("/returns/regressions")
def return_regressions(workspace_slug: str = Query("default")):
    return _regressions(EntityType.RETURN, workspace_slug)


@router.post("/sync/returns")
def sync_returns(workspace_slug: str = Query("default"), live: bool = Query(False)):
    return _sync(EntityType.RETURN, workspace_slug, live)


# ---------------------------------------------------------------------------
# Status mapping debug + stats
# ---------------------------------------------------------------------------

@router.get("/status/normalize")
def debug_normalize(
    status: str = Query(..., description="Raw status text"),
    entity_type: str = Query("order", description="'order' or 'return'"),
):
    et = EntityType.parse(entity_type)
    canonical = normalize_status(et, status)
    rule = match_rule(et, status)
    return {
        "entity_type": et.value,
        "original": status,
        "canonical": canonical,
        "recognized": rule is not None,
        "rule_priority": None if rule is None else rule.priority,
        "display_name": display_name(et, canonical),
    }


@router.get("/status/stats")
def status_stats(workspace_slug: str = Query("default")):
    db = SessionLocal()
    try:
        ws_id = resolve_workspace_id(db, workspace_slug)
        orders = [d for _, d in _load_documents(db, ws_id, EntityType.ORDER)]
        returns = [d for _, d in _load_documents(db, ws_id, EntityType.RETURN)]
        return status_statistics(orders, returns)
    finally:
        db.close()
