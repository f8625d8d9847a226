# sellerops/status_sync.py
# Recompute the backend "our status" (normalized_status) for stored orders / returns
#
# Live carrier polls (when a tracker is given) refresh tracking_status first;
# the stored value is then derived from the tracking status, or from the
# resolver heuristics when no poll result exists.
#
# Pushed scans (webhook / manual update) land through apply_tracking_update.

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from sellerops.carriers import (
    DELHIVERY,
    DelhiveryTracker,
    TrackingScan,
    carrier_status_to_our_status,
    normalize_carrier,
)
from sellerops.models import DropshipOrder, RtvReturn
from sellerops.status_resolver import explain_resolution, to_entity
from sellerops.status_vocab import EntityType

_logger = logging.getLogger(__name__)

# (model, carrier column, awb column)
_TARGETS = {
    EntityType.ORDER: (DropshipOrder, "fwd_carrier", "fwd_awb"),
    EntityType.RETURN: (RtvReturn, "shipping_partner", "tracking_number"),
}


def derive_our_status(entity_type, doc) -> str:
    """Our status for one document, ignoring any previously stored sync result."""
    e = to_entity(doc, entity_type)
    if e.tracking_status:
        return carrier_status_to_our_status(e.entity_type, e.tracking_status)
    return explain_resolution(replace(e, normalized_status="")).value


def _poll(rows, carrier_attr: str, awb_attr: str, tracker: DelhiveryTracker) -> int:
    by_awb = {}
    for r in rows:
        awb = (getattr(r, awb_attr) or "").strip()
        if awb and normalize_carrier(getattr(r, carrier_attr)) == DELHIVERY:
            by_awb.setdefault(awb, []).append(r)
    if not by_awb:
        return 0

    results = tracker.track_many(by_awb.keys())
    now = datetime.utcnow()
    tracked = 0
    for awb, result in results.items():
        for r in by_awb.get(awb, []):
            r.tracking_status = result.status
            r.tracking_json = json.dumps(result.to_tracking_data(), ensure_ascii=False)
            r.last_tracking_update = now
            tracked += 1
    return tracked


def run_sync(db: Session, ws_id, entity_type, tracker: Optional[DelhiveryTracker] = None) -> dict:
    et = EntityType.parse(entity_type)
    model, carrier_attr, awb_attr = _TARGETS[et]

    rows = db.query(model).filter(model.workspace_id == ws_id).order_by(model.id.asc()).all()

    tracked = 0
    if tracker is not None and tracker.enabled:
        tracked = _poll(rows, carrier_attr, awb_attr, tracker)

    now = datetime.utcnow()
    updated = 0
    for r in rows:
        value = derive_our_status(et, r.to_document())
        if value and value != r.normalized_status:
            r.normalized_status = value
            r.normalized_at = now
            updated += 1

    db.commit()
    _logger.info("[status_sync] %s: scanned=%d updated=%d tracked=%d", et.value, len(rows), updated, tracked)
    return {"scanned": len(rows), "updated": updated, "tracked": tracked}


def sync_orders(db: Session, ws_id, tracker: Optional[DelhiveryTracker] = None) -> dict:
    return run_sync(db, ws_id, EntityType.ORDER, tracker)


def sync_returns(db: Session, ws_id, tracker: Optional[DelhiveryTracker] = None) -> dict:
    return run_sync(db, ws_id, EntityType.RETURN, tracker)


def _merge_scan(tracking_json, awb: str, scan: TrackingScan) -> str:
    try:
        data = json.loads(tracking_json) if tracking_json else {}
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    history = data.get("trackingHistory")
    if not isinstance(history, list):
        history = []
    history.append(scan.__dict__.copy())
    data.update(awb=awb, status=scan.status, currentLocation=scan.location, trackingHistory=history)
    return json.dumps(data, ensure_ascii=False)


def apply_tracking_update(
    db: Session,
    awb: str,
    status: str,
    location: str = "",
    description: str = "",
    timestamp: Optional[str] = None,
) -> dict:
    """Record one pushed carrier scan on every order / return shipped under `awb`.

    Only the tracking columns change; the marketplace `status` is left as uploaded.
    """
    awb = (awb or "").strip()
    if not awb:
        return {"orders": 0, "returns": 0}
    now = datetime.utcnow()
    scan = TrackingScan(
        timestamp=timestamp or now.isoformat(),
        location=location or "",
        status=status,
        description=description or "",
    )

    counts = {}
    for et, key in ((EntityType.ORDER, "orders"), (EntityType.RETURN, "returns")):
        model, _, awb_attr = _TARGETS[et]
        rows = db.query(model).filter(getattr(model, awb_attr) == awb).all()
        for r in rows:
            r.tracking_status = status
            r.tracking_json = _merge_scan(r.tracking_json, awb, scan)
            r.last_tracking_update = now
        counts[key] = len(rows)

    db.commit()
    _logger.info("[tracking_update] awb=%s status=%r orders=%d returns=%d", awb, status, counts["orders"], counts["returns"])
    return counts


def main(argv=None) -> None:
    from sellerops.config import LOG_LEVEL
    from sellerops.db import Base, SessionLocal, resolve_workspace_id
    from sellerops.logging_setup import setup_logging

    parser = argparse.ArgumentParser(description="Recompute our-status for orders and returns")
    parser.add_argument("--workspace", default="default")
    parser.add_argument("--entity", choices=["order", "return", "all"], default="all")
    parser.add_argument("--live", action="store_true", help="poll Delhivery before recomputing")
    args = parser.parse_args(argv)

    setup_logging(LOG_LEVEL)
    tracker = DelhiveryTracker() if args.live else None
    kinds = [EntityType.ORDER, EntityType.RETURN] if args.entity == "all" else [EntityType.parse(args.entity)]

    db = SessionLocal()
    try:
        # tables may not exist yet on a fresh database
        Base.metadata.create_all(bind=db.get_bind())
        ws_id = resolve_workspace_id(db, args.workspace)
        for et in kinds:
            result = run_sync(db, ws_id, et, tracker)
            print(f"[status_sync] {et.value}: {result}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
