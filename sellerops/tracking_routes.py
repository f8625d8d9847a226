# sellerops/tracking_routes.py
# Pushed carrier scans (Delhivery webhook, manual update) and single-AWB live lookup

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from sellerops.carriers import DelhiveryTracker, tracking_url
from sellerops.db import SessionLocal
from sellerops.status_sync import apply_tracking_update

_logger = logging.getLogger(__name__)

router = APIRouter(prefix="/db", tags=["tracking"])


class DelhiveryWebhookIn(BaseModel):
    waybill: Optional[str] = None
    status: Optional[str] = None
    event_type: Optional[str] = None
    timestamp: Any = None
    location: Optional[str] = None
    remarks: Optional[str] = None


class StatusUpdateIn(BaseModel):
    awbNumber: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None
    remarks: Optional[str] = None


def get_tracker() -> DelhiveryTracker:
    return DelhiveryTracker()


def _apply(awb: str, status: str, location, remarks, timestamp=None) -> dict:
    db = SessionLocal()
    try:
        return apply_tracking_update(
            db,
            awb,
            status,
            location=location or "",
            description=remarks or "",
            timestamp=str(timestamp) if timestamp not in (None, "") else None,
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post("/webhooks/delhivery")
def delhivery_webhook(payload: DelhiveryWebhookIn):
    awb = (payload.waybill or "").strip()
    status = (payload.status or "").strip()
    if not awb or not status:
        # acknowledged, nothing to match on
        _logger.warning("Delhivery webhook without waybill/status ignored (event=%s)", payload.event_type)
        return {"success": True, "updated": {"orders": 0, "returns": 0}}

    updated = _apply(awb, status, payload.location, payload.remarks, payload.timestamp)
    return {"success": True, "updated": updated}


@router.post("/tracking/update-status")
def update_status(payload: StatusUpdateIn):
    awb = (payload.awbNumber or "").strip()
    status = (payload.status or "").strip()
    if not awb or not status:
        raise HTTPException(status_code=400, detail="AWB number and status are required")

    updated = _apply(awb, status, payload.location, payload.remarks)
    return {"success": True, "updated": updated}


@router.get("/track/{awb}")
def track_package(awb: str):
    awb = awb.strip()
    tracker = get_tracker()
    if not tracker.enabled:
        raise HTTPException(status_code=503, detail="Delhivery tracking is not configured")

    # CarrierTrackingError propagates to the 502 handler
    result = tracker.track(awb)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No tracking data for AWB {awb}")
    return {**result.to_tracking_data(), "tracking_url": tracking_url(tracker.carrier, awb)}
