# sellerops/ingest_routes.py
# Upload ingest for marketplace order / RTV return reports (CSV or Excel)

from __future__ import annotations

import io
import json
import logging
import re
from typing import Optional

import pandas as pd
from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from sellerops.carriers import normalize_carrier
from sellerops.db import SessionLocal, resolve_workspace_id
from sellerops.models import DropshipOrder, RtvReturn

_logger = logging.getLogger(__name__)

router = APIRouter(prefix="/db/ingest", tags=["ingest"])

BATCH = 2000

# field -> accepted header variants (first present wins)
ORDER_COLUMNS = {
    "cust_order_no": [
        "Cust Order No", "Customer Order No", "Customer Order #", "Customer Order Id",
        "CO Number", "CO No",
    ],
    "fwd_seller_order_no": ["FWD Seller Order NO", "Seller Order No"],
    "status": ["Status", "Order Status", "Ajio Status"],
    "fwd_carrier": ["FWD Carrier", "Carrier", "Courier"],
    "fwd_awb": ["FWD AWB", "AWB", "AWB No", "Tracking Number"],
    "delivery_status": ["Delivery Status"],
}

RETURN_COLUMNS = {
    "return_id": [
        "Return ID", "RTV ID", "RTV No", "Return Ref No", "Return Reference No",
        "Return Request ID", "Return Order Number",
    ],
    "order_id": ["Order ID", "Order Number", "Order No", "Cust Order No", "Customer Order No"],
    "status": ["Status", "Return Status", "RTV Status", "Current Status", "Return Current Status"],
    "shipping_partner": [
        "Shipping Partner", "Courier", "Carrier", "Logistics Partner", "Courier Name", "Reverse Courier",
    ],
    "tracking_number": [
        "Tracking Number", "AWB", "AWB No", "AWB Number", "Waybill", "Waybill No",
        "Reverse AWB", "Reverse Pickup AWB", "RVP AWB", "Consignment No",
    ],
    "three_pl_delivery_status": ["3PL Delivery Status"],
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(s).strip().lower())


def optional_col(df: pd.DataFrame, *variants: str) -> Optional[str]:
    by_norm = {_norm(c): c for c in df.columns}
    for v in variants:
        c = by_norm.get(_norm(v))
        if c is not None:
            return c
    return None


def require_col(df: pd.DataFrame, *variants: str) -> str:
    """Require one of the header variants (ignoring spaces/case/symbols)."""
    c = optional_col(df, *variants)
    if c is None:
        raise KeyError(f"Missing required column: '{variants[0]}'. Found: {list(df.columns)[:30]}...")
    return c


def read_report(content: bytes, filename: str | None) -> pd.DataFrame:
    """CSV or Excel -> all-string DataFrame (empty cells are '')."""
    name = (filename or "").lower()
    if name.endswith((".xlsx", ".xls")):
        df = pd.read_excel(io.BytesIO(content), dtype=str)
    else:
        try:
            df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except (UnicodeDecodeError, pd.errors.ParserError):
            df = pd.read_excel(io.BytesIO(content), dtype=str)
    df = df.fillna("")
    df.columns = [str(c).strip() for c in df.columns]
    return df


def _cell(row: dict, col: Optional[str]) -> Optional[str]:
    if col is None:
        return None
    s = str(row.get(col, "") or "").strip()
    return s or None


def _detect(df: pd.DataFrame, columns: dict, id_fields: tuple[str, ...]) -> dict:
    detected = {field: optional_col(df, *variants) for field, variants in columns.items()}
    require_col(df, *columns["status"])
    if not any(detected[f] for f in id_fields):
        raise KeyError(
            f"Missing required column: one of {[columns[f][0] for f in id_fields]}. "
            f"Found: {list(df.columns)[:30]}..."
        )
    return detected


def _order_row(ws_id, row: dict, cols: dict) -> dict:
    return {
        "workspace_id": ws_id,
        "cust_order_no": _cell(row, cols["cust_order_no"]),
        "fwd_seller_order_no": _cell(row, cols["fwd_seller_order_no"]),
        "status": _cell(row, cols["status"]),
        "fwd_carrier": _cell(row, cols["fwd_carrier"]),
        "fwd_awb": _cell(row, cols["fwd_awb"]),
        "delivery_status": _cell(row, cols["delivery_status"]),
        "raw_json": json.dumps(row, ensure_ascii=False),
    }


def _return_row(ws_id, row: dict, cols: dict) -> dict:
    partner_raw = _cell(row, cols["shipping_partner"])
    awb = _cell(row, cols["tracking_number"])
    return {
        "workspace_id": ws_id,
        "return_id": _cell(row, cols["return_id"]),
        "order_id": _cell(row, cols["order_id"]),
        "status": _cell(row, cols["status"]),
        "shipping_partner": normalize_carrier(partner_raw) or partner_raw,
        "tracking_number": re.sub(r"\s+", "", awb) if awb else None,
        "three_pl_delivery_status": _cell(row, cols["three_pl_delivery_status"]),
        "raw_json": json.dumps(row, ensure_ascii=False),
    }


def _ingest(file: UploadFile, content: bytes, workspace_slug: str, replace: bool, model, columns, id_fields, build):
    if not content:
        raise HTTPException(400, "Empty file")

    try:
        df = read_report(content, file.filename)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not read file: {e}")

    try:
        cols = _detect(df, columns, id_fields)
    except KeyError as e:
        raise HTTPException(status_code=400, detail=e.args[0])

    db = SessionLocal()
    try:
        ws_id = resolve_workspace_id(db, workspace_slug)

        if replace:
            db.query(model).filter(model.workspace_id == ws_id).delete(synchronize_session=False)

        rows = []
        skipped = 0
        for raw in df.to_dict(orient="records"):
            mapped = build(ws_id, raw, cols)
            if not any(mapped[f] for f in id_fields):
                skipped += 1
                continue
            rows.append(mapped)

        inserted = 0
        for start_i in range(0, len(rows), BATCH):
            chunk = rows[start_i : start_i + BATCH]
            db.bulk_insert_mappings(model, chunk)
            inserted += len(chunk)
        db.commit()

        _logger.info(
            "Ingested %d %s rows (skipped %d) into workspace %s",
            inserted, model.__tablename__, skipped, workspace_slug,
        )
        return {
            "filename": file.filename,
            "rows_in_file": int(len(df)),
            "inserted": int(inserted),
            "skipped": int(skipped),
            "replace": bool(replace),
            "workspace_slug": workspace_slug,
            "detected": cols,
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        _logger.exception("Ingest into %s failed", model.__tablename__)
        raise HTTPException(status_code=500, detail=f"DB ingest failed: {e}")
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Ingest: ORDERS (marketplace dropship order report)
# ---------------------------------------------------------------------------

@router.post("/orders")
async def ingest_orders(
    file: UploadFile = File(...),
    replace: bool = Query(False),
    workspace_slug: str = Query("default"),
):
    content = await file.read()
    return _ingest(
        file, content, workspace_slug, replace,
        DropshipOrder, ORDER_COLUMNS, ("cust_order_no", "fwd_seller_order_no"), _order_row,
    )


# ---------------------------------------------------------------------------
# Ingest: RETURNS (RTV report)
# ---------------------------------------------------------------------------

@router.post("/returns")
async def ingest_returns(
    file: UploadFile = File(...),
    replace: bool = Query(False),
    workspace_slug: str = Query("default"),
):
    content = await file.read()
    return _ingest(
        file, content, workspace_slug, replace,
        RtvReturn, RETURN_COLUMNS, ("return_id", "order_id"), _return_row,
    )
