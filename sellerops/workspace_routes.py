# sellerops/workspace_routes.py
# Workspaces: one per marketplace account (the UI's workspace dropdown)

from __future__ import annotations

import re

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from sellerops.db import SessionLocal
from sellerops.models import DropshipOrder, RtvReturn, Workspace

router = APIRouter(prefix="/db/workspaces", tags=["workspaces"])

SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")


class WorkspaceIn(BaseModel):
    slug: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=128)


def _row_counts(db, model) -> dict:
    rows = db.query(model.workspace_id, func.count(model.id)).group_by(model.workspace_id).all()
    return {ws_id: n for ws_id, n in rows}


@router.get("")
def list_workspaces():
    db = SessionLocal()
    try:
        orders = _row_counts(db, DropshipOrder)
        returns = _row_counts(db, RtvReturn)
        return [
            {
                "id": str(w.id),
                "slug": w.slug,
                "name": w.name,
                "orders": orders.get(w.id, 0),
                "returns": returns.get(w.id, 0),
            }
            for w in db.query(Workspace).order_by(Workspace.name.asc()).all()
        ]
    finally:
        db.close()


@router.post("")
def create_workspace(payload: WorkspaceIn):
    slug = payload.slug.strip().lower()
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    if not SLUG_RE.match(slug):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid slug {slug!r}: lowercase letters, digits, '-' or '_' (e.g. ajio_north)",
        )

    db = SessionLocal()
    try:
        ws = Workspace(slug=slug, name=name)
        db.add(ws)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise HTTPException(status_code=409, detail=f"Workspace already exists: {slug}")
        db.refresh(ws)
        return {"id": str(ws.id), "slug": ws.slug, "name": ws.name}
    finally:
        db.close()
