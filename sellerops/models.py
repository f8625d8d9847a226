# sellerops/models.py
# Uploaded orders / returns as stored rows, plus the document shape the status engine reads

import json
import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from sellerops.db import Base
from sellerops.status_resolver import THREE_PL_DELIVERY_FIELD


def _loads(s):
    if not s:
        return None
    try:
        return json.loads(s)
    except ValueError:
        return None


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    slug = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    orders = relationship("DropshipOrder", back_populates="workspace")
    returns = relationship("RtvReturn", back_populates="workspace")


class DropshipOrder(Base):
    """One row of the marketplace (Ajio) dropship order report."""
    __tablename__ = "dropship_orders"

    id = Column(Integer, primary_key=True, index=True)

    workspace_id = Column(Uuid(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    workspace = relationship("Workspace", back_populates="orders")

    cust_order_no = Column(String, index=True, nullable=True)
    fwd_seller_order_no = Column(String, index=True, nullable=True)

    # marketplace status exactly as uploaded (never rewritten)
    status = Column(String, index=True, nullable=True)

    fwd_carrier = Column(String, index=True, nullable=True)
    fwd_awb = Column(String, index=True, nullable=True)

    # live carrier poll
    tracking_status = Column(String, nullable=True)
    tracking_json = Column(Text, nullable=True)
    last_tracking_update = Column(DateTime, nullable=True)

    # written by the status sync job
    normalized_status = Column(String, nullable=True)
    normalized_at = Column(DateTime, nullable=True)

    delivery_status = Column(String, nullable=True)

    raw_json = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_document(self) -> dict:
        tracking = _loads(self.tracking_json)
        if tracking is None and self.tracking_status:
            tracking = {"status": self.tracking_status}
        return {
            "_id": str(self.id),
            "custOrderNo": self.cust_order_no,
            "fwdSellerOrderNo": self.fwd_seller_order_no,
            "status": self.status,
            "fwdCarrier": self.fwd_carrier,
            "fwdAwb": self.fwd_awb,
            "trackingData": tracking,
            "normalizedStatus": self.normalized_status,
            "deliveryStatus": self.delivery_status,
        }


class RtvReturn(Base):
    """One row of the marketplace return-to-vendor (RTV) report."""
    __tablename__ = "rtv_returns"

    id = Column(Integer, primary_key=True, index=True)

    workspace_id = Column(Uuid(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    workspace = relationship("Workspace", back_populates="returns")

    return_id = Column(String, index=True, nullable=True)
    order_id = Column(String, index=True, nullable=True)

    # raw return status from the upload (never rewritten)
    status = Column(String, index=True, nullable=True)

    shipping_partner = Column(String, index=True, nullable=True)
    tracking_number = Column(String, index=True, nullable=True)

    tracking_status = Column(String, nullable=True)
    tracking_json = Column(Text, nullable=True)
    last_tracking_update = Column(DateTime, nullable=True)

    normalized_status = Column(String, nullable=True)
    normalized_at = Column(DateTime, nullable=True)

    three_pl_delivery_status = Column(String, nullable=True)

    raw_json = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_document(self) -> dict:
        tracking = _loads(self.tracking_json)
        if tracking is None and self.tracking_status:
            tracking = {"status": self.tracking_status}

        raw_row = _loads(self.raw_json)
        if not isinstance(raw_row, dict):
            raw_row = {}
        if self.three_pl_delivery_status and not raw_row.get(THREE_PL_DELIVERY_FIELD):
            raw_row[THREE_PL_DELIVERY_FIELD] = self.three_pl_delivery_status

        return {
            "_id": str(self.id),
            "returnId": self.return_id,
            "orderId": self.order_id,
            "status": self.status,
            "shippingPartner": self.shipping_partner,
            "tracking_number": self.tracking_number,
            "trackingData": tracking,
            "normalized": {"status": self.normalized_status} if self.normalized_status else None,
            "rawRow": raw_row,
        }
