import pytest

from sellerops.errors import MalformedEntityError
from sellerops.status_resolver import (
    Entity,
    entity_from_order,
    explain_resolution,
    resolve_our_status,
    to_entity,
)
from sellerops.status_vocab import EntityType


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def test_live_tracking_beats_backend_normalized():
    doc = {
        "custOrderNo": "FN100",
        "status": "Processing",
        "trackingData": {"status": "In Transit"},
        "normalizedStatus": "Delivered",
    }
    r = explain_resolution(doc, "order")
    assert (r.value, r.source) == ("In Transit", "tracking")


def test_normalized_beats_delivery_status():
    doc = {"status": "Processing", "normalizedStatus": "Delivered", "deliveryStatus": "pending"}
    assert resolve_our_status(doc, "order") == "Delivered"


def test_delivery_status_used_when_nothing_fresher():
    doc = {"status": "Processing", "deliveryStatus": "Out for delivery"}
    r = explain_resolution(doc, "order")
    assert (r.value, r.source) == ("Out for delivery", "delivery")


def test_blank_sources_are_skipped():
    doc = {"status": "Processing", "trackingData": {"status": "   "}, "normalizedStatus": ""}
    assert explain_resolution(doc, "order").source == "heuristic"


def test_awb_means_at_least_shipped():
    doc = {"custOrderNo": "FN101", "status": "Booked", "fwdAwb": "1490811234567"}
    r = explain_resolution(doc, "order")
    assert (r.value, r.source) == ("shipped", "heuristic")


def test_cancelled_order_with_awb_keeps_marketplace_status():
    doc = {"status": "Cancelled by customer", "fwdAwb": "1490811234567"}
    assert resolve_our_status(doc, "order") == "Cancelled by customer"


def test_no_awb_falls_back_to_marketplace_status():
    assert resolve_our_status({"status": "Processing"}, "order") == "Processing"


def test_nothing_known():
    r = explain_resolution({}, "order")
    assert (r.value, r.source) == ("", "none")


def test_order_id_fallbacks():
    assert entity_from_order({"custOrderNo": "FN1", "fwdSellerOrderNo": "S1"}).id == "FN1"
    assert entity_from_order({"fwdSellerOrderNo": "S1", "_id": "9"}).id == "S1"
    # Excel may hand us numbers
    assert entity_from_order({"custOrderNo": 123456}).id == "123456"


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------

def test_return_tracking_then_normalized():
    doc = {
        "returnId": "R1",
        "status": "Initiated",
        "trackingData": {"status": "Delivered"},
        "normalized": {"status": "in_progress"},
    }
    assert resolve_our_status(doc, "return") == "Delivered"

    doc.pop("trackingData")
    r = explain_resolution(doc, "return")
    assert (r.value, r.source) == ("in_progress", "normalized")


def test_return_warehouse_delivery_from_3pl_column():
    doc = {"returnId": "R2", "status": "Initiated", "rawRow": {"3PL Delivery Status": "Delivered to WH"}}
    assert resolve_our_status(doc, "return") == "RETURN_DELIVERED"


def test_return_tracking_number_means_in_transit():
    assert resolve_our_status({"status": "Initiated", "tracking_number": "RVP123"}, "return") == "IN_TRANSIT"
    assert resolve_our_status({"status": "Initiated", "trackingNumber": "RVP123"}, "return") == "IN_TRANSIT"


def test_return_defaults():
    assert resolve_our_status({"status": "Pending"}, "return") == "Pending"
    r = explain_resolution({"returnId": "R3"}, "return")
    assert (r.value, r.source) == ("INITIATED", "heuristic")


def test_return_ignores_delivery_status():
    doc = {"status": "Initiated", "deliveryStatus": "Delivered"}
    assert resolve_our_status(doc, "return") == "Initiated"


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------

def test_tracking_data_must_be_an_object():
    with pytest.raises(MalformedEntityError) as ei:
        resolve_our_status({"status": "Processing", "trackingData": "In Transit"}, "order")
    assert ei.value.field == "trackingData"


def test_numeric_status_is_rejected():
    with pytest.raises(MalformedEntityError) as ei:
        resolve_our_status({"trackingData": {"status": 5}}, "order")
    assert ei.value.field == "trackingData.status"

    with pytest.raises(MalformedEntityError) as ei:
        resolve_our_status({"status": 42}, "return")
    assert ei.value.field == "status"


def test_document_must_be_a_mapping():
    with pytest.raises(MalformedEntityError):
        to_entity(["Delivered"], "order")


def test_entity_passes_through():
    e = Entity(entity_type=EntityType.ORDER, id="X", marketplace_status="Booked", carrier_awb="A1")
    assert to_entity(e) is e
    assert resolve_our_status(e) == "shipped"
