import json

import pytest

from sellerops import tracking_routes
from sellerops.carriers import DelhiveryTracker
from sellerops.models import DropshipOrder, RtvReturn

ORDERS_CSV = (
    "Cust Order No,Status,FWD Carrier,FWD AWB\n"
    "FN1,Processing,Delhivery,111\n"
    "FN2,Processing,Delhivery,222\n"
)

RETURNS_CSV = (
    "Return ID,Order ID,Return Status,Courier Name,AWB Number\n"
    "R1,FN1,Initiated,Delhivery,111\n"
)


@pytest.fixture()
def loaded(client):
    for path, body in (("/db/ingest/orders", ORDERS_CSV), ("/db/ingest/returns", RETURNS_CSV)):
        res = client.post(path, files={"file": ("r.csv", body.encode("utf-8"), "text/csv")})
        assert res.status_code == 200
    return client


def _use_tracker(monkeypatch, session, token="tok"):
    tracker = DelhiveryTracker(token_provider=lambda: token, session=session)
    monkeypatch.setattr(tracking_routes, "get_tracker", lambda: tracker)
    return tracker


def test_webhook_updates_orders_and_returns(loaded, db):
    res = loaded.post(
        "/db/webhooks/delhivery",
        json={
            "waybill": "111",
            "status": "Out for Delivery",
            "event_type": "status_update",
            "timestamp": "2024-05-02T09:30:00",
            "location": "Andheri DC",
            "remarks": "Out with agent",
        },
    )
    assert res.status_code == 200
    assert res.json() == {"success": True, "updated": {"orders": 1, "returns": 1}}

    fn1 = db.query(DropshipOrder).filter(DropshipOrder.cust_order_no == "FN1").one()
    assert fn1.status == "Processing"
    assert fn1.tracking_status == "Out for Delivery"
    assert fn1.last_tracking_update is not None
    assert json.loads(fn1.tracking_json)["trackingHistory"] == [
        {
            "timestamp": "2024-05-02T09:30:00",
            "location": "Andheri DC",
            "status": "Out for Delivery",
            "description": "Out with agent",
        }
    ]
    assert db.query(RtvReturn).one().status == "Initiated"

    # the listing now resolves our status from the pushed scan
    items = {i["id"]: i for i in loaded.get("/db/orders").json()["items"]}
    assert items["FN1"]["our_status_source"] == "tracking"
    assert items["FN1"]["marketplace_status"] == "Processing"
    assert items["FN2"]["our_status_source"] == "heuristic"


def test_webhook_numeric_timestamp_is_kept_as_text(loaded, db):
    res = loaded.post("/db/webhooks/delhivery", json={"waybill": "222", "status": "Delivered", "timestamp": 1714640000})
    assert res.status_code == 200
    fn2 = db.query(DropshipOrder).filter(DropshipOrder.cust_order_no == "FN2").one()
    assert json.loads(fn2.tracking_json)["trackingHistory"][0]["timestamp"] == "1714640000"


@pytest.mark.parametrize("payload", [{}, {"waybill": "111"}, {"status": "Delivered"}, {"waybill": " ", "status": "x"}])
def test_webhook_without_waybill_or_status_is_acknowledged(loaded, db, payload):
    res = loaded.post("/db/webhooks/delhivery", json=payload)
    assert res.status_code == 200
    assert res.json()["updated"] == {"orders": 0, "returns": 0}
    assert all(r.tracking_status is None for r in db.query(DropshipOrder).all())


def test_manual_status_update(loaded, db):
    res = loaded.post(
        "/db/tracking/update-status",
        json={"awbNumber": "222", "status": "Delivered", "location": "Pune", "remarks": "signed by guard"},
    )
    assert res.status_code == 200
    assert res.json() == {"success": True, "updated": {"orders": 1, "returns": 0}}

    fn2 = db.query(DropshipOrder).filter(DropshipOrder.cust_order_no == "FN2").one()
    assert fn2.status == "Processing"
    assert fn2.tracking_status == "Delivered"
    data = json.loads(fn2.tracking_json)
    assert data["currentLocation"] == "Pune"
    assert data["trackingHistory"][0]["description"] == "signed by guard"


@pytest.mark.parametrize(
    "payload",
    [{"status": "Delivered"}, {"awbNumber": "222"}, {"awbNumber": "", "status": "Delivered"}, {"awbNumber": "222", "status": "  "}],
)
def test_manual_status_update_requires_awb_and_status(loaded, payload):
    res = loaded.post("/db/tracking/update-status", json=payload)
    assert res.status_code == 400
    assert res.json()["detail"] == "AWB number and status are required"


def test_manual_update_for_unknown_awb(loaded):
    res = loaded.post("/db/tracking/update-status", json={"awbNumber": "999", "status": "Delivered"})
    assert res.status_code == 200
    assert res.json()["updated"] == {"orders": 0, "returns": 0}


def test_track_single_awb(client, monkeypatch, fake_session_cls, fake_response_cls):
    payload = {
        "ShipmentData": [
            {"Shipment": {"AWB": "111", "Status": {"Status": "In Transit", "StatusLocation": "Bhiwandi Hub"}}}
        ]
    }
    session = fake_session_cls([fake_response_cls(payload)])
    _use_tracker(monkeypatch, session)

    res = client.get("/db/track/111")
    assert res.status_code == 200
    body = res.json()
    assert body["awb"] == "111"
    assert body["status"] == "In Transit"
    assert body["currentLocation"] == "Bhiwandi Hub"
    assert body["tracking_url"] == "https://www.delhivery.com/track/package/111"
    assert session.calls[0]["params"]["waybill"] == "111"


def test_track_unknown_awb_is_404(client, monkeypatch, fake_session_cls, fake_response_cls):
    _use_tracker(monkeypatch, fake_session_cls([fake_response_cls({"ShipmentData": []})]))
    assert client.get("/db/track/999").status_code == 404


def test_track_carrier_failure_is_502(client, monkeypatch, fake_session_cls, fake_response_cls):
    _use_tracker(monkeypatch, fake_session_cls([fake_response_cls({}, status_code=500)]))
    res = client.get("/db/track/111")
    assert res.status_code == 502
    assert res.json()["carrier"] == "DELHIVERY"
    assert res.json()["upstream_status"] == 500


def test_track_without_api_key_is_503(client, monkeypatch, fake_session_cls):
    session = fake_session_cls()
    _use_tracker(monkeypatch, session, token="")
    assert client.get("/db/track/111").status_code == 503
    assert session.calls == []
