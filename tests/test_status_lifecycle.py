import pytest

from sellerops.status_lifecycle import (
    TransitionKind,
    check_transition,
    classify_transition,
    find_regressions,
    history_statuses,
)


@pytest.mark.parametrize(
    "entity_type, previous, current, kind",
    [
        ("order", "pending", "picked_up", TransitionKind.FORWARD),
        ("order", "shipped", "delivered", TransitionKind.FORWARD),
        ("order", "shipped", "pending", TransitionKind.BACKWARD),
        ("order", "out_for_delivery", "shipped", TransitionKind.BACKWARD),
        ("order", "shipped", "cancelled", TransitionKind.DEVIATION),
        ("order", "pending", "exception", TransitionKind.DEVIATION),
        ("order", "delivered", "shipped", TransitionKind.AFTER_TERMINAL),
        ("order", "delivered", "cancelled", TransitionKind.AFTER_TERMINAL),
        ("order", "delivered", "delivered", TransitionKind.SAME),
        ("order", "customs hold", "delivered", TransitionKind.UNKNOWN),
        ("return", "initiated", "in_progress", TransitionKind.SAME),
        ("return", "in_progress", "pickup_scheduled", TransitionKind.LATERAL),
        ("return", "in_progress", "quality_check", TransitionKind.FORWARD),
        ("return", "quality_check", "in_progress", TransitionKind.BACKWARD),
        ("return", "quality_check", "rejected", TransitionKind.DEVIATION),
        ("return", "completed", "in_progress", TransitionKind.AFTER_TERMINAL),
    ],
)
def test_classify_transition(entity_type, previous, current, kind):
    assert classify_transition(entity_type, previous, current) is kind


def test_check_transition_normalizes_raw_text():
    check = check_transition("order", "In Transit", "Pending")
    assert (check.previous, check.current) == ("shipped", "pending")
    assert check.kind is TransitionKind.BACKWARD
    assert not check.is_valid

    assert check_transition("order", "Booked", "Out for Delivery").is_valid
    assert check_transition("order", "Booked", "Customs Hold").is_valid


def test_find_regressions():
    history = ["Pending", "Shipped", "Customs Hold", "", "Picked Up", "Delivered", "In Transit"]
    bad = find_regressions("order", history)
    assert [(b.previous, b.current, b.kind) for b in bad] == [
        ("shipped", "picked_up", TransitionKind.BACKWARD),
        ("delivered", "shipped", TransitionKind.AFTER_TERMINAL),
    ]


def test_clean_history_has_no_regressions():
    assert find_regressions("return", ["Initiated", "Pickup Scheduled", "QC Passed", "Refunded"]) == []


def test_history_statuses_reads_stored_tracking_data():
    data = {
        "status": "In Transit",
        "trackingHistory": [
            {"status": "Shipped", "location": "A"},
            {"location": "no status"},
            "junk",
            {"status": "Out for Delivery"},
            {"status": "In Transit"},
        ],
    }
    assert history_statuses(data) == ["Shipped", "Out for Delivery", "In Transit"]
    assert history_statuses(None) == []
    assert history_statuses({"status": "Delivered"}) == []

    [bad] = find_regressions("order", history_statuses(data))
    assert bad.to_dict() == {"previous": "out_for_delivery", "current": "shipped", "kind": "backward"}
