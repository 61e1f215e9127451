from decimal import Decimal

import pytest

from eventtalent.core.enums import DisputeReason
from eventtalent.integrations import PaystackError


@pytest.fixture
def disputed(flow, dispute_service, organizer):
    booking = flow.paid()
    dispute = dispute_service.file_dispute(
        booking.id,
        organizer.id,
        DisputeReason.TALENT_NO_SHOW,
        "Nobody showed up",
        now=flow.after_event(booking),
    )
    return booking, dispute


def test_admin_routes_reject_non_admins(client, organizer, auth_headers):
    assert client.get("/api/v1/admin/config", headers=auth_headers(organizer)).status_code == 403
    assert client.get("/api/v1/admin/disputes/stats", headers=auth_headers(organizer)).status_code == 403


def test_review_then_resolve_in_organizer_favor(client, disputed, admin, paystack, auth_headers):
    booking, dispute = disputed

    reviewed = client.post(
        f"/api/v1/admin/disputes/{dispute.id}/review", headers=auth_headers(admin)
    )
    resolved = client.post(
        f"/api/v1/admin/disputes/{dispute.id}/resolve",
        json={"resolution": "ORGANIZER_FAVOR", "resolution_notes": "Confirmed no-show"},
        headers=auth_headers(admin),
    )

    assert reviewed.json()["status"] == "UNDER_REVIEW"
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "RESOLVED_ORGANIZER_FAVOR"
    assert Decimal(resolved.json()["refund_amount"]) == Decimal("10000.00")
    assert len(paystack.refunds) == 1


def test_partial_over_gross_is_a_400(client, disputed, admin, auth_headers):
    _, dispute = disputed

    response = client.post(
        f"/api/v1/admin/disputes/{dispute.id}/resolve",
        json={
            "resolution": "PARTIAL",
            "resolution_notes": "Split",
            "refund_amount": "6000.00",
            "payout_amount": "5000.00",
        },
        headers=auth_headers(admin),
    )

    assert response.status_code == 400


def test_gateway_failure_is_a_502(client, disputed, admin, paystack, auth_headers):
    _, dispute = disputed
    paystack.transfer_error = PaystackError("bank offline")

    response = client.post(
        f"/api/v1/admin/disputes/{dispute.id}/resolve",
        json={"resolution": "TALENT_FAVOR", "resolution_notes": "Pay out"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 502
    assert response.json()["detail"]["details"]["retryable"] is True


def test_dispute_stats(client, disputed, admin, auth_headers):
    response = client.get("/api/v1/admin/disputes/stats", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["active"] == 1
    assert response.json()["counts"]["OPEN"] == 1


def test_config_roundtrip(client, admin, auth_headers):
    before = client.get("/api/v1/admin/config", headers=auth_headers(admin)).json()
    updated = client.put(
        "/api/v1/admin/config",
        json={"platform_fee_rate": "0.12", "review_disclosure_window_hours": 72},
        headers=auth_headers(admin),
    )

    assert before["updated_at"] is None
    assert Decimal(before["config"]["platform_fee_rate"]) == Decimal("0.10")
    assert updated.status_code == 200
    assert Decimal(updated.json()["config"]["platform_fee_rate"]) == Decimal("0.12")
    assert updated.json()["config"]["review_disclosure_window_hours"] == 72
    assert updated.json()["config"]["currency"] == "KES"
    assert updated.json()["updated_at"] is not None


def test_config_rejects_out_of_range_fee(client, admin, auth_headers):
    response = client.put(
        "/api/v1/admin/config", json={"platform_fee_rate": "1.5"}, headers=auth_headers(admin)
    )

    assert response.status_code == 422


def test_manual_payout_after_failed_completion(client, flow, booking_service, admin, paystack, auth_headers):
    booking = flow.paid()
    paystack.transfer_error = PaystackError("timeout")
    with pytest.raises(PaystackError):
        booking_service.mark_completed(booking.id, admin.id, now=flow.after_event(booking))
    paystack.transfer_error = None

    response = client.post(
        f"/api/v1/admin/bookings/{booking.id}/payout", headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["is_paid_out"] is True
    assert response.json()["reference"] == f"ETP-{booking.id}-1"
    assert Decimal(response.json()["amount"]) == Decimal("9000.00")
    assert len(paystack.transfers) == 1
