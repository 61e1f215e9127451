from datetime import datetime, timedelta, timezone
from decimal import Decimal

from eventtalent.models.booking import Booking
from eventtalent.models.event import Event


def _create_payload(talent_id, gross="10000.00"):
    starts_at = datetime.now(timezone.utc) + timedelta(days=5)
    return {
        "talent_id": talent_id,
        "event": {
            "title": "Gala dinner",
            "venue": "KICC",
            "starts_at": starts_at.isoformat(),
            "ends_at": (starts_at + timedelta(hours=3)).isoformat(),
        },
        "gross_amount": gross,
    }


def _move_event_to_past(db, booking_id):
    booking = db.get(Booking, booking_id)
    starts_at = datetime.now(timezone.utc) - timedelta(days=1)
    db.query(Event).filter(Event.id == booking.event_id).update(
        {"starts_at": starts_at, "ends_at": starts_at + timedelta(hours=3)}
    )
    db.query(Booking).filter(Booking.id == booking_id).update({"proposed_date": starts_at})
    db.commit()
    db.expire_all()


def test_requires_caller_identity(client):
    assert client.get("/api/v1/bookings").status_code == 401
    assert client.get("/api/v1/bookings", headers={"X-User-Id": "01HZZZZZZZZZZZZZZZZZZZZZZZ"}).status_code == 401


def test_organizer_creates_booking_and_sees_gross(client, organizer, talent, auth_headers):
    response = client.post(
        "/api/v1/bookings", json=_create_payload(talent.id), headers=auth_headers(organizer)
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["view"] == "organizer"
    assert Decimal(body["gross_amount"]) == Decimal("10000.00")
    assert Decimal(body["platform_fee_amount"]) == Decimal("1000.00")
    assert "talent_amount" not in body


def test_talent_cannot_create_bookings(client, talent, auth_headers):
    response = client.post(
        "/api/v1/bookings", json=_create_payload(talent.id), headers=auth_headers(talent)
    )

    assert response.status_code == 403


def test_unavailable_talent_conflicts(client, organizer, talent, availability, auth_headers):
    availability.unavailable_talent.add(talent.id)

    response = client.post(
        "/api/v1/bookings", json=_create_payload(talent.id), headers=auth_headers(organizer)
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "TALENT_UNAVAILABLE"


def test_extra_fields_are_rejected(client, organizer, talent, auth_headers):
    payload = {**_create_payload(talent.id), "talent_amount": "99999.00"}

    response = client.post("/api/v1/bookings", json=payload, headers=auth_headers(organizer))

    assert response.status_code == 422


def test_each_party_gets_its_projection(client, flow, organizer, talent, admin, outsider, auth_headers):
    booking = flow.accepted()
    url = f"/api/v1/bookings/{booking.id}"

    talent_view = client.get(url, headers=auth_headers(talent)).json()
    admin_view = client.get(url, headers=auth_headers(admin)).json()

    assert talent_view["view"] == "talent"
    assert Decimal(talent_view["talent_amount"]) == Decimal("9000.00")
    assert "gross_amount" not in talent_view
    assert "payment_reference" not in talent_view
    assert admin_view["view"] == "admin"
    assert len(admin_view["transactions"]) == 1
    assert client.get(url, headers=auth_headers(outsider)).status_code == 403


def test_list_only_returns_own_bookings(client, flow, organizer, outsider, auth_headers):
    booking = flow.pending()

    mine = client.get("/api/v1/bookings", headers=auth_headers(organizer)).json()
    theirs = client.get("/api/v1/bookings", headers=auth_headers(outsider)).json()

    assert [b["id"] for b in mine] == [booking.id]
    assert theirs == []


def test_talent_accepts_then_organizer_cannot_respond(client, flow, organizer, talent, auth_headers):
    booking = flow.pending()
    url = f"/api/v1/bookings/{booking.id}/respond"

    accepted = client.post(url, json={"decision": "ACCEPTED"}, headers=auth_headers(talent))
    again = client.post(url, json={"decision": "DECLINED"}, headers=auth_headers(talent))

    assert accepted.status_code == 200
    assert accepted.json()["status"] == "ACCEPTED"
    assert again.status_code == 409


def test_organizer_cancels_before_payment(client, flow, organizer, auth_headers):
    booking = flow.accepted()

    response = client.post(
        f"/api/v1/bookings/{booking.id}/cancel",
        json={"reason": "Event postponed"},
        headers=auth_headers(organizer),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["cancellation_reason"] == "Event postponed"


def test_paid_booking_cannot_be_cancelled(client, flow, organizer, auth_headers):
    booking = flow.paid()

    response = client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=auth_headers(organizer))

    assert response.status_code == 409


def test_complete_after_event_pays_talent(client, db, flow, organizer, talent, paystack, auth_headers):
    booking = flow.paid()
    _move_event_to_past(db, booking.id)

    response = client.post(
        f"/api/v1/bookings/{booking.id}/complete", headers=auth_headers(organizer)
    )

    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert len(paystack.transfers) == 1
    talent_view = client.get(f"/api/v1/bookings/{booking.id}", headers=auth_headers(talent)).json()
    assert talent_view["is_paid_out"] is True


def test_talent_cannot_complete(client, flow, talent, auth_headers):
    booking = flow.paid()

    response = client.post(f"/api/v1/bookings/{booking.id}/complete", headers=auth_headers(talent))

    assert response.status_code == 403


def test_second_dispute_filing_conflicts(client, db, flow, organizer, talent, auth_headers):
    booking = flow.paid()
    _move_event_to_past(db, booking.id)

    dispute = client.post(
        f"/api/v1/bookings/{booking.id}/disputes",
        json={"reason": "SCOPE_DISAGREEMENT", "explanation": "Asked for two extra sets"},
        headers=auth_headers(talent),
    )
    duplicate = client.post(
        f"/api/v1/bookings/{booking.id}/disputes",
        json={"reason": "TALENT_NO_SHOW", "explanation": "Arrived late"},
        headers=auth_headers(organizer),
    )

    assert dispute.status_code == 201
    assert dispute.json()["status"] == "OPEN"
    assert dispute.json()["filer_role"] == "talent"
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "DISPUTE_ALREADY_OPEN"


def test_review_requires_completed_booking(client, flow, organizer, auth_headers):
    booking = flow.paid()

    response = client.post(
        f"/api/v1/bookings/{booking.id}/reviews",
        json={"rating": 5},
        headers=auth_headers(organizer),
    )

    assert response.status_code == 409


def test_review_is_hidden_until_counterpart(client, flow, organizer, talent, outsider, auth_headers):
    booking = flow.completed()
    url = f"/api/v1/bookings/{booking.id}/reviews"

    first = client.post(url, json={"rating": 5, "comment": "Superb"}, headers=auth_headers(organizer))
    stranger = client.post(url, json={"rating": 1}, headers=auth_headers(outsider))
    second = client.post(url, json={"rating": 4}, headers=auth_headers(talent))

    assert first.status_code == 201
    assert first.json()["is_visible"] is False
    assert stranger.status_code == 403
    assert second.json()["is_visible"] is True
    assert second.json()["reviewer_type"] == "TALENT"


def test_malformed_booking_id_is_rejected(client, organizer, auth_headers):
    response = client.get("/api/v1/bookings/not-a-ulid", headers=auth_headers(organizer))

    assert response.status_code == 422
