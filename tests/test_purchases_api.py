"""Integration tests for purchase and reservation endpoints.

Run with: pytest tests/test_purchases_api.py -v
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from ticketing import models

STARTS_AT = datetime(2026, 6, 1, 19, 0, tzinfo=UTC)


@pytest.fixture
def ticket_class(db) -> models.TicketClass:
    event = models.Event.objects.create(
        organizer_id="org-1",
        title="Jazz Night",
        description="Live quartet",
        category="music",
        location="Addis Ababa",
        starts_at=STARTS_AT,
        ends_at=STARTS_AT + timedelta(hours=3),
        is_published=True,
    )
    return models.TicketClass.objects.create(
        event=event, name="General", price=Decimal("12.50"), total_quantity=3
    )


@pytest.fixture
def buyer(django_user_model):
    return django_user_model.objects.create_user(username="buyer", password="pw")


@pytest.fixture
def buyer_client(api_client: APIClient, buyer) -> APIClient:
    api_client.force_authenticate(user=buyer)
    return api_client


def purchase(client: APIClient, ticket_class, quantity: int, key: str | None = "key-1", **extra):
    headers = {"HTTP_IDEMPOTENCY_KEY": key} if key else {}
    payload = {"ticket_class_id": str(ticket_class.id), "quantity": quantity, **extra}
    return client.post("/api/purchases", payload, format="json", **headers)


@pytest.mark.django_db
class TestCreatePurchase:
    """Tests for POST /api/purchases"""

    def test_purchase_is_confirmed_and_counters_persisted(self, buyer_client, ticket_class, buyer):
        response = purchase(buyer_client, ticket_class, 2)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "confirmed"
        assert body["total"] == "25.00"
        assert body["requester"] == str(buyer.pk)
        assert body["qr_code"].startswith(f"ticket_{ticket_class.id}_")
        ticket_class.refresh_from_db()
        assert (ticket_class.sold_quantity, ticket_class.reserved_quantity) == (2, 0)
        assert models.PurchaseRecord.objects.get().idempotency_key == "key-1"

    def test_idempotency_key_in_body_is_accepted(self, buyer_client, ticket_class):
        response = purchase(buyer_client, ticket_class, 1, key=None, idempotency_key="body-key")

        assert response.status_code == 201

    def test_replay_returns_same_purchase(self, buyer_client, ticket_class):
        first = purchase(buyer_client, ticket_class, 1)
        second = purchase(buyer_client, ticket_class, 1)

        assert second.status_code == 201
        assert second.json() == first.json()
        assert models.PurchaseRecord.objects.count() == 1

    def test_replay_with_different_quantity_conflicts(self, buyer_client, ticket_class):
        purchase(buyer_client, ticket_class, 1)

        response = purchase(buyer_client, ticket_class, 2)

        assert response.status_code == 409
        assert response.json()["reason"] == "CONFLICT"

    def test_sold_out_reports_available_quantity(self, buyer_client, ticket_class):
        purchase(buyer_client, ticket_class, 2, key="first")

        response = purchase(buyer_client, ticket_class, 2, key="second")

        assert response.status_code == 409
        assert response.json() == {
            "reason": "SOLD_OUT",
            "message": response.json()["message"],
            "available_quantity": 1,
            "retryable": False,
        }

    def test_missing_idempotency_key(self, buyer_client, ticket_class):
        response = purchase(buyer_client, ticket_class, 1, key=None)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

    def test_unknown_ticket_class(self, buyer_client):
        response = buyer_client.post(
            "/api/purchases",
            {"ticket_class_id": "00000000-0000-0000-0000-000000000000", "quantity": 1},
            format="json",
            HTTP_IDEMPOTENCY_KEY="key-1",
        )

        assert response.status_code == 404

    def test_zero_quantity_is_rejected(self, buyer_client, ticket_class):
        assert purchase(buyer_client, ticket_class, 0).status_code == 400

    def test_requires_authentication(self, api_client: APIClient, ticket_class):
        response = purchase(api_client, ticket_class, 1)

        assert response.status_code in (401, 403)


@pytest.mark.django_db
class TestPurchaseHistory:
    """Tests for GET /api/purchases"""

    def test_lists_only_own_purchases(self, buyer_client, ticket_class, django_user_model):
        mine = purchase(buyer_client, ticket_class, 1).json()
        other = APIClient()
        other.force_authenticate(user=django_user_model.objects.create_user(username="other"))
        purchase(other, ticket_class, 1, key="other-key")

        response = buyer_client.get("/api/purchases")

        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [mine["id"]]


@pytest.mark.django_db
class TestRefund:
    """Tests for POST /api/purchases/{id}/refund"""

    def test_staff_refund_returns_units(self, buyer_client, ticket_class, admin_user):
        record = purchase(buyer_client, ticket_class, 3).json()
        staff = APIClient()
        staff.force_authenticate(user=admin_user)

        response = staff.post(f"/api/purchases/{record['id']}/refund")

        assert response.status_code == 200
        assert response.json()["status"] == "refunded"
        ticket_class.refresh_from_db()
        assert ticket_class.sold_quantity == 0
        assert purchase(buyer_client, ticket_class, 3, key="again").status_code == 201

    def test_second_refund_conflicts(self, buyer_client, ticket_class, admin_user):
        record = purchase(buyer_client, ticket_class, 1).json()
        staff = APIClient()
        staff.force_authenticate(user=admin_user)
        staff.post(f"/api/purchases/{record['id']}/refund")

        response = staff.post(f"/api/purchases/{record['id']}/refund")

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATUS_TRANSITION"

    def test_non_staff_cannot_refund(self, buyer_client, ticket_class):
        record = purchase(buyer_client, ticket_class, 1).json()

        response = buyer_client.post(f"/api/purchases/{record['id']}/refund")

        assert response.status_code == 403


@pytest.mark.django_db
class TestReservations:
    """Tests for /api/reservations"""

    def test_hold_then_purchase_with_reservation(self, buyer_client, ticket_class):
        hold = buyer_client.post(
            "/api/reservations",
            {"ticket_class_id": str(ticket_class.id), "quantity": 2},
            format="json",
        )
        assert hold.status_code == 201
        assert hold.json()["state"] == "held"
        ticket_class.refresh_from_db()
        assert ticket_class.reserved_quantity == 2

        response = purchase(buyer_client, ticket_class, 2, reservation_id=hold.json()["id"])

        assert response.status_code == 201
        ticket_class.refresh_from_db()
        assert (ticket_class.sold_quantity, ticket_class.reserved_quantity) == (2, 0)

    def test_hold_beyond_capacity_is_sold_out(self, buyer_client, ticket_class):
        response = buyer_client.post(
            "/api/reservations",
            {"ticket_class_id": str(ticket_class.id), "quantity": 4},
            format="json",
        )

        assert response.status_code == 409
        assert response.json()["available_quantity"] == 3

    def test_release_own_hold(self, buyer_client, ticket_class):
        hold = buyer_client.post(
            "/api/reservations",
            {"ticket_class_id": str(ticket_class.id), "quantity": 3},
            format="json",
        ).json()

        response = buyer_client.delete(f"/api/reservations/{hold['id']}")

        assert response.status_code == 200
        assert response.json()["state"] == "released"
        ticket_class.refresh_from_db()
        assert ticket_class.reserved_quantity == 0

    def test_cannot_release_someone_elses_hold(self, buyer_client, ticket_class, django_user_model):
        hold = buyer_client.post(
            "/api/reservations",
            {"ticket_class_id": str(ticket_class.id), "quantity": 1},
            format="json",
        ).json()
        other = APIClient()
        other.force_authenticate(user=django_user_model.objects.create_user(username="other"))

        response = other.delete(f"/api/reservations/{hold['id']}")

        assert response.status_code == 404
        ticket_class.refresh_from_db()
        assert ticket_class.reserved_quantity == 1

    def test_release_invalid_id(self, buyer_client):
        assert buyer_client.delete("/api/reservations/not-a-uuid").status_code == 400


@pytest.mark.django_db
class TestDraftEvents:
    """Purchases and holds on classes of unpublished events"""

    @pytest.fixture
    def draft_class(self, ticket_class) -> models.TicketClass:
        models.Event.objects.filter(pk=ticket_class.event_id).update(is_published=False)
        return ticket_class

    def test_purchase_is_not_found(self, buyer_client, draft_class):
        response = purchase(buyer_client, draft_class, 1)

        assert response.status_code == 404
        assert response.json()["reason"] == "NOT_FOUND"
        assert models.PurchaseRecord.objects.count() == 0

    def test_hold_is_not_found(self, buyer_client, draft_class):
        response = buyer_client.post(
            "/api/reservations",
            {"ticket_class_id": str(draft_class.id), "quantity": 1},
            format="json",
        )

        assert response.status_code == 404
        draft_class.refresh_from_db()
        assert draft_class.reserved_quantity == 0
