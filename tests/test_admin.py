"""Tests for the ticket class admin.

Run with: pytest tests/test_admin.py -v
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from django.contrib.admin.sites import site

from ticketing import models
from ticketing.admin import EventAdmin, TicketClassForm, TicketClassInline

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


@pytest.mark.django_db
class TestTicketClassForm:
    def test_capacity_is_editable_on_new_classes(self):
        assert not TicketClassForm().fields["total_quantity"].disabled

    def test_capacity_is_locked_on_existing_classes(self, ticket_class):
        form = TicketClassForm(
            data={
                "event": ticket_class.event_id,
                "name": "General",
                "price": "12.50",
                "total_quantity": 300,
            },
            instance=ticket_class,
        )

        assert form.fields["total_quantity"].disabled
        assert form.is_valid(), form.errors
        form.save()
        ticket_class.refresh_from_db()
        assert ticket_class.total_quantity == 3

    def test_inline_uses_the_locking_form(self):
        inline = TicketClassInline(models.Event, site)

        assert inline.form is TicketClassForm
        assert TicketClassInline in EventAdmin.inlines
        assert "sold_quantity" in inline.readonly_fields
        assert "reserved_quantity" in inline.readonly_fields


@pytest.mark.django_db
class TestEventChangeForm:
    """Tests for POST /admin/ticketing/event/{id}/change/"""

    def test_inline_edit_keeps_live_counters(self, admin_client, ticket_class):
        event = ticket_class.event
        # A sale lands while the change form is open.
        models.TicketClass.objects.filter(pk=ticket_class.pk).update(sold_quantity=2)
        prefix = "ticket_classes"
        data = {
            "organizer_id": event.organizer_id,
            "title": "Jazz Night (late show)",
            "description": event.description,
            "category": event.category,
            "location": event.location,
            "starts_at_0": "2026-06-01",
            "starts_at_1": "19:00:00",
            "ends_at_0": "2026-06-01",
            "ends_at_1": "22:00:00",
            "banner_url": "",
            "is_published": "on",
            f"{prefix}-TOTAL_FORMS": "1",
            f"{prefix}-INITIAL_FORMS": "1",
            f"{prefix}-MIN_NUM_FORMS": "0",
            f"{prefix}-MAX_NUM_FORMS": "1000",
            f"{prefix}-0-id": str(ticket_class.pk),
            f"{prefix}-0-event": str(event.pk),
            f"{prefix}-0-name": "Standing",
            f"{prefix}-0-price": "14.00",
            f"{prefix}-0-total_quantity": "1",
        }

        response = admin_client.post(f"/admin/ticketing/event/{event.pk}/change/", data)

        assert response.status_code == 302
        ticket_class.refresh_from_db()
        assert (ticket_class.name, ticket_class.price) == ("Standing", Decimal("14.00"))
        assert (ticket_class.total_quantity, ticket_class.sold_quantity) == (3, 2)
