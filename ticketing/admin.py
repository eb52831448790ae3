from django import forms
from django.contrib import admin

from ticketing.models import Event, PurchaseRecord, TicketClass


class TicketClassForm(forms.ModelForm):
    class Meta:
        model = TicketClass
        fields = ["event", "name", "price", "total_quantity"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Capacity is fixed once the class exists.
        if not self.instance._state.adding and "total_quantity" in self.fields:
            self.fields["total_quantity"].disabled = True


class TicketClassInline(admin.TabularInline):
    model = TicketClass
    form = TicketClassForm
    extra = 1
    readonly_fields = ["sold_quantity", "reserved_quantity"]


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["title", "category", "location", "starts_at", "is_published"]
    list_filter = ["is_published", "category"]
    search_fields = ["title", "description", "location"]
    inlines = [TicketClassInline]


@admin.register(TicketClass)
class TicketClassAdmin(admin.ModelAdmin):
    list_display = ["name", "event", "price", "total_quantity", "sold_quantity", "reserved_quantity"]
    list_filter = ["event"]
    form = TicketClassForm
    readonly_fields = ["sold_quantity", "reserved_quantity"]

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return [*self.readonly_fields, "total_quantity"]
        return self.readonly_fields


@admin.register(PurchaseRecord)
class PurchaseRecordAdmin(admin.ModelAdmin):
    list_display = ["id", "requester", "ticket_class", "quantity", "total_amount", "status", "created_at"]
    list_filter = ["status"]
    search_fields = ["requester", "idempotency_key", "qr_code"]
    readonly_fields = [
        "requester",
        "ticket_class",
        "quantity",
        "unit_price",
        "total_amount",
        "idempotency_key",
        "qr_code",
        "created_at",
    ]
