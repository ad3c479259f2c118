from django.contrib import admin

from payments.models import Payment

from .models import Booking


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("purpose", "amount", "status", "payment_method", "transaction_id", "paid_at", "refunded_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "accommodation",
        "traveler",
        "check_in",
        "check_out",
        "status",
        "payment_status",
        "total_price",
        "amount_paid",
        "expires_at",
    )
    list_filter = ("status", "payment_status", "cancelled_by")
    search_fields = ("accommodation__name", "traveler__email", "traveler__username")
    date_hierarchy = "check_in"
    # money and status columns only move through the lifecycle and ledger services
    readonly_fields = (
        "status",
        "payment_status",
        "total_price",
        "deposit_amount",
        "amount_paid",
        "expires_at",
        "deposit_paid_at",
        "confirmed_at",
        "cancelled_at",
        "cancelled_by",
        "created_at",
        "updated_at",
    )
    inlines = [PaymentInline]
