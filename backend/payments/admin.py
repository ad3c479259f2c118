from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "purpose", "amount", "currency", "status", "payment_method", "paid_at")
    list_filter = ("status", "purpose", "payment_method")
    search_fields = ("payment_reference", "transaction_id", "stripe_checkout_session", "booking__traveler__email")
    readonly_fields = ("status", "amount", "paid_at", "refunded_at", "created_at", "updated_at")
