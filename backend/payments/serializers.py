from rest_framework import serializers

from bookings.pricing import format_price
from payments.models import Payment
from payments.services.checkout import get_checkout_preview_url


class PaymentSerializer(serializers.ModelSerializer):
    amount_display = serializers.SerializerMethodField()
    checkout_url = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "booking",
            "amount",
            "amount_display",
            "currency",
            "purpose",
            "status",
            "payment_method",
            "payment_reference",
            "transaction_id",
            "failure_reason",
            "paid_at",
            "refunded_at",
            "created_at",
            "checkout_url",
        ]
        read_only_fields = fields

    def get_amount_display(self, obj: Payment) -> str:
        return format_price(obj.amount)

    def get_checkout_url(self, obj: Payment):
        return getattr(obj, "_checkout_url", None) or get_checkout_preview_url(obj)


class PaymentInitiateSerializer(serializers.Serializer):
    payment_method = serializers.CharField(max_length=60, required=False, default="card")
