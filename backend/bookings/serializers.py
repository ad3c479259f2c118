from django.utils import timezone
from rest_framework import serializers

from accommodations.models import Accommodation, Review
from bookings.models import Booking
from bookings.pricing import format_price
from bookings.services.lifecycle import resolve_viewer_role
from bookings.services.projection import project


class BookingSerializer(serializers.ModelSerializer):
    accommodation_name = serializers.CharField(source="accommodation.name", read_only=True)
    accommodation_city = serializers.CharField(source="accommodation.city", read_only=True)
    traveler_name = serializers.CharField(source="traveler.label", read_only=True)
    total_price_display = serializers.SerializerMethodField()
    facts = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "accommodation",
            "accommodation_name",
            "accommodation_city",
            "traveler",
            "traveler_name",
            "check_in",
            "check_out",
            "guests",
            "status",
            "payment_status",
            "total_price",
            "total_price_display",
            "deposit_amount",
            "amount_paid",
            "expires_at",
            "deposit_paid_at",
            "confirmed_at",
            "cancelled_at",
            "cancelled_by",
            "cancellation_reason",
            "created_at",
            "updated_at",
            "facts",
        ]
        read_only_fields = fields

    def get_total_price_display(self, obj: Booking) -> str:
        return format_price(obj.total_price)

    def get_facts(self, obj: Booking) -> dict:
        request = self.context.get("request")
        now = self.context.get("now") or timezone.now()
        role = resolve_viewer_role(obj, request.user if request else None)
        has_prior_review = False
        if role == Booking.BY_TRAVELER:
            has_prior_review = Review.objects.filter(
                traveler_id=obj.traveler_id,
                accommodation_id=obj.accommodation_id,
            ).exists()
        facts = project(obj, obj.payments.all(), now, role, has_prior_review=has_prior_review)
        data = facts.as_dict()
        data["viewer_role"] = role
        return data


class BookingCreateSerializer(serializers.Serializer):
    accommodation_id = serializers.PrimaryKeyRelatedField(
        queryset=Accommodation.objects.filter(is_active=True),
        source="accommodation",
    )
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    guests = serializers.IntegerField(min_value=1, required=False, default=1)

    def validate(self, attrs):
        if attrs["check_out"] <= attrs["check_in"]:
            raise serializers.ValidationError({"check_out": "Check-out must be after check-in."})
        if attrs["check_in"] < timezone.localdate():
            raise serializers.ValidationError({"check_in": "Check-in cannot be in the past."})
        accommodation = attrs["accommodation"]
        if attrs["guests"] > accommodation.max_guests:
            raise serializers.ValidationError(
                {"guests": f"This accommodation hosts at most {accommodation.max_guests} guests."}
            )
        return attrs


class TransitionSerializer(serializers.Serializer):
    expected_status = serializers.ChoiceField(choices=Booking.STATUSES)
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)


class RejectSerializer(TransitionSerializer):
    reason = serializers.CharField(max_length=1000)


class ReviewSerializer(serializers.ModelSerializer):
    traveler_name = serializers.CharField(source="traveler.label", read_only=True)

    class Meta:
        model = Review
        fields = ["id", "accommodation", "booking", "traveler_name", "rating", "comment", "created_at"]
        read_only_fields = ["id", "accommodation", "booking", "traveler_name", "created_at"]
