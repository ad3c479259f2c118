import logging
from dataclasses import asdict

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework import mixins, permissions, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.response import Response

from accommodations.models import Review
from bookings.exceptions import NotOwner
from bookings.models import Booking
from bookings.serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    RejectSerializer,
    ReviewSerializer,
    TransitionSerializer,
)
from bookings.services.lifecycle import (
    MANAGING_ROLES,
    cancel_booking,
    confirm_booking,
    create_booking,
    resolve_viewer_role,
)
from bookings.services.projection import build_receipt, project
from payments.serializers import PaymentInitiateSerializer, PaymentSerializer
from payments.services.checkout import initiate_payment

logger = logging.getLogger(__name__)


class BookingViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "payment_status"]
    ordering_fields = ["created_at", "check_in"]

    def get_queryset(self):
        return (
            Booking.objects.visible_to(self.request.user)
            .select_related("accommodation", "accommodation__host", "traveler")
            .prefetch_related("payments")
        )

    def get_serializer_class(self):
        if self.action == "create":
            return BookingCreateSerializer
        return BookingSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        # one clock reading per request so every fact on a page agrees
        if not hasattr(self, "_now"):
            self._now = timezone.now()
        context["now"] = self._now
        return context

    def _detail(self, booking: Booking) -> dict:
        return BookingSerializer(booking, context=self.get_serializer_context()).data

    def create(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        booking = create_booking(traveler=request.user, **serializer.validated_data)
        return Response(self._detail(booking), status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        booking = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = confirm_booking(
            booking.pk,
            actor=request.user,
            expected_status=serializer.validated_data["expected_status"],
        )
        return Response(self._detail(booking))

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        booking = self.get_object()
        if resolve_viewer_role(booking, request.user) not in MANAGING_ROLES:
            raise NotOwner("Only the host can reject this booking.")
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = cancel_booking(
            booking.pk,
            actor=request.user,
            expected_status=serializer.validated_data["expected_status"],
            reason=serializer.validated_data["reason"],
        )
        return Response(self._detail(booking))

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        booking = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = cancel_booking(
            booking.pk,
            actor=request.user,
            expected_status=serializer.validated_data["expected_status"],
            reason=serializer.validated_data["reason"],
        )
        return Response(self._detail(booking))

    @action(detail=True, methods=["get", "post"])
    def payments(self, request, pk=None):
        booking = self.get_object()
        if request.method == "GET":
            return Response(PaymentSerializer(booking.payments.all(), many=True).data)

        if resolve_viewer_role(booking, request.user) != Booking.BY_TRAVELER:
            raise NotOwner("Only the traveler can pay for this booking.")
        serializer = PaymentInitiateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = initiate_payment(
            booking,
            payment_method=serializer.validated_data["payment_method"],
            now=self.get_serializer_context()["now"],
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"])
    def receipt(self, request, pk=None):
        booking = self.get_object()
        now = self.get_serializer_context()["now"]
        payments = list(booking.payments.all())
        facts = project(booking, payments, now, resolve_viewer_role(booking, request.user))
        if not facts.can_view_receipt:
            raise NotFound("No payment has been completed for this booking yet.")
        return Response(asdict(build_receipt(booking, payments, now)))

    @action(detail=True, methods=["post"])
    def review(self, request, pk=None):
        booking = self.get_object()
        role = resolve_viewer_role(booking, request.user)
        has_prior_review = Review.objects.filter(
            traveler_id=booking.traveler_id,
            accommodation_id=booking.accommodation_id,
        ).exists()
        facts = project(
            booking,
            booking.payments.all(),
            self.get_serializer_context()["now"],
            role,
            has_prior_review=has_prior_review,
        )
        if not facts.can_review:
            raise PermissionDenied("This stay cannot be reviewed.")

        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            with transaction.atomic():
                review = serializer.save(
                    accommodation=booking.accommodation,
                    traveler=request.user,
                    booking=booking,
                )
        except IntegrityError:
            raise serializers.ValidationError({"detail": "You already reviewed this accommodation."})
        logger.info("Review %s left on accommodation %s", review.pk, booking.accommodation_id)
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)
