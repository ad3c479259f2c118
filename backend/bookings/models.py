from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q


class BookingQuerySet(models.QuerySet):
    def visible_to(self, user):
        if user.is_platform_admin:
            return self
        return self.filter(Q(traveler=user) | Q(accommodation__host=user)).distinct()

    def expired(self, now):
        """Bookings whose payment window lapsed but whose stored status was not flipped yet."""
        return self.filter(
            status=Booking.PENDING,
            expires_at__isnull=False,
            expires_at__lt=now,
        ).exclude(payment_status=Booking.PAYMENT_PAID)


class Booking(models.Model):
    """A traveler's reservation of an accommodation for a date range."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    STATUSES = [
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (CANCELLED, "Cancelled"),
    ]

    PAYMENT_PENDING = "pending"
    PAYMENT_PAID = "paid"
    PAYMENT_FAILED = "failed"
    PAYMENT_REFUNDED = "refunded"
    PAYMENT_STATUSES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_FAILED, "Failed"),
        (PAYMENT_REFUNDED, "Refunded"),
    ]

    BY_TRAVELER = "traveler"
    BY_HOST = "host"
    BY_ADMIN = "admin"
    BY_SYSTEM = "system"
    CANCELLED_BY = [
        (BY_TRAVELER, "Traveler"),
        (BY_HOST, "Host"),
        (BY_ADMIN, "Administrator"),
        (BY_SYSTEM, "System"),
    ]

    accommodation = models.ForeignKey(
        "accommodations.Accommodation",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    traveler = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    status = models.CharField(max_length=12, choices=STATUSES, default=PENDING)
    payment_status = models.CharField(max_length=12, choices=PAYMENT_STATUSES, default=PAYMENT_PENDING)
    check_in = models.DateField()
    check_out = models.DateField()
    guests = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    total_price = models.PositiveBigIntegerField()
    deposit_amount = models.PositiveBigIntegerField(default=0)
    amount_paid = models.PositiveBigIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)
    deposit_paid_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(max_length=12, choices=CANCELLED_BY, blank=True)
    cancellation_reason = models.TextField(blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "id"]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="booking_status_expiry_idx"),
            models.Index(fields=["traveler", "status"], name="booking_traveler_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(check_out__gt=F("check_in")),
                name="booking_check_out_after_check_in",
            ),
            models.CheckConstraint(
                condition=Q(deposit_amount__lte=F("total_price")),
                name="booking_deposit_within_total",
            ),
        ]

    def __str__(self):
        return f"Booking #{self.pk} {self.accommodation.name} ({self.status})"
