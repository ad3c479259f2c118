from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Accommodation(models.Model):
    """A bookable place owned by a host."""

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="accommodations",
    )
    name = models.CharField(max_length=200)
    city = models.CharField(max_length=120)
    address = models.CharField(max_length=255, blank=True)
    price_per_night = models.PositiveIntegerField()
    max_guests = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    deposit_percent = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MaxValueValidator(100)],
        help_text="Share of the total price due as a deposit; empty uses the platform default.",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]

    def __str__(self):
        return f"{self.name} ({self.city})"

    @property
    def effective_deposit_percent(self) -> int:
        if self.deposit_percent is None:
            return settings.BOOKING_DEFAULT_DEPOSIT_PERCENT
        return self.deposit_percent


class Review(models.Model):
    accommodation = models.ForeignKey("Accommodation", on_delete=models.CASCADE, related_name="reviews")
    traveler = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="reviews",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviews",
    )
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        unique_together = ("traveler", "accommodation")

    def __str__(self):
        return f"{self.accommodation.name} review ({self.rating}/5)"
