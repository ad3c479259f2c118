from django.db import models


class Payment(models.Model):
    """A single payment attempt against a booking, deposit or balance."""

    PURPOSE_DEPOSIT = "deposit"
    PURPOSE_BALANCE = "balance"
    PURPOSES = [
        (PURPOSE_DEPOSIT, "Deposit"),
        (PURPOSE_BALANCE, "Balance"),
    ]

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    STATUSES = [
        (PENDING, "Pending"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
        (REFUNDED, "Refunded"),
    ]

    booking = models.ForeignKey("bookings.Booking", on_delete=models.CASCADE, related_name="payments")
    amount = models.PositiveBigIntegerField()
    currency = models.CharField(max_length=10, default="xof")
    purpose = models.CharField(max_length=10, choices=PURPOSES)
    status = models.CharField(max_length=12, choices=STATUSES, default=PENDING)
    payment_method = models.CharField(max_length=60, blank=True)
    transaction_id = models.CharField(max_length=200, blank=True)
    payment_reference = models.CharField(max_length=200, blank=True)
    stripe_checkout_session = models.CharField(max_length=200, blank=True)
    stripe_payment_intent = models.CharField(max_length=200, blank=True)
    failure_reason = models.CharField(max_length=500, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="payment_amount_positive"),
        ]

    def __str__(self):
        return f"{self.get_purpose_display()} payment #{self.pk} ({self.status})"
