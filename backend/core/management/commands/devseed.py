from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from accommodations.models import Accommodation, Review
from accounts.models import User
from bookings.models import Booking
from bookings.services.lifecycle import cancel_booking, confirm_booking, create_booking
from payments.models import Payment
from payments.services.ledger import complete, next_installment, record_attempt


SEED_PASSWORD = "Hebergo123!"
SUPERUSER_EMAIL = "admin@hebergo.test"
SUPERUSER_PASSWORD = "AdminHebergo123!"


class Command(BaseCommand):
    help = "Populate the local development database with sample data."

    def handle(self, *args, **options):
        if not settings.DEBUG:
            raise CommandError("Refusing to seed data while DEBUG is False.")

        with transaction.atomic():
            self.stdout.write(self.style.MIGRATE_HEADING("Creating users"))
            host = self._ensure_user(
                email="host@hebergo.test",
                first_name="Awa",
                last_name="Kone",
                display_name="Awa Kone",
                role=User.HOST,
            )
            traveler = self._ensure_user(
                email="traveler@hebergo.test",
                first_name="Moussa",
                last_name="Traore",
                display_name="Moussa Traore",
                role=User.TRAVELER,
            )
            self._ensure_superuser()

            self.stdout.write(self.style.MIGRATE_HEADING("Cleaning old bookings"))
            Review.objects.filter(traveler=traveler).delete()
            Booking.objects.filter(traveler=traveler).delete()

            self.stdout.write(self.style.MIGRATE_HEADING("Creating accommodations"))
            lagoon = self._ensure_accommodation(
                host=host,
                name="Villa de la Lagune",
                city="Abidjan",
                price_per_night=50000,
                max_guests=4,
                deposit_percent=30,
            )
            studio = self._ensure_accommodation(
                host=host,
                name="Studio Plateau",
                city="Abidjan",
                price_per_night=25000,
                max_guests=2,
                deposit_percent=None,
            )

            self.stdout.write(self.style.MIGRATE_HEADING("Creating bookings"))
            now = timezone.now()
            today = timezone.localdate(now)

            fresh = create_booking(
                accommodation=lagoon,
                traveler=traveler,
                check_in=today + timedelta(days=20),
                check_out=today + timedelta(days=22),
                guests=2,
                now=now,
            )
            self._log_booking(fresh, "awaiting payment")

            deposit_paid = create_booking(
                accommodation=lagoon,
                traveler=traveler,
                check_in=today + timedelta(days=30),
                check_out=today + timedelta(days=33),
                guests=3,
                now=now,
            )
            self._pay_next_installment(deposit_paid, now)
            self._log_booking(deposit_paid, "deposit paid")

            settled = create_booking(
                accommodation=studio,
                traveler=traveler,
                check_in=today + timedelta(days=10),
                check_out=today + timedelta(days=12),
                guests=1,
                now=now,
            )
            self._pay_next_installment(settled, now)
            self._pay_next_installment(settled, now)
            confirm_booking(settled.pk, actor=host, expected_status=Booking.PENDING, now=now)
            self._log_booking(settled, "confirmed and paid")

            cancelled = create_booking(
                accommodation=studio,
                traveler=traveler,
                check_in=today + timedelta(days=40),
                check_out=today + timedelta(days=41),
                guests=1,
                now=now,
            )
            cancel_booking(
                cancelled.pk,
                actor=traveler,
                expected_status=Booking.PENDING,
                reason="Travel plans changed.",
                now=now,
            )
            self._log_booking(cancelled, "cancelled by the traveler")

            lapsed = create_booking(
                accommodation=lagoon,
                traveler=traveler,
                check_in=today + timedelta(days=50),
                check_out=today + timedelta(days=52),
                guests=2,
                now=now - timedelta(hours=settings.BOOKING_PAYMENT_WINDOW_HOURS + 24),
            )
            self._log_booking(lapsed, "payment window lapsed")

        self.stdout.write(self.style.SUCCESS("Development seed data created."))
        self.stdout.write(self.style.NOTICE(f"Sample login accounts use password: {SEED_PASSWORD}"))
        self.stdout.write(self.style.NOTICE(f"Admin superuser {SUPERUSER_EMAIL} password: {SUPERUSER_PASSWORD}"))

    def _ensure_user(self, email: str, first_name: str, last_name: str, display_name: str, role: str) -> User:
        user, created = User.objects.get_or_create(
            email=email,
            defaults={
                "username": email,
                "first_name": first_name,
                "last_name": last_name,
                "display_name": display_name,
                "role": role,
            },
        )
        if created:
            user.set_password(SEED_PASSWORD)
            user.save()
        elif user.role != role:
            user.role = role
            user.save(update_fields=["role"])
        return user

    def _ensure_superuser(self) -> User:
        user, created = User.objects.get_or_create(
            email=SUPERUSER_EMAIL,
            defaults={
                "username": SUPERUSER_EMAIL,
                "display_name": "Admin User",
                "role": User.ADMIN,
                "is_staff": True,
                "is_superuser": True,
            },
        )
        if created or not user.has_usable_password():
            user.set_password(SUPERUSER_PASSWORD)
            user.save(update_fields=["password"])
        return user

    def _ensure_accommodation(self, host: User, name: str, city: str, **fields) -> Accommodation:
        accommodation, _ = Accommodation.objects.update_or_create(
            host=host,
            name=name,
            defaults={"city": city, "is_active": True, **fields},
        )
        return accommodation

    def _pay_next_installment(self, booking: Booking, now) -> Payment:
        booking.refresh_from_db()
        purpose, amount = next_installment(booking)
        payment = record_attempt(booking.pk, amount, purpose, "card", now=now)
        return complete(payment.pk, f"seed_{payment.payment_reference}", now=now)

    def _log_booking(self, booking: Booking, label: str) -> None:
        booking.refresh_from_db()
        self.stdout.write(
            self.style.NOTICE(
                f"Booking #{booking.pk} {booking.accommodation.name}: {label} "
                f"({booking.status}, {booking.payment_status}, paid {booking.amount_paid}/{booking.total_price})"
            )
        )
