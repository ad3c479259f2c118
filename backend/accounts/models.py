from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    TRAVELER = "traveler"
    HOST = "host"
    ADMIN = "admin"
    ROLES = [
        (TRAVELER, "Traveler"),
        (HOST, "Host"),
        (ADMIN, "Administrator"),
    ]

    display_name = models.CharField(max_length=120, blank=True)
    role = models.CharField(max_length=20, choices=ROLES, default=TRAVELER)
    phone = models.CharField(max_length=30, blank=True)

    @property
    def is_platform_admin(self) -> bool:
        return self.is_superuser or self.role == self.ADMIN

    @property
    def label(self) -> str:
        return self.display_name or self.get_full_name() or self.email or self.username
