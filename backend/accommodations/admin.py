from django.contrib import admin

from .models import Accommodation, Review


@admin.register(Accommodation)
class AccommodationAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "host", "price_per_night", "max_guests", "deposit_percent", "is_active")
    list_filter = ("is_active", "city")
    search_fields = ("name", "city", "host__email")
    ordering = ("name",)


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("accommodation", "traveler", "rating", "created_at")
    list_filter = ("rating",)
    search_fields = ("accommodation__name", "traveler__email")
