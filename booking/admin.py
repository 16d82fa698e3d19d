from django.contrib import admin

from .models import Product, PromoCode, Reservation, ReservationItem


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "level", "equipment_type", "price", "original_price", "active")
    list_filter = ("category", "equipment_type", "active")
    search_fields = ("name", "description", "features")


@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "discount_type", "discount_value", "current_uses", "max_uses", "expires_at", "is_active")
    list_filter = ("discount_type", "is_active")
    search_fields = ("code",)
    readonly_fields = ("current_uses", "created_at")


class ReservationItemInline(admin.TabularInline):
    model = ReservationItem
    extra = 0
    fields = ("product", "product_name", "category", "price", "quantity", "size", "surname", "options")
    readonly_fields = ("price",)


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "last_name",
        "first_name",
        "email",
        "start_date",
        "end_date",
        "total_price",
        "discount_amount",
        "final_price",
        "promo_code",
        "status",
    )
    list_filter = ("status", "start_date", "end_date")
    search_fields = ("first_name", "last_name", "email", "phone", "promo_code__code")
    readonly_fields = ("total_price", "discount_amount", "final_price", "promo_code", "created_at", "updated_at")
    inlines = [ReservationItemInline]
