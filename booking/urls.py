from django.urls import path

from . import views

app_name = "booking"

urlpatterns = [
    path("products/", views.product_list, name="product_list"),
    path("products/<int:pk>/quote/", views.product_quote, name="product_quote"),
    path("promocodes/validate/", views.promo_code_validate, name="promo_code_validate"),
    path("reservations/", views.reservation_create, name="reservation_create"),
    path("reservations/<int:pk>/lookup/", views.reservation_lookup, name="reservation_lookup"),
    path("admin/reservations/", views.admin_reservation_list, name="admin_reservation_list"),
    path("admin/reservations/export/", views.admin_reservation_export, name="admin_reservation_export"),
    path("admin/reservations/<int:pk>/", views.admin_reservation_detail, name="admin_reservation_detail"),
    path("admin/products/", views.admin_product_list, name="admin_product_list"),
    path("admin/products/<int:pk>/", views.admin_product_detail, name="admin_product_detail"),
    path(
        "admin/products/<int:pk>/default-prices/",
        views.admin_product_default_prices,
        name="admin_product_default_prices",
    ),
    path("admin/promocodes/", views.admin_promo_code_list, name="admin_promo_code_list"),
    path("admin/promocodes/<int:pk>/", views.admin_promo_code_detail, name="admin_promo_code_detail"),
    path("admin/customers/", views.admin_customer_list, name="admin_customer_list"),
    path("admin/analytics/", views.admin_analytics, name="admin_analytics"),
    path("admin/email/broadcast/", views.admin_email_broadcast, name="admin_email_broadcast"),
]
