"""
POS Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("register/state", views.register_state_view),
    path("register/cart/add", views.cart_add_view),
    path("register/cart/remove", views.cart_remove_view),
    path("register/cart/quantity", views.cart_quantity_view),
    path("register/cart/clear", views.cart_clear_view),
    path("register/cart/discount", views.cart_discount_view),
    path("register/cart/notes", views.cart_notes_view),
    path("register/customer", views.customer_view),
    path("register/payment", views.payment_view),
    path("register/commit", views.commit_view),
    path("register/print/invoice", views.print_invoice_view),
    path("register/sales", views.sales_feed_view),
    path("register/sales/history", views.sale_history_view),
    path("register/sales/<int:sale_id>", views.sale_detail_view),
    path("register/sales/<int:sale_id>/cancel", views.sale_cancel_view),
    path("register/catalog", views.catalog_view),
    path("register/products", views.product_publish_view),
    path("register/products/delete", views.product_delete_view),
    path("register/alerts", views.alerts_view),
    path("register/alerts/dismiss", views.alerts_dismiss_view),
]
