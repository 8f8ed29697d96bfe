"""
POS Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("bill", views.bill_view),
    path("bill/totals", views.totals_view),
    path("bill/line-items", views.line_items_view),
    path("bill/points", views.points_view),
    path("bill/taxes", views.taxes_view),
    path("combos/active", views.active_combos_view),
    path("bill/scan", views.scan_view),
    path("bill/manual-item", views.manual_item_view),
    path("bill/line-quantity", views.line_quantity_view),
    path("bill/combos/open", views.combo_open_view),
    path("bill/combos/close", views.combo_close_view),
    path("bill/finalize", views.finalize_view),
    path("bill/clear", views.clear_view),
]
