"""
URL routing for purchasing API endpoints.
"""
from django.urls import path

from . import views
from .models import PurchaseOrder

app_name = 'purchasing'

urlpatterns = [
    # Vendors
    path('vendors/', views.VendorListCreateView.as_view(), name='vendor-list'),
    path('vendors/<int:pk>/', views.VendorDetailView.as_view(), name='vendor-detail'),

    # Purchase orders
    path('purchase-orders/', views.PurchaseOrderListCreateView.as_view(), name='purchase-order-list'),
    path('purchase-orders/stats/', views.PurchaseOrderStatsView.as_view(), name='purchase-order-stats'),
    path('purchase-orders/<int:pk>/', views.PurchaseOrderDetailView.as_view(), name='purchase-order-detail'),
    path(
        'purchase-orders/<int:pk>/send/',
        views.PurchaseOrderTransitionView.as_view(target_status=PurchaseOrder.Status.SENT),
        name='purchase-order-send'
    ),
    path(
        'purchase-orders/<int:pk>/confirm/',
        views.PurchaseOrderTransitionView.as_view(target_status=PurchaseOrder.Status.CONFIRMED),
        name='purchase-order-confirm'
    ),
    path(
        'purchase-orders/<int:pk>/cancel/',
        views.PurchaseOrderTransitionView.as_view(target_status=PurchaseOrder.Status.CANCELLED),
        name='purchase-order-cancel'
    ),
    path(
        'purchase-orders/<int:pk>/receive/',
        views.PurchaseOrderReceiveView.as_view(),
        name='purchase-order-receive'
    ),
]
