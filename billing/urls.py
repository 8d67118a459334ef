"""
URL routing for billing API endpoints.
"""
from django.urls import path

from . import views

app_name = 'billing'

urlpatterns = [
    # Clients
    path('clients/', views.ClientListCreateView.as_view(), name='client-list'),
    path('clients/<int:pk>/', views.ClientDetailView.as_view(), name='client-detail'),
    path('clients/<int:pk>/invoices/', views.ClientInvoiceListView.as_view(), name='client-invoices'),

    # Invoices
    path('invoices/', views.InvoiceListCreateView.as_view(), name='invoice-list'),
    path('invoices/stats/', views.InvoiceStatsView.as_view(), name='invoice-stats'),
    path('invoices/overdue/', views.OverdueInvoiceListView.as_view(), name='invoice-overdue'),
    path('invoices/<int:pk>/', views.InvoiceDetailView.as_view(), name='invoice-detail'),
    path('invoices/<int:pk>/send/', views.InvoiceSendView.as_view(), name='invoice-send'),
    path('invoices/<int:pk>/cancel/', views.InvoiceCancelView.as_view(), name='invoice-cancel'),
    path('invoices/<int:pk>/duplicate/', views.InvoiceDuplicateView.as_view(), name='invoice-duplicate'),
    path('invoices/<int:pk>/payments/', views.InvoicePaymentListCreateView.as_view(), name='invoice-payments'),
]
