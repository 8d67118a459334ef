"""
Django Admin configuration for billing models.
"""
from django.contrib import admin
from .models import Client, Invoice, InvoiceItem, Payment


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'company', 'email', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'company', 'email']
    ordering = ['name']


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['product', 'description', 'quantity', 'unit_price', 'tax_rate', 'amount', 'tax_amount']
    can_delete = False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ['amount', 'payment_date', 'payment_method', 'reference_number', 'created_by']
    can_delete = False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['id', 'invoice_number', 'client', 'status', 'total_amount', 'issue_date', 'due_date']
    list_filter = ['status', 'issue_date']
    search_fields = ['invoice_number', 'client__name']
    ordering = ['-issue_date']
    readonly_fields = [
        'invoice_number', 'status', 'amount', 'tax_amount', 'total_amount',
        'created_at', 'updated_at'
    ]
    inlines = [InvoiceItemInline, PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'invoice', 'amount', 'payment_date', 'payment_method', 'created_at']
    list_filter = ['payment_method', 'payment_date']
    search_fields = ['invoice__invoice_number', 'reference_number']
    readonly_fields = ['invoice', 'amount', 'created_by', 'created_at']
