"""
Django Admin configuration for purchasing models.
"""
from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem, Vendor


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'contact_person', 'email', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'contact_person', 'email']
    ordering = ['name']


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    readonly_fields = ['product', 'quantity', 'quantity_received', 'unit_price', 'tax_rate', 'amount', 'tax_amount']
    can_delete = False


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'po_number', 'vendor', 'status', 'total_amount', 'order_date', 'received_date']
    list_filter = ['status', 'vendor', 'order_date']
    search_fields = ['po_number', 'vendor__name']
    ordering = ['-created_at']
    readonly_fields = [
        'po_number', 'status', 'subtotal', 'tax_amount', 'total_amount',
        'received_date', 'created_at', 'updated_at'
    ]
    inlines = [PurchaseOrderItemInline]
