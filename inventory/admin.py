"""
Django Admin configuration for inventory models.

Stock quantities and ledger rows are read-only here; they change only
through inventory.services.
"""
from django.contrib import admin
from .models import (
    Category,
    InventoryItem,
    Product,
    StockAdjustment,
    StockMovement,
    StockTransfer,
    StockTransferItem,
    Warehouse,
)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'product_count', 'created_at']
    search_fields = ['name']
    ordering = ['name']

    def product_count(self, obj):
        return obj.products.count()
    product_count.short_description = 'Products'


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['id', 'sku', 'name', 'unit_price', 'cost_price', 'reorder_level', 'category', 'is_active']
    list_filter = ['category', 'is_active', 'created_at']
    search_fields = ['sku', 'name', 'description']
    ordering = ['name']
    raw_id_fields = ['category', 'created_by']


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ['id', 'code', 'name', 'city', 'is_active', 'record_count', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['code', 'name', 'city']
    ordering = ['name']
    raw_id_fields = ['created_by']

    def record_count(self, obj):
        return obj.inventory_items.count()
    record_count.short_description = 'Inventory Items'


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'warehouse', 'product', 'quantity_on_hand',
        'quantity_reserved', 'quantity_available', 'is_low_stock', 'updated_at'
    ]
    list_filter = ['warehouse', 'updated_at']
    search_fields = ['product__sku', 'product__name', 'warehouse__code']
    ordering = ['warehouse', 'product']
    readonly_fields = [
        'product', 'warehouse', 'quantity_on_hand', 'quantity_reserved',
        'quantity_available', 'last_stock_date', 'created_at', 'updated_at'
    ]

    def is_low_stock(self, obj):
        return obj.is_low_stock
    is_low_stock.boolean = True
    is_low_stock.short_description = 'Low Stock'

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'created_at', 'movement_type', 'product', 'warehouse',
        'quantity_delta', 'balance_after', 'reference_type', 'reference_id'
    ]
    list_filter = ['movement_type', 'warehouse', 'created_at']
    search_fields = ['product__sku', 'reference_type', 'notes']
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class StockTransferItemInline(admin.TabularInline):
    model = StockTransferItem
    extra = 0
    raw_id_fields = ['product']


@admin.register(StockTransfer)
class StockTransferAdmin(admin.ModelAdmin):
    list_display = ['id', 'transfer_number', 'from_warehouse', 'to_warehouse', 'status', 'transfer_date', 'completed_at']
    list_filter = ['status', 'from_warehouse', 'to_warehouse']
    search_fields = ['transfer_number']
    ordering = ['-created_at']
    readonly_fields = ['transfer_number', 'status', 'completed_at', 'created_at', 'updated_at']
    inlines = [StockTransferItemInline]


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'adjustment_number', 'warehouse', 'product', 'adjustment_type',
        'quantity', 'quantity_before', 'quantity_after', 'reason', 'created_at'
    ]
    list_filter = ['adjustment_type', 'warehouse', 'created_at']
    search_fields = ['adjustment_number', 'product__sku', 'reason']
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
