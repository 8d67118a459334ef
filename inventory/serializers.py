"""
Serializers for inventory models.
Provides data validation and JSON conversion for API endpoints.

Stock quantities are read-only everywhere: they only change through the
request serializers at the bottom of this module and inventory.services.
"""
from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
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


class CategorySerializer(serializers.ModelSerializer):
    """Serializer for Category model."""
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_product_count(self, obj):
        return obj.products.filter(is_active=True).count()


class CategoryMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested category representation."""
    class Meta:
        model = Category
        fields = ['id', 'name']


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for Product model with nested category."""
    category = CategoryMinimalSerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        source='category',
        write_only=True,
        required=False,
        allow_null=True
    )

    class Meta:
        model = Product
        fields = [
            'id', 'sku', 'name', 'description',
            'category', 'category_id', 'unit_of_measure',
            'unit_price', 'cost_price', 'reorder_level', 'reorder_quantity',
            'is_serialized', 'is_batch_tracked', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_sku(self, value):
        return value.strip().upper()


class ProductMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for autocomplete and nested representations."""
    class Meta:
        model = Product
        fields = ['id', 'sku', 'name', 'unit_of_measure']


class WarehouseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Warehouse
        fields = [
            'id', 'code', 'name', 'address', 'city', 'state',
            'postal_code', 'country', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_code(self, value):
        return value.strip().upper()


class WarehouseMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested warehouse representation."""
    class Meta:
        model = Warehouse
        fields = ['id', 'code', 'name']


class InventoryItemSerializer(serializers.ModelSerializer):
    """
    Stock level of a product in a warehouse.
    Uses select_related('product', 'warehouse') in view.
    """
    product = ProductMinimalSerializer(read_only=True)
    warehouse = WarehouseMinimalSerializer(read_only=True)
    reorder_level = serializers.IntegerField(source='product.reorder_level', read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = [
            'id', 'product', 'warehouse',
            'quantity_on_hand', 'quantity_reserved', 'quantity_available',
            'reorder_level', 'is_low_stock', 'last_stock_date', 'updated_at'
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    product = ProductMinimalSerializer(read_only=True)
    warehouse = WarehouseMinimalSerializer(read_only=True)
    created_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'product', 'warehouse', 'movement_type',
            'quantity_delta', 'balance_after',
            'reference_type', 'reference_id', 'notes',
            'created_by', 'created_at'
        ]
        read_only_fields = fields


class StockTransferItemSerializer(serializers.ModelSerializer):
    product = ProductMinimalSerializer(read_only=True)

    class Meta:
        model = StockTransferItem
        fields = ['id', 'product', 'quantity']


class StockTransferSerializer(serializers.ModelSerializer):
    """
    Transfer with lines.
    Uses select_related('from_warehouse', 'to_warehouse') and
    prefetch_related('items__product') in view.
    """
    from_warehouse = WarehouseMinimalSerializer(read_only=True)
    to_warehouse = WarehouseMinimalSerializer(read_only=True)
    items = StockTransferItemSerializer(many=True, read_only=True)
    created_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = StockTransfer
        fields = [
            'id', 'transfer_number', 'from_warehouse', 'to_warehouse',
            'transfer_date', 'status', 'notes', 'items',
            'created_by', 'completed_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class StockAdjustmentSerializer(serializers.ModelSerializer):
    product = ProductMinimalSerializer(read_only=True)
    warehouse = WarehouseMinimalSerializer(read_only=True)
    created_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = StockAdjustment
        fields = [
            'id', 'adjustment_number', 'warehouse', 'product',
            'adjustment_type', 'quantity', 'quantity_before', 'quantity_after',
            'reason', 'notes', 'created_by', 'created_at'
        ]
        read_only_fields = fields


# =============================================================================
# Request serializers
# =============================================================================

class StockReservationRequestSerializer(serializers.Serializer):
    """
    Request body for reserve/release:
    {"product_id": 1, "warehouse_id": 2, "quantity": 5,
     "reference_type": "invoice", "reference_id": 7}
    """
    product_id = serializers.IntegerField(min_value=1)
    warehouse_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)
    reference_type = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    reference_id = serializers.IntegerField(min_value=1, required=False, allow_null=True, default=None)


class TransferItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class StockTransferCreateSerializer(serializers.Serializer):
    """
    Request body for creating a transfer:
    {
        "from_warehouse_id": 1,
        "to_warehouse_id": 2,
        "items": [{"product_id": 1, "quantity": 10}]
    }
    """
    from_warehouse_id = serializers.IntegerField(min_value=1)
    to_warehouse_id = serializers.IntegerField(min_value=1)
    transfer_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    status = serializers.ChoiceField(
        choices=StockTransfer.OPEN_STATUSES,
        default=StockTransfer.Status.DRAFT
    )
    items = TransferItemInputSerializer(many=True, allow_empty=False)

    def validate_items(self, value):
        product_ids = [item['product_id'] for item in value]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError("Each product may appear only once per transfer")
        return value


class StockTransferUpdateSerializer(StockTransferCreateSerializer):
    """Same fields as create, all optional."""
    from_warehouse_id = serializers.IntegerField(min_value=1, required=False)
    to_warehouse_id = serializers.IntegerField(min_value=1, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=StockTransfer.OPEN_STATUSES, required=False)
    items = TransferItemInputSerializer(many=True, allow_empty=False, required=False)


class StockAdjustmentCreateSerializer(serializers.Serializer):
    warehouse_id = serializers.IntegerField(min_value=1)
    product_id = serializers.IntegerField(min_value=1)
    adjustment_type = serializers.ChoiceField(choices=StockAdjustment.AdjustmentType.choices)
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
