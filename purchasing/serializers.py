"""
Serializers for vendors and purchase orders.
Totals and received quantities are read-only; they are computed by
purchasing.services.
"""
from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from inventory.serializers import ProductMinimalSerializer
from .models import PurchaseOrder, PurchaseOrderItem, Vendor


class VendorSerializer(serializers.ModelSerializer):
    purchase_order_count = serializers.SerializerMethodField()

    class Meta:
        model = Vendor
        fields = [
            'id', 'name', 'contact_person', 'email', 'phone', 'address',
            'tax_id', 'is_active', 'purchase_order_count',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_purchase_order_count(self, obj):
        return obj.purchase_orders.count()


class VendorMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Vendor
        fields = ['id', 'name', 'email']


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    product = ProductMinimalSerializer(read_only=True)
    remaining_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = [
            'id', 'product', 'description', 'quantity', 'quantity_received',
            'remaining_quantity', 'unit_price', 'tax_rate', 'amount', 'tax_amount'
        ]
        read_only_fields = fields


class PurchaseOrderSerializer(serializers.ModelSerializer):
    """
    Purchase order with lines.
    Uses select_related('vendor', 'created_by') and prefetch_related('items__product') in view.
    """
    vendor = VendorMinimalSerializer(read_only=True)
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    created_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'vendor', 'order_date', 'expected_date',
            'received_date', 'currency', 'status',
            'subtotal', 'tax_amount', 'total_amount', 'notes',
            'items', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PurchaseOrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order listings."""
    vendor_name = serializers.CharField(source='vendor.name', read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'vendor_name', 'order_date', 'expected_date',
            'status', 'total_amount', 'currency', 'item_count', 'created_at'
        ]

    def get_item_count(self, obj):
        return len(obj.items.all())


# =============================================================================
# Request serializers
# =============================================================================

class PurchaseOrderItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.00'))
    tax_rate = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal('0.00'),
        max_value=Decimal('100.00'),
        default=Decimal('0.00')
    )


class PurchaseOrderCreateSerializer(serializers.Serializer):
    """
    Request body for creating a purchase order:
    {
        "vendor_id": 1,
        "expected_date": "2024-11-01",
        "items": [{"product_id": 1, "quantity": 100, "unit_price": "2.50", "tax_rate": "8.00"}]
    }
    """
    vendor_id = serializers.IntegerField(min_value=1)
    order_date = serializers.DateField(required=False)
    expected_date = serializers.DateField(required=False, allow_null=True)
    currency = serializers.CharField(min_length=3, max_length=3, default='USD')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = PurchaseOrderItemInputSerializer(many=True, allow_empty=False)

    def validate_currency(self, value):
        return value.upper()


class PurchaseOrderUpdateSerializer(PurchaseOrderCreateSerializer):
    vendor_id = serializers.IntegerField(min_value=1, required=False)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = PurchaseOrderItemInputSerializer(many=True, allow_empty=False, required=False)


class ReceivedItemSerializer(serializers.Serializer):
    item_id = serializers.IntegerField(min_value=1)
    quantity_received = serializers.IntegerField(min_value=0)


class PurchaseOrderReceiveSerializer(serializers.Serializer):
    """
    Request body for receiving goods:
    {"warehouse_id": 1, "received_items": [{"item_id": 10, "quantity_received": 5}]}
    """
    warehouse_id = serializers.IntegerField(min_value=1)
    received_items = ReceivedItemSerializer(many=True, allow_empty=False)
