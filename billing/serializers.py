"""
Serializers for clients, invoices and payments.
"""
from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from .models import Client, Invoice, InvoiceItem, Payment
from .services import client_invoice_summary


class ClientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = [
            'id', 'name', 'email', 'phone', 'company', 'address',
            'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class ClientDetailSerializer(ClientSerializer):
    invoice_summary = serializers.SerializerMethodField()

    class Meta(ClientSerializer.Meta):
        fields = ClientSerializer.Meta.fields + ['invoice_summary']

    def get_invoice_summary(self, obj):
        return client_invoice_summary(obj)


class ClientMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = ['id', 'name', 'company', 'email']


class InvoiceItemSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = InvoiceItem
        fields = [
            'id', 'product_id', 'description', 'quantity', 'unit_price',
            'tax_rate', 'amount', 'tax_amount'
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    created_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'invoice', 'amount', 'payment_date', 'payment_method',
            'reference_number', 'notes', 'created_by', 'created_at'
        ]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    """
    Invoice with lines, payments and derived balances.
    Uses select_related('client', 'created_by') and prefetch_related('items', 'payments') in view.
    """
    client = ClientMinimalSerializer(read_only=True)
    items = InvoiceItemSerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)
    created_by = UserMinimalSerializer(read_only=True)
    total_paid = serializers.SerializerMethodField()
    balance_due = serializers.SerializerMethodField()
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'client', 'issue_date', 'due_date',
            'currency', 'status', 'amount', 'tax_amount', 'total_amount',
            'total_paid', 'balance_due', 'is_overdue', 'notes', 'department',
            'items', 'payments', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def _total_paid(self, obj):
        # payments are prefetched
        return sum((payment.amount for payment in obj.payments.all()), Decimal('0.00'))

    def get_total_paid(self, obj):
        return str(self._total_paid(obj))

    def get_balance_due(self, obj):
        return str(obj.total_amount - self._total_paid(obj))


class InvoiceListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for invoice listings."""
    client_name = serializers.CharField(source='client.name', read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'client_name', 'issue_date', 'due_date',
            'status', 'total_amount', 'currency', 'is_overdue', 'created_at'
        ]


# =============================================================================
# Request serializers
# =============================================================================

class InvoiceItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    description = serializers.CharField(max_length=255)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.00'))
    tax_rate = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal('0.00'),
        max_value=Decimal('100.00'),
        default=Decimal('0.00')
    )


class InvoiceCreateSerializer(serializers.Serializer):
    """
    Request body for creating an invoice:
    {
        "client_id": 1,
        "due_date": "2024-12-01",
        "items": [{"description": "Consulting", "quantity": "2", "unit_price": "10.00", "tax_rate": "10"}]
    }
    """
    client_id = serializers.IntegerField(min_value=1)
    issue_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False)
    currency = serializers.CharField(min_length=3, max_length=3, default='USD')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    department = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    status = serializers.ChoiceField(
        choices=[Invoice.Status.DRAFT, Invoice.Status.SENT],
        default=Invoice.Status.DRAFT
    )
    items = InvoiceItemInputSerializer(many=True, allow_empty=False)

    def validate_currency(self, value):
        return value.upper()


class InvoiceUpdateSerializer(InvoiceCreateSerializer):
    client_id = serializers.IntegerField(min_value=1, required=False)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    department = serializers.CharField(max_length=100, required=False, allow_blank=True)
    status = None
    items = InvoiceItemInputSerializer(many=True, allow_empty=False, required=False)


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    payment_date = serializers.DateField(required=False)
    payment_method = serializers.ChoiceField(
        choices=Payment.Method.choices,
        default=Payment.Method.BANK_TRANSFER
    )
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
