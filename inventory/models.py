"""
Inventory Models - Products, warehouses and the stock ledger.

Models:
    - Category: Product categorization
    - Product: Stocked items (soft-disabled via is_active)
    - Warehouse: Physical stock locations
    - InventoryItem: Stock levels per (product, warehouse) pair
    - StockMovement: Append-only ledger of quantity deltas
    - StockTransfer / StockTransferItem: Warehouse-to-warehouse moves
    - StockAdjustment: Manual add/remove corrections with a reason

Ledger invariant: for every (product, warehouse) pair, quantity_on_hand equals
the sum of on-hand movement deltas and quantity_reserved equals the sum of
reservation/release deltas.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Category(models.Model):
    """
    Product category for organizing products.
    """
    name = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique category name"
    )
    description = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Stocked product. Products are never hard-deleted once they have
    movements; DELETE through the API clears is_active instead.
    """
    sku = models.CharField(
        max_length=64,
        unique=True,
        help_text="Unique stock keeping unit"
    )
    name = models.CharField(max_length=200, db_index=True)
    description = models.TextField(blank=True, default='')
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )
    unit_of_measure = models.CharField(max_length=20, default='unit')
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Selling price"
    )
    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Purchase cost used for valuation"
    )
    reorder_level = models.PositiveIntegerField(
        default=0,
        help_text="Available quantity at or below which the product is low on stock"
    )
    reorder_quantity = models.PositiveIntegerField(
        default=0,
        help_text="Suggested quantity to reorder"
    )
    is_serialized = models.BooleanField(default=False)
    is_batch_tracked = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['name']

    def __str__(self):
        return f"{self.sku} - {self.name}"


class Warehouse(models.Model):
    """
    Stock location. Deactivated warehouses keep their history but cannot
    receive new stock.
    """
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=200)
    address = models.CharField(max_length=300, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    state = models.CharField(max_length=100, blank=True, default='')
    postal_code = models.CharField(max_length=20, blank=True, default='')
    country = models.CharField(max_length=100, blank=True, default='')
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Warehouse'
        verbose_name_plural = 'Warehouses'
        ordering = ['name']

    def __str__(self):
        return f"{self.code} - {self.name}"


class InventoryItem(models.Model):
    """
    Stock level of one product in one warehouse.

    Only inventory services write to this table; quantity_available is kept
    equal to quantity_on_hand - quantity_reserved on every mutation.
    """
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='inventory_items'
    )
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='inventory_items'
    )
    quantity_on_hand = models.IntegerField(default=0)
    quantity_reserved = models.IntegerField(default=0)
    quantity_available = models.IntegerField(default=0)
    last_stock_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Inventory Item'
        verbose_name_plural = 'Inventory Items'
        ordering = ['warehouse', 'product']
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'warehouse'],
                name='unique_product_warehouse_inventory'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_on_hand__gte=0),
                name='inventory_on_hand_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_reserved__gte=0),
                name='inventory_reserved_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_available__gte=0),
                name='inventory_available_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.product.sku} @ {self.warehouse.code}: {self.quantity_on_hand} on hand"

    @property
    def is_low_stock(self) -> bool:
        reorder_level = self.product.reorder_level
        return reorder_level > 0 and self.quantity_available <= reorder_level


class StockMovement(models.Model):
    """
    Immutable ledger entry. Rows are inserted by inventory services only and
    can be neither updated nor deleted.
    """

    class MovementType(models.TextChoices):
        ADJUSTMENT = 'adjustment', 'Adjustment'
        PURCHASE_RECEIPT = 'purchase_receipt', 'Purchase Receipt'
        TRANSFER_IN = 'transfer_in', 'Transfer In'
        TRANSFER_OUT = 'transfer_out', 'Transfer Out'
        RESERVATION = 'reservation', 'Reservation'
        RELEASE = 'release', 'Release'

    ON_HAND_TYPES = (
        MovementType.ADJUSTMENT,
        MovementType.PURCHASE_RECEIPT,
        MovementType.TRANSFER_IN,
        MovementType.TRANSFER_OUT,
    )
    RESERVED_TYPES = (
        MovementType.RESERVATION,
        MovementType.RELEASE,
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='stock_movements'
    )
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='stock_movements'
    )
    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        db_index=True
    )
    quantity_delta = models.IntegerField(help_text="Signed change applied to the record")
    balance_after = models.IntegerField(
        help_text="On-hand (or reserved, for reservations) quantity after this movement"
    )
    reference_type = models.CharField(max_length=50, blank=True, default='')
    reference_id = models.PositiveBigIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Stock Movement'
        verbose_name_plural = 'Stock Movements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['product', 'warehouse'], name='movement_product_wh_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='movement_reference_idx'),
        ]

    def __str__(self):
        return f"{self.movement_type} {self.quantity_delta:+d} {self.product_id}@{self.warehouse_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Stock movements are append-only and cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Stock movements are append-only and cannot be deleted")

    @property
    def affects_on_hand(self) -> bool:
        return self.movement_type in self.ON_HAND_TYPES


class StockTransfer(models.Model):
    """
    Transfer of stock between two warehouses.

    Status Flow:
        DRAFT/PENDING -> COMPLETED (processed; stock moved atomically)
        DRAFT/PENDING -> CANCELLED (no stock was ever moved)
    """

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        PENDING = 'pending', 'Pending'
        IN_TRANSIT = 'in_transit', 'In Transit'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    OPEN_STATUSES = (Status.DRAFT, Status.PENDING)

    transfer_number = models.CharField(max_length=30, unique=True)
    from_warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='outgoing_transfers'
    )
    to_warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='incoming_transfers'
    )
    transfer_date = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True
    )
    notes = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Stock Transfer'
        verbose_name_plural = 'Stock Transfers'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(from_warehouse=models.F('to_warehouse')),
                name='transfer_distinct_warehouses'
            ),
        ]

    def __str__(self):
        return f"{self.transfer_number} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES


class StockTransferItem(models.Model):
    transfer = models.ForeignKey(
        StockTransfer,
        on_delete=models.CASCADE,
        related_name='items'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='transfer_items'
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    class Meta:
        verbose_name = 'Stock Transfer Item'
        verbose_name_plural = 'Stock Transfer Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.product_id}"


class StockAdjustment(models.Model):
    """
    Manual stock correction against a single warehouse/product.
    Applied immediately; the matching StockMovement carries the reason.
    """

    class AdjustmentType(models.TextChoices):
        ADD = 'add', 'Add'
        REMOVE = 'remove', 'Remove'

    adjustment_number = models.CharField(max_length=30, unique=True)
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name='stock_adjustments'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='stock_adjustments'
    )
    adjustment_type = models.CharField(max_length=10, choices=AdjustmentType.choices)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    quantity_before = models.IntegerField()
    quantity_after = models.IntegerField()
    reason = models.CharField(max_length=255)
    notes = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Stock Adjustment'
        verbose_name_plural = 'Stock Adjustments'
        ordering = ['-created_at']

    def __str__(self):
        sign = '+' if self.adjustment_type == self.AdjustmentType.ADD else '-'
        return f"{self.adjustment_number}: {sign}{self.quantity} {self.product_id}@{self.warehouse_id}"

    @property
    def signed_quantity(self) -> int:
        if self.adjustment_type == self.AdjustmentType.REMOVE:
            return -self.quantity
        return self.quantity
