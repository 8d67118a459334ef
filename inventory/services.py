"""
Inventory Service Layer - every stock mutation goes through this module.

Record store:
    get_or_create_record() / apply_delta() keep InventoryItem and the
    StockMovement ledger in step inside one transaction.

Built on top of apply_delta():
    - reserve_stock / release_stock
    - adjust_stock (manual add/remove with a reason)
    - stock transfers (create, update, process, cancel)

Concurrency: inventory rows are locked with select_for_update() and, when a
mutation touches several rows, they are locked in (warehouse_id, product_id)
order so two opposing transfers cannot deadlock.
"""
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from django.db import transaction
from django.db.models import DecimalField, ExpressionWrapper, F, Q, Sum
from django.utils import timezone

from core.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from core.numbering import next_number
from .models import (
    InventoryItem,
    Product,
    StockAdjustment,
    StockMovement,
    StockTransfer,
    StockTransferItem,
    Warehouse,
)

logger = logging.getLogger(__name__)

MovementType = StockMovement.MovementType
CENT = Decimal('0.01')

# Required sign of the delta for each movement type (adjustments go either way)
_DELTA_SIGN = {
    MovementType.PURCHASE_RECEIPT: 1,
    MovementType.TRANSFER_IN: 1,
    MovementType.TRANSFER_OUT: -1,
    MovementType.RESERVATION: 1,
    MovementType.RELEASE: -1,
}


# =============================================================================
# Lookups
# =============================================================================

def get_active_warehouse(warehouse_id: int) -> Warehouse:
    try:
        warehouse = Warehouse.objects.get(id=warehouse_id)
    except Warehouse.DoesNotExist:
        raise NotFoundError(f"Warehouse {warehouse_id} not found")
    if not warehouse.is_active:
        raise ValidationError(f"Warehouse {warehouse.code} is inactive")
    return warehouse


def get_product(product_id: int, active_only: bool = True) -> Product:
    try:
        product = Product.objects.get(id=product_id)
    except Product.DoesNotExist:
        raise NotFoundError(f"Product {product_id} not found")
    if active_only and not product.is_active:
        raise ValidationError(f"Product {product.sku} is inactive")
    return product


# =============================================================================
# Record store
# =============================================================================

def get_or_create_record(product_id: int, warehouse_id: int) -> InventoryItem:
    """
    Return the inventory record for (product, warehouse), creating a zeroed
    one if absent. The row is locked until the enclosing transaction ends.
    """
    with transaction.atomic():
        record, created = InventoryItem.objects.get_or_create(
            product_id=product_id,
            warehouse_id=warehouse_id,
        )
        if created:
            logger.debug(f"Created inventory record for product {product_id} @ warehouse {warehouse_id}")
        return InventoryItem.objects.select_for_update().get(pk=record.pk)


def lock_records(pairs: Iterable[Tuple[int, int]]) -> Dict[Tuple[int, int], InventoryItem]:
    """
    Lock the records for several (product_id, warehouse_id) pairs in a
    deterministic order, creating missing ones first. Must run inside a
    transaction.
    """
    pairs = sorted(set(pairs), key=lambda pair: (pair[1], pair[0]))
    for product_id, warehouse_id in pairs:
        InventoryItem.objects.get_or_create(product_id=product_id, warehouse_id=warehouse_id)

    query = Q()
    for product_id, warehouse_id in pairs:
        query |= Q(product_id=product_id, warehouse_id=warehouse_id)
    records = (
        InventoryItem.objects.select_for_update()
        .filter(query)
        .order_by('warehouse_id', 'product_id')
    )
    return {(r.product_id, r.warehouse_id): r for r in records}


@transaction.atomic
def apply_delta(
    product_id: int,
    warehouse_id: int,
    delta: int,
    movement_type: str,
    *,
    reference_type: str = '',
    reference_id: Optional[int] = None,
    notes: str = '',
    user=None,
) -> InventoryItem:
    """
    Apply a signed quantity change and record it in the ledger.

    On-hand movement types change quantity_on_hand; reservation/release change
    quantity_reserved. quantity_available is recomputed either way.

    Raises:
        ValidationError: zero delta, unknown type, or delta sign not matching the type
        InsufficientStockError: the result would make on-hand, reserved or
            available quantity negative
    """
    if movement_type not in MovementType.values:
        raise ValidationError(f"Unknown movement type '{movement_type}'")
    if not isinstance(delta, int) or delta == 0:
        raise ValidationError("Quantity change must be a non-zero integer")
    expected_sign = _DELTA_SIGN.get(movement_type)
    if expected_sign is not None and delta * expected_sign < 0:
        raise ValidationError(f"Invalid quantity {delta} for movement type '{movement_type}'")

    record = get_or_create_record(product_id, warehouse_id)
    on_hand = record.quantity_on_hand
    reserved = record.quantity_reserved

    if movement_type in StockMovement.ON_HAND_TYPES:
        on_hand += delta
        balance_after = on_hand
    else:
        reserved += delta
        balance_after = reserved
    available = on_hand - reserved

    if on_hand < 0 or reserved < 0 or available < 0:
        limit = record.quantity_reserved if movement_type == MovementType.RELEASE else record.quantity_available
        logger.warning(
            f"Rejected {movement_type} of {delta} for product {product_id} @ warehouse "
            f"{warehouse_id}: on_hand={record.quantity_on_hand}, reserved={record.quantity_reserved}"
        )
        raise InsufficientStockError(
            product_id, warehouse_id, abs(delta), limit, on_hand=record.quantity_on_hand
        )

    record.quantity_on_hand = on_hand
    record.quantity_reserved = reserved
    record.quantity_available = available
    record.last_stock_date = timezone.now()
    record.save(update_fields=[
        'quantity_on_hand', 'quantity_reserved', 'quantity_available',
        'last_stock_date', 'updated_at',
    ])

    StockMovement.objects.create(
        product_id=product_id,
        warehouse_id=warehouse_id,
        movement_type=movement_type,
        quantity_delta=delta,
        balance_after=balance_after,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        created_by=user if user is not None and user.is_authenticated else None,
    )

    logger.debug(
        f"{movement_type} {delta:+d} product {product_id} @ warehouse {warehouse_id}: "
        f"on_hand={on_hand}, reserved={reserved}, available={available}"
    )
    return record


def ledger_balance(product_id: int, warehouse_id: int) -> Dict[str, int]:
    """Sum the ledger for one pair: the quantities the record must hold."""
    totals = StockMovement.objects.filter(
        product_id=product_id,
        warehouse_id=warehouse_id,
    ).aggregate(
        on_hand=Sum('quantity_delta', filter=Q(movement_type__in=StockMovement.ON_HAND_TYPES)),
        reserved=Sum('quantity_delta', filter=Q(movement_type__in=StockMovement.RESERVED_TYPES)),
    )
    return {
        'on_hand': totals['on_hand'] or 0,
        'reserved': totals['reserved'] or 0,
    }


# =============================================================================
# Reservations
# =============================================================================

def _positive_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a positive integer")
    return quantity


def reserve_stock(product_id: int, warehouse_id: int, quantity: int, *,
                  reference_type: str = '', reference_id: Optional[int] = None,
                  user=None) -> InventoryItem:
    """Set aside available stock for a commitment (e.g. an invoice)."""
    quantity = _positive_quantity(quantity)
    return apply_delta(
        product_id, warehouse_id, quantity, MovementType.RESERVATION,
        reference_type=reference_type, reference_id=reference_id, user=user,
    )


def release_stock(product_id: int, warehouse_id: int, quantity: int, *,
                  reference_type: str = '', reference_id: Optional[int] = None,
                  user=None) -> InventoryItem:
    """Return previously reserved stock to the available pool."""
    quantity = _positive_quantity(quantity)
    return apply_delta(
        product_id, warehouse_id, -quantity, MovementType.RELEASE,
        reference_type=reference_type, reference_id=reference_id, user=user,
    )


# =============================================================================
# Stock adjustments
# =============================================================================

def adjust_stock(warehouse_id: int, product_id: int, adjustment_type: str, quantity: int,
                 reason: str, notes: str = '', user=None) -> StockAdjustment:
    """
    Manually add or remove stock at one warehouse.

    A removal that would take on-hand below zero is rejected with an
    InsufficientStockError carrying the current on-hand quantity.
    """
    if adjustment_type not in StockAdjustment.AdjustmentType.values:
        raise ValidationError(f"Adjustment type must be one of: {', '.join(StockAdjustment.AdjustmentType.values)}")
    quantity = _positive_quantity(quantity)
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError("A reason is required for stock adjustments")

    warehouse = get_active_warehouse(warehouse_id)
    product = get_product(product_id)
    delta = quantity if adjustment_type == StockAdjustment.AdjustmentType.ADD else -quantity

    with transaction.atomic():
        record = get_or_create_record(product.id, warehouse.id)
        quantity_before = record.quantity_on_hand
        if quantity_before + delta < 0:
            raise InsufficientStockError(
                product.id, warehouse.id, quantity, record.quantity_available,
                on_hand=quantity_before,
                message=(
                    f"Cannot remove {quantity} {product.unit_of_measure} of {product.sku} from "
                    f"{warehouse.code}: only {quantity_before} on hand"
                ),
            )

        adjustment = StockAdjustment.objects.create(
            adjustment_number=next_number(StockAdjustment, 'adjustment_number', 'ADJ-'),
            warehouse=warehouse,
            product=product,
            adjustment_type=adjustment_type,
            quantity=quantity,
            quantity_before=quantity_before,
            quantity_after=quantity_before + delta,
            reason=reason,
            notes=notes or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )
        apply_delta(
            product.id, warehouse.id, delta, MovementType.ADJUSTMENT,
            reference_type='stock_adjustment',
            reference_id=adjustment.id,
            notes=f"{reason}: {notes}" if notes else reason,
            user=user,
        )

    logger.info(
        f"Adjustment {adjustment.adjustment_number}: {delta:+d} {product.sku} @ {warehouse.code} "
        f"({quantity_before} -> {adjustment.quantity_after}), reason: {reason}"
    )
    return adjustment


# =============================================================================
# Stock transfers
# =============================================================================

def validate_transfer_items(items: List[Dict]) -> List[Dict]:
    """
    Validate transfer lines: at least one, positive quantities, no duplicate
    products, all products existing and active.
    """
    if not items:
        raise ValidationError("Transfer must contain at least one item")

    seen_products = set()
    for idx, item in enumerate(items):
        product_id = item.get('product_id')
        if product_id is None:
            raise ValidationError(f"Item {idx}: missing 'product_id'")
        try:
            _positive_quantity(item.get('quantity'))
        except ValidationError:
            raise ValidationError(f"Item {idx}: quantity must be a positive integer")
        if product_id in seen_products:
            raise ValidationError(f"Item {idx}: duplicate product_id {product_id}")
        seen_products.add(product_id)

    found = set(
        Product.objects.filter(id__in=seen_products, is_active=True).values_list('id', flat=True)
    )
    missing = seen_products - found
    if missing:
        raise ValidationError(f"Products not found or inactive: {sorted(missing)}")
    return items


def _check_transfer_warehouses(from_warehouse_id: int, to_warehouse_id: int) -> Tuple[Warehouse, Warehouse]:
    if from_warehouse_id == to_warehouse_id:
        raise ConflictError("Source and destination warehouse must be different")
    return get_active_warehouse(from_warehouse_id), get_active_warehouse(to_warehouse_id)


def _lock_transfer(transfer_id: int) -> StockTransfer:
    try:
        return StockTransfer.objects.select_for_update().get(id=transfer_id)
    except StockTransfer.DoesNotExist:
        raise NotFoundError(f"Stock transfer {transfer_id} not found")


def create_transfer(from_warehouse_id: int, to_warehouse_id: int, items: List[Dict], *,
                    transfer_date=None, notes: str = '',
                    status: str = StockTransfer.Status.DRAFT, user=None) -> StockTransfer:
    """Create a draft or pending transfer. No stock moves until it is processed."""
    if status not in StockTransfer.OPEN_STATUSES:
        raise ValidationError("New transfers must be created as draft or pending")
    from_warehouse, to_warehouse = _check_transfer_warehouses(from_warehouse_id, to_warehouse_id)
    validate_transfer_items(items)

    with transaction.atomic():
        transfer = StockTransfer.objects.create(
            transfer_number=next_number(StockTransfer, 'transfer_number', 'ST-'),
            from_warehouse=from_warehouse,
            to_warehouse=to_warehouse,
            transfer_date=transfer_date or timezone.localdate(),
            status=status,
            notes=notes or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )
        StockTransferItem.objects.bulk_create([
            StockTransferItem(transfer=transfer, product_id=item['product_id'], quantity=item['quantity'])
            for item in items
        ])

    logger.info(
        f"Created transfer {transfer.transfer_number}: {from_warehouse.code} -> "
        f"{to_warehouse.code}, {len(items)} items"
    )
    return transfer


def update_transfer(transfer_id: int, *, from_warehouse_id: Optional[int] = None,
                    to_warehouse_id: Optional[int] = None, transfer_date=None,
                    notes: Optional[str] = None, status: Optional[str] = None,
                    items: Optional[List[Dict]] = None) -> StockTransfer:
    """Edit an open transfer; lines are replaced when ``items`` is given."""
    with transaction.atomic():
        transfer = _lock_transfer(transfer_id)
        if not transfer.is_open:
            raise ValidationError(
                f"Transfer {transfer.transfer_number} is {transfer.status} and can no longer be edited"
            )

        if from_warehouse_id is not None or to_warehouse_id is not None:
            source_id = from_warehouse_id or transfer.from_warehouse_id
            destination_id = to_warehouse_id or transfer.to_warehouse_id
            transfer.from_warehouse, transfer.to_warehouse = _check_transfer_warehouses(
                source_id, destination_id
            )

        if transfer_date is not None:
            transfer.transfer_date = transfer_date
        if notes is not None:
            transfer.notes = notes
        if status is not None:
            if status not in StockTransfer.OPEN_STATUSES:
                raise ValidationError("Use process or cancel to close a transfer")
            transfer.status = status
        transfer.save()

        if items is not None:
            validate_transfer_items(items)
            transfer.items.all().delete()
            StockTransferItem.objects.bulk_create([
                StockTransferItem(transfer=transfer, product_id=item['product_id'], quantity=item['quantity'])
                for item in items
            ])
    return transfer


def process_transfer(transfer_id: int, user=None) -> StockTransfer:
    """
    Move the transfer's stock from source to destination.

    All-or-nothing: every line's source availability is checked under lock
    before any movement is written. Any shortage raises
    InsufficientStockError and neither warehouse changes.
    """
    with transaction.atomic():
        transfer = _lock_transfer(transfer_id)
        if not transfer.is_open:
            raise ValidationError(
                f"Transfer {transfer.transfer_number} cannot be processed from status '{transfer.status}'"
            )
        source_id = transfer.from_warehouse_id
        destination_id = transfer.to_warehouse_id
        if source_id == destination_id:
            raise ConflictError("Source and destination warehouse must be different")

        requested = defaultdict(int)
        for item in transfer.items.all():
            requested[item.product_id] += item.quantity
        if not requested:
            raise ValidationError(f"Transfer {transfer.transfer_number} has no items")

        product_ids = sorted(requested)
        records = lock_records(
            [(pid, source_id) for pid in product_ids] + [(pid, destination_id) for pid in product_ids]
        )

        shortages = []
        for pid in product_ids:
            available = records[(pid, source_id)].quantity_available
            if available < requested[pid]:
                shortages.append((pid, requested[pid], available))
        if shortages:
            pid, wanted, available = shortages[0]
            details = '; '.join(f"product {p}: requested {r}, available {a}" for p, r, a in shortages)
            logger.warning(f"Transfer {transfer.transfer_number} rejected: {details}")
            raise InsufficientStockError(
                pid, source_id, wanted, available,
                message=f"Insufficient stock in source warehouse: {details}",
            )

        for pid in product_ids:
            quantity = requested[pid]
            apply_delta(
                pid, source_id, -quantity, MovementType.TRANSFER_OUT,
                reference_type='stock_transfer', reference_id=transfer.id,
                notes=f"Transfer {transfer.transfer_number}", user=user,
            )
            apply_delta(
                pid, destination_id, quantity, MovementType.TRANSFER_IN,
                reference_type='stock_transfer', reference_id=transfer.id,
                notes=f"Transfer {transfer.transfer_number}", user=user,
            )

        transfer.status = StockTransfer.Status.COMPLETED
        transfer.completed_at = timezone.now()
        transfer.save(update_fields=['status', 'completed_at', 'updated_at'])

    logger.info(f"Transfer {transfer.transfer_number} completed: {len(product_ids)} products moved")
    return transfer


def cancel_transfer(transfer_id: int) -> StockTransfer:
    """Cancel an open transfer. Nothing was applied, so no inventory changes."""
    with transaction.atomic():
        transfer = _lock_transfer(transfer_id)
        if not transfer.is_open:
            raise ValidationError(
                f"Transfer {transfer.transfer_number} cannot be cancelled from status '{transfer.status}'"
            )
        transfer.status = StockTransfer.Status.CANCELLED
        transfer.save(update_fields=['status', 'updated_at'])

    logger.info(f"Transfer {transfer.transfer_number} cancelled")
    return transfer


def delete_transfer(transfer_id: int) -> None:
    with transaction.atomic():
        transfer = _lock_transfer(transfer_id)
        if transfer.status == StockTransfer.Status.COMPLETED:
            raise ValidationError("Completed transfers cannot be deleted")
        transfer.delete()


# =============================================================================
# Reporting
# =============================================================================

def low_stock_items(warehouse_id: Optional[int] = None):
    """Active products whose available quantity is at or below their reorder level."""
    queryset = InventoryItem.objects.select_related('product', 'warehouse').filter(
        product__is_active=True,
        product__reorder_level__gt=0,
        quantity_available__lte=F('product__reorder_level'),
    )
    if warehouse_id:
        queryset = queryset.filter(warehouse_id=warehouse_id)
    return queryset.order_by('quantity_available', 'product__name')


def _stock_value_expression():
    return ExpressionWrapper(
        F('quantity_on_hand') * F('product__cost_price'),
        output_field=DecimalField(max_digits=18, decimal_places=2),
    )


def inventory_valuation(warehouse_id: Optional[int] = None) -> Dict:
    """On-hand quantity valued at product cost price, per record and in total."""
    queryset = InventoryItem.objects.select_related('product', 'warehouse')
    if warehouse_id:
        queryset = queryset.filter(warehouse_id=warehouse_id)

    items = []
    total_value = Decimal('0.00')
    for record in queryset.order_by('warehouse__name', 'product__name'):
        value = record.quantity_on_hand * record.product.cost_price
        total_value += value
        items.append({
            'product_id': record.product_id,
            'product_name': record.product.name,
            'sku': record.product.sku,
            'warehouse_id': record.warehouse_id,
            'warehouse_name': record.warehouse.name,
            'quantity': record.quantity_on_hand,
            'cost_price': str(record.product.cost_price),
            'total_value': str(value),
        })
    return {'items': items, 'total_value': str(total_value)}


def inventory_stats() -> Dict:
    total_value = InventoryItem.objects.filter(product__is_active=True).aggregate(
        total=Sum(_stock_value_expression())
    )['total']
    return {
        'total_products': Product.objects.filter(is_active=True).count(),
        'total_warehouses': Warehouse.objects.filter(is_active=True).count(),
        'low_stock_items': low_stock_items().values('product_id').distinct().count(),
        'total_inventory_value': str((total_value or Decimal('0')).quantize(CENT)),
    }


def warehouse_inventory_summary(warehouse: Warehouse) -> Dict:
    records = list(
        InventoryItem.objects.select_related('product__category')
        .filter(warehouse=warehouse)
        .order_by('product__name')
    )
    items = []
    for record in records:
        unit_value = record.product.cost_price
        items.append({
            'product_id': record.product_id,
            'product_name': record.product.name,
            'sku': record.product.sku,
            'category': record.product.category.name if record.product.category else None,
            'quantity_on_hand': record.quantity_on_hand,
            'quantity_reserved': record.quantity_reserved,
            'quantity_available': record.quantity_available,
            'unit_value': str(unit_value),
            'total_value': str(record.quantity_on_hand * unit_value),
        })
    return {
        'warehouse_id': warehouse.id,
        'total_products': len(records),
        'total_quantity': sum(r.quantity_on_hand for r in records),
        'total_value': str(sum((r.quantity_on_hand * r.product.cost_price for r in records), Decimal('0.00'))),
        'items': items,
    }
