"""
Purchasing Service Layer with atomic receiving.

Key Features:
    - Purchase orders with server-computed totals (billing.services.compute_totals)
    - Forward-only status transitions (send, confirm, cancel)
    - Goods receipt that validates every line before touching inventory,
      then posts purchase_receipt movements through inventory.services

Receiving locks the order row and its lines with select_for_update(), so
concurrent receipts against the same line are serialized and cannot jointly
exceed the ordered quantity.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from billing.services import compute_totals
from core.exceptions import NotFoundError, ValidationError
from core.numbering import next_number
from inventory.models import Product, StockMovement
from inventory.services import apply_delta, get_active_warehouse
from .models import PurchaseOrder, PurchaseOrderItem, Vendor

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def _get_active_vendor(vendor_id: int) -> Vendor:
    try:
        vendor = Vendor.objects.get(id=vendor_id)
    except Vendor.DoesNotExist:
        raise NotFoundError(f"Vendor {vendor_id} not found")
    if not vendor.is_active:
        raise ValidationError(f"Vendor {vendor.name} is inactive")
    return vendor


def _lock_order(po_id: int) -> PurchaseOrder:
    try:
        return PurchaseOrder.objects.select_for_update().get(id=po_id)
    except PurchaseOrder.DoesNotExist:
        raise NotFoundError(f"Purchase order {po_id} not found")


def validate_order_items(items: List[Dict]) -> Dict:
    """
    Check lines reference existing active products and compute their totals.

    Returns:
        compute_totals() result for the lines
    """
    if not items:
        raise ValidationError("Purchase order must contain at least one item")

    product_ids = {item['product_id'] for item in items}
    found = set(
        Product.objects.filter(id__in=product_ids, is_active=True).values_list('id', flat=True)
    )
    missing = product_ids - found
    if missing:
        raise ValidationError(f"Products not found or inactive: {sorted(missing)}")
    return compute_totals(items)


def _write_items(order: PurchaseOrder, items: List[Dict], totals: Dict) -> None:
    PurchaseOrderItem.objects.bulk_create([
        PurchaseOrderItem(
            purchase_order=order,
            product_id=item['product_id'],
            description=item.get('description') or '',
            quantity=item['quantity'],
            unit_price=item['unit_price'],
            tax_rate=item.get('tax_rate') or 0,
            amount=line['amount'],
            tax_amount=line['tax_amount'],
        )
        for item, line in zip(items, totals['lines'])
    ])


def _apply_totals(order: PurchaseOrder, totals: Dict) -> None:
    order.subtotal = totals['subtotal']
    order.tax_amount = totals['tax_amount']
    order.total_amount = totals['total_amount']


def create_purchase_order(vendor_id: int, items: List[Dict], *, order_date=None,
                          expected_date=None, currency: str = 'USD', notes: str = '',
                          user=None) -> PurchaseOrder:
    """Create a draft purchase order numbered PO-0001, PO-0002, ..."""
    vendor = _get_active_vendor(vendor_id)
    totals = validate_order_items(items)
    order_date = order_date or timezone.localdate()
    if expected_date and expected_date < order_date:
        raise ValidationError("Expected date cannot be before the order date")

    with transaction.atomic():
        order = PurchaseOrder(
            po_number=next_number(PurchaseOrder, 'po_number', 'PO-'),
            vendor=vendor,
            order_date=order_date,
            expected_date=expected_date,
            currency=currency,
            notes=notes or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )
        _apply_totals(order, totals)
        order.save()
        _write_items(order, items, totals)

    logger.info(
        f"Created purchase order {order.po_number} for {vendor.name}: "
        f"{len(items)} items, total {order.total_amount} {order.currency}"
    )
    return order


def update_purchase_order(po_id: int, *, vendor_id: Optional[int] = None, order_date=None,
                          expected_date=None, currency: Optional[str] = None,
                          notes: Optional[str] = None, items: Optional[List[Dict]] = None) -> PurchaseOrder:
    """Edit a draft purchase order; lines are replaced when ``items`` is given."""
    with transaction.atomic():
        order = _lock_order(po_id)
        if order.status != PurchaseOrder.Status.DRAFT:
            raise ValidationError(
                f"Purchase order {order.po_number} is {order.status}; only drafts can be edited"
            )

        if vendor_id is not None:
            order.vendor = _get_active_vendor(vendor_id)
        if order_date is not None:
            order.order_date = order_date
        if expected_date is not None:
            order.expected_date = expected_date
        if order.expected_date and order.expected_date < order.order_date:
            raise ValidationError("Expected date cannot be before the order date")
        if currency is not None:
            order.currency = currency
        if notes is not None:
            order.notes = notes

        if items is not None:
            totals = validate_order_items(items)
            _apply_totals(order, totals)
            order.items.all().delete()
            _write_items(order, items, totals)

        order.save()
    return order


def transition_purchase_order(po_id: int, status: str) -> PurchaseOrder:
    """
    Move an order to ``status`` following PurchaseOrder.TRANSITIONS.
    Cancelling is refused once any quantity has been received.
    """
    with transaction.atomic():
        order = _lock_order(po_id)
        if not order.can_transition_to(status):
            raise ValidationError(
                f"Purchase order {order.po_number} cannot move from '{order.status}' to '{status}'"
            )
        if status == PurchaseOrder.Status.CANCELLED and order.items.filter(quantity_received__gt=0).exists():
            raise ValidationError(
                f"Purchase order {order.po_number} has received goods and cannot be cancelled"
            )
        previous_status = order.status
        order.status = status
        order.save(update_fields=['status', 'updated_at'])

    logger.info(f"Purchase order {order.po_number}: {previous_status} -> {status}")
    return order


def delete_purchase_order(po_id: int) -> None:
    with transaction.atomic():
        order = _lock_order(po_id)
        if order.status != PurchaseOrder.Status.DRAFT:
            raise ValidationError(f"Only draft purchase orders can be deleted ({order.po_number} is {order.status})")
        order.delete()

    logger.info(f"Purchase order {order.po_number} deleted")


def receive_purchase_order(po_id: int, warehouse_id: int, received_items: List[Dict],
                           user=None) -> PurchaseOrder:
    """
    Receive goods against a sent/confirmed purchase order.

    Args:
        po_id: Purchase order ID
        warehouse_id: Active warehouse receiving the goods
        received_items: List of {'item_id': int, 'quantity_received': int}
        user: Receiving user, recorded on the stock movements

    Returns:
        The updated purchase order (status RECEIVED once every line is complete)

    Raises:
        NotFoundError: Unknown order or warehouse
        ValidationError: Wrong status, foreign or duplicate item, negative or
            over-receiving quantity. Nothing is applied in that case.
    """
    if not received_items:
        raise ValidationError("received_items must contain at least one line")

    with transaction.atomic():
        order = _lock_order(po_id)
        warehouse = get_active_warehouse(warehouse_id)
        if order.status not in PurchaseOrder.RECEIVABLE_STATUSES:
            raise ValidationError(
                f"Purchase order {order.po_number} cannot be received from status '{order.status}'"
            )

        # Lock lines in product order, matching the inventory lock order
        lines = {
            line.id: line
            for line in order.items.select_for_update().order_by('product_id', 'id')
        }

        # Step 1: validate every requested line before any write
        receipts = {}
        for entry in received_items:
            item_id = entry.get('item_id')
            quantity = entry.get('quantity_received')
            line = lines.get(item_id)
            if line is None:
                raise ValidationError(
                    f"Item {item_id} does not belong to purchase order {order.po_number}",
                    errors={'item_id': item_id},
                )
            if item_id in receipts:
                raise ValidationError(f"Item {item_id} is listed more than once", errors={'item_id': item_id})
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
                raise ValidationError(
                    f"Item {item_id}: quantity_received must be a non-negative integer",
                    errors={'item_id': item_id},
                )
            if line.quantity_received + quantity > line.quantity:
                logger.warning(
                    f"Over-receipt rejected on {order.po_number} item {item_id}: "
                    f"ordered {line.quantity}, received {line.quantity_received}, requested {quantity}"
                )
                raise ValidationError(
                    f"Item {item_id}: receiving {quantity} would exceed the ordered quantity "
                    f"({line.quantity_received} of {line.quantity} already received)",
                    errors={
                        'item_id': item_id,
                        'ordered': line.quantity,
                        'already_received': line.quantity_received,
                        'requested': quantity,
                    },
                )
            receipts[item_id] = quantity

        if not any(receipts.values()):
            raise ValidationError("At least one line must receive a positive quantity")

        # Step 2: post stock and advance line progress
        received_units = 0
        for line in lines.values():
            quantity = receipts.get(line.id, 0)
            if quantity == 0:
                continue
            apply_delta(
                line.product_id, warehouse.id, quantity,
                StockMovement.MovementType.PURCHASE_RECEIPT,
                reference_type='purchase_order',
                reference_id=order.id,
                notes=f"Received on {order.po_number}",
                user=user,
            )
            line.quantity_received += quantity
            line.save(update_fields=['quantity_received'])
            received_units += quantity

        # Step 3: close the order once every line is complete
        if all(line.quantity_received >= line.quantity for line in lines.values()):
            order.status = PurchaseOrder.Status.RECEIVED
            order.received_date = timezone.now()
            order.save(update_fields=['status', 'received_date', 'updated_at'])
            transaction.on_commit(lambda: _queue_received_notice(order.id))

    logger.info(
        f"Received {received_units} units on {order.po_number} into {warehouse.code} "
        f"(status: {order.status})"
    )
    return order


def _queue_received_notice(po_id: int) -> None:
    try:
        from .tasks import send_purchase_order_received_notice
        send_purchase_order_received_notice.delay(po_id)
        logger.info(f"Triggered received notice task for purchase order {po_id}")
    except Exception as e:
        # Don't fail the receipt if task queuing fails
        logger.error(f"Failed to queue received notice task: {e}")


def purchase_order_stats(vendor_id: Optional[int] = None) -> Dict:
    queryset = PurchaseOrder.objects.all()
    if vendor_id:
        queryset = queryset.filter(vendor_id=vendor_id)

    stats = queryset.aggregate(
        total_orders=Count('id'),
        pending_orders=Count('id', filter=Q(status__in=PurchaseOrder.PENDING_STATUSES)),
        received_orders=Count('id', filter=Q(status=PurchaseOrder.Status.RECEIVED)),
        total_value=Sum('total_amount', filter=~Q(status=PurchaseOrder.Status.CANCELLED)),
    )
    stats['total_value'] = str((stats['total_value'] or Decimal('0')).quantize(CENT))
    return stats
