"""
Celery tasks for purchasing.

Tasks:
    - send_purchase_order_received_notice: Notification after a PO is fully received
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(ConnectionError,),
    retry_backoff=True
)
def send_purchase_order_received_notice(self, po_id: int):
    """
    Async task queued on commit when every line of a purchase order is received.

    Args:
        po_id: ID of the received purchase order

    Returns:
        Dict with notice details
    """
    from purchasing.models import PurchaseOrder

    try:
        order = PurchaseOrder.objects.select_related('vendor').prefetch_related(
            'items__product'
        ).get(id=po_id)
    except PurchaseOrder.DoesNotExist:
        logger.error(f"Purchase order {po_id} not found for received notice")
        return {'status': 'error', 'message': f'Purchase order {po_id} not found'}

    if order.status != PurchaseOrder.Status.RECEIVED:
        logger.warning(
            f"Purchase order {order.po_number} is not received (status: {order.status}), "
            "skipping notice"
        )
        return {
            'status': 'skipped',
            'message': f'Purchase order {po_id} is not received'
        }

    items_summary = [
        f"  - {item.quantity_received}x {item.product.sku} {item.product.name} @ {item.unit_price}"
        for item in order.items.all()
    ]

    notice = f"""
    ===============================================
    PURCHASE ORDER RECEIVED - {order.po_number}
    ===============================================
    Vendor: {order.vendor.name}
    Total: {order.total_amount} {order.currency}

    Items:
    {chr(10).join(items_summary)}

    Received: {order.received_date.strftime('%Y-%m-%d %H:%M:%S')}
    ===============================================
    """

    logger.info(notice)

    return {
        'status': 'success',
        'po_id': order.id,
        'message': f'Received notice sent for {order.po_number}'
    }
