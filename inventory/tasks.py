"""
Celery tasks for inventory monitoring.

Tasks:
    - generate_low_stock_report: Periodic (beat) reorder report per warehouse
"""
import logging
from collections import defaultdict

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def generate_low_stock_report(warehouse_id=None):
    """
    List active products whose available quantity is at or below their
    reorder level, grouped by warehouse, with the suggested reorder quantity.

    Scheduled daily via CELERY_BEAT_SCHEDULE.

    Returns:
        Dict with the number of low-stock items and the per-warehouse lines
    """
    from inventory.services import low_stock_items

    by_warehouse = defaultdict(list)
    for record in low_stock_items(warehouse_id):
        product = record.product
        shortfall = product.reorder_level - record.quantity_available
        by_warehouse[record.warehouse.code].append({
            'product_id': product.id,
            'sku': product.sku,
            'name': product.name,
            'quantity_available': record.quantity_available,
            'reorder_level': product.reorder_level,
            'suggested_reorder_quantity': max(product.reorder_quantity, shortfall),
        })

    total = sum(len(lines) for lines in by_warehouse.values())
    if not total:
        logger.info("[CELERY] Low stock report: all products above reorder level")
        return {'low_stock_items': 0, 'warehouses': {}}

    report_lines = []
    for code, lines in sorted(by_warehouse.items()):
        report_lines.append(f"  {code}:")
        report_lines.extend(
            f"    - {line['sku']} {line['name']}: {line['quantity_available']} available "
            f"(reorder at {line['reorder_level']}, order {line['suggested_reorder_quantity']})"
            for line in lines
        )

    report = f"""
    ===============================================
    LOW STOCK REPORT - {total} items
    ===============================================
{chr(10).join(report_lines)}
    ===============================================
    """
    logger.warning(report)

    return {'low_stock_items': total, 'warehouses': dict(by_warehouse)}
