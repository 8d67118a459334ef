"""
Management command to check inventory records against the movement ledger.

For every (product, warehouse) record, quantity_on_hand must equal the sum of
on-hand movement deltas and quantity_reserved the sum of reservation/release
deltas.

Usage:
    python manage.py reconcile_inventory
    python manage.py reconcile_inventory --fix  # Rewrite mismatched records from the ledger
"""
import logging

from django.core.management.base import BaseCommand
from django.db import transaction

from inventory.models import InventoryItem
from inventory.services import ledger_balance

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Reconcile inventory records with the stock movement ledger'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Rewrite mismatched records from the ledger sums',
        )
        parser.add_argument(
            '--warehouse',
            type=int,
            help='Only reconcile records of this warehouse ID',
        )

    def handle(self, *args, **options):
        self.stdout.write('Starting inventory reconciliation...')

        records = InventoryItem.objects.select_related('product', 'warehouse').order_by('warehouse_id', 'product_id')
        if options['warehouse']:
            records = records.filter(warehouse_id=options['warehouse'])

        mismatches = 0
        fixed = 0
        for record_id in records.values_list('id', flat=True):
            with transaction.atomic():
                record = InventoryItem.objects.select_for_update().select_related(
                    'product', 'warehouse'
                ).get(id=record_id)
                ledger = ledger_balance(record.product_id, record.warehouse_id)

                if (
                    record.quantity_on_hand == ledger['on_hand']
                    and record.quantity_reserved == ledger['reserved']
                    and record.quantity_available == record.quantity_on_hand - record.quantity_reserved
                ):
                    continue

                mismatches += 1
                self.stdout.write(self.style.WARNING(
                    f"MISMATCH {record.warehouse.code} {record.product.sku} :: "
                    f"Record(H:{record.quantity_on_hand}, R:{record.quantity_reserved}, "
                    f"A:{record.quantity_available}) != "
                    f"Ledger(H:{ledger['on_hand']}, R:{ledger['reserved']})"
                ))

                if not options['fix']:
                    continue

                available = ledger['on_hand'] - ledger['reserved']
                if ledger['on_hand'] < 0 or ledger['reserved'] < 0 or available < 0:
                    self.stdout.write(self.style.ERROR(
                        f"  Ledger for {record.warehouse.code} {record.product.sku} is negative; "
                        f"needs a manual adjustment"
                    ))
                    continue

                record.quantity_on_hand = ledger['on_hand']
                record.quantity_reserved = ledger['reserved']
                record.quantity_available = available
                record.save(update_fields=[
                    'quantity_on_hand', 'quantity_reserved', 'quantity_available', 'updated_at'
                ])
                logger.warning(
                    f"Reconciled {record.product.sku} @ {record.warehouse.code} from ledger: "
                    f"on_hand={record.quantity_on_hand}, reserved={record.quantity_reserved}"
                )
                fixed += 1

        if mismatches == 0:
            self.stdout.write(self.style.SUCCESS('Reconciliation complete. All records match the ledger.'))
        else:
            self.stdout.write(self.style.SUCCESS(
                f'Reconciliation complete. {mismatches} mismatches found, {fixed} fixed.'
            ))
