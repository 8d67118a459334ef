"""
Tests for inventory stock mutations.

Test Cases:
1. Record store: lazy creation, ledger consistency, non-negative quantities
2. Stock adjustments: before/after quantities, rejected removals
3. Stock transfers: all-or-nothing processing, cancellation
4. API: envelopes, authentication and role gates
5. Reconciliation command
"""
import threading
from io import StringIO

from django.core.management import call_command
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User
from core.exceptions import ConflictError, InsufficientStockError, ValidationError
from inventory import services
from inventory.models import (
    Category,
    InventoryItem,
    Product,
    StockAdjustment,
    StockMovement,
    StockTransfer,
    Warehouse,
)

MovementType = StockMovement.MovementType


class InventoryFixturesMixin:
    """Shared catalog: two products, two warehouses."""

    def create_catalog(self):
        self.category = Category.objects.create(name='Hardware')
        self.product1 = Product.objects.create(
            sku='HW-001', name='Hex Bolt', category=self.category,
            cost_price='0.50', unit_price='1.00', reorder_level=10, reorder_quantity=100
        )
        self.product2 = Product.objects.create(
            sku='HW-002', name='Wing Nut', category=self.category,
            cost_price='0.25', unit_price='0.60', reorder_level=5, reorder_quantity=50
        )
        self.warehouse_a = Warehouse.objects.create(code='WH-A', name='Warehouse A')
        self.warehouse_b = Warehouse.objects.create(code='WH-B', name='Warehouse B')

    def stock(self, product, warehouse, quantity):
        return services.apply_delta(product.id, warehouse.id, quantity, MovementType.ADJUSTMENT)

    def record(self, product, warehouse):
        return InventoryItem.objects.get(product=product, warehouse=warehouse)

    def assert_ledger_consistent(self, product, warehouse):
        record = self.record(product, warehouse)
        ledger = services.ledger_balance(product.id, warehouse.id)
        self.assertEqual(record.quantity_on_hand, ledger['on_hand'])
        self.assertEqual(record.quantity_reserved, ledger['reserved'])
        self.assertEqual(record.quantity_available, record.quantity_on_hand - record.quantity_reserved)
        self.assertGreaterEqual(record.quantity_available, 0)


class RecordStoreTestCase(InventoryFixturesMixin, TestCase):
    """Test cases for get_or_create_record / apply_delta."""

    def setUp(self):
        self.create_catalog()

    def test_get_or_create_record_creates_zeroed_record(self):
        """
        Given: No inventory record for the pair
        When: get_or_create_record is called twice
        Then: One zeroed record exists
        """
        first = services.get_or_create_record(self.product1.id, self.warehouse_a.id)
        second = services.get_or_create_record(self.product1.id, self.warehouse_a.id)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(first.quantity_on_hand, 0)
        self.assertEqual(first.quantity_reserved, 0)
        self.assertEqual(first.quantity_available, 0)
        self.assertEqual(InventoryItem.objects.count(), 1)

    def test_apply_delta_writes_record_and_movement(self):
        record = services.apply_delta(
            self.product1.id, self.warehouse_a.id, 40, MovementType.PURCHASE_RECEIPT,
            reference_type='purchase_order', reference_id=7, notes='PO-0007'
        )

        self.assertEqual(record.quantity_on_hand, 40)
        self.assertEqual(record.quantity_available, 40)
        self.assertIsNotNone(record.last_stock_date)

        movement = StockMovement.objects.get()
        self.assertEqual(movement.quantity_delta, 40)
        self.assertEqual(movement.balance_after, 40)
        self.assertEqual(movement.reference_type, 'purchase_order')
        self.assertEqual(movement.reference_id, 7)

    def test_sequence_of_deltas_matches_ledger(self):
        """
        Given: A mix of receipts, adjustments, transfers and reservations
        When: Each is applied in turn
        Then: The record always equals the ledger sums
        """
        steps = [
            (25, MovementType.PURCHASE_RECEIPT),
            (-5, MovementType.ADJUSTMENT),
            (8, MovementType.RESERVATION),
            (-10, MovementType.TRANSFER_OUT),
            (-3, MovementType.RELEASE),
            (12, MovementType.TRANSFER_IN),
        ]
        for delta, movement_type in steps:
            services.apply_delta(self.product1.id, self.warehouse_a.id, delta, movement_type)
            self.assert_ledger_consistent(self.product1, self.warehouse_a)

        record = self.record(self.product1, self.warehouse_a)
        self.assertEqual(record.quantity_on_hand, 22)
        self.assertEqual(record.quantity_reserved, 5)
        self.assertEqual(record.quantity_available, 17)

    def test_delta_below_available_is_rejected(self):
        """
        Given: 10 on hand, 6 reserved
        When: Removing 5 (only 4 available)
        Then: InsufficientStockError, record and ledger unchanged
        """
        self.stock(self.product1, self.warehouse_a, 10)
        services.reserve_stock(self.product1.id, self.warehouse_a.id, 6)
        movements_before = StockMovement.objects.count()

        with self.assertRaises(InsufficientStockError) as ctx:
            services.apply_delta(self.product1.id, self.warehouse_a.id, -5, MovementType.ADJUSTMENT)

        self.assertEqual(ctx.exception.requested, 5)
        self.assertEqual(ctx.exception.available, 4)
        self.assertEqual(StockMovement.objects.count(), movements_before)
        record = self.record(self.product1, self.warehouse_a)
        self.assertEqual(record.quantity_on_hand, 10)
        self.assertEqual(record.quantity_available, 4)

    def test_reservation_cannot_exceed_available(self):
        self.stock(self.product1, self.warehouse_a, 3)

        with self.assertRaises(InsufficientStockError):
            services.reserve_stock(self.product1.id, self.warehouse_a.id, 4)

        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_reserved, 0)

    def test_release_cannot_exceed_reserved(self):
        self.stock(self.product1, self.warehouse_a, 10)
        services.reserve_stock(self.product1.id, self.warehouse_a.id, 2)

        with self.assertRaises(InsufficientStockError) as ctx:
            services.release_stock(self.product1.id, self.warehouse_a.id, 3)
        self.assertEqual(ctx.exception.available, 2)

    def test_zero_and_mis_signed_deltas_are_rejected(self):
        with self.assertRaises(ValidationError):
            services.apply_delta(self.product1.id, self.warehouse_a.id, 0, MovementType.ADJUSTMENT)
        with self.assertRaises(ValidationError):
            services.apply_delta(self.product1.id, self.warehouse_a.id, -1, MovementType.PURCHASE_RECEIPT)
        with self.assertRaises(ValidationError):
            services.apply_delta(self.product1.id, self.warehouse_a.id, 1, 'shrinkage')
        self.assertFalse(StockMovement.objects.exists())

    def test_movements_are_append_only(self):
        self.stock(self.product1, self.warehouse_a, 5)
        movement = StockMovement.objects.get()

        movement.notes = 'edited'
        with self.assertRaises(ValueError):
            movement.save()
        with self.assertRaises(ValueError):
            movement.delete()


class StockAdjustmentTestCase(InventoryFixturesMixin, TestCase):

    def setUp(self):
        self.create_catalog()
        self.manager = User.objects.create_user('manager', password='pw', role=User.Role.MANAGER)

    def test_add_adjustment_records_before_and_after(self):
        self.stock(self.product1, self.warehouse_a, 5)

        adjustment = services.adjust_stock(
            self.warehouse_a.id, self.product1.id, 'add', 7,
            reason='Cycle count', notes='Found behind rack', user=self.manager
        )

        self.assertEqual(adjustment.adjustment_number, 'ADJ-0001')
        self.assertEqual(adjustment.quantity_before, 5)
        self.assertEqual(adjustment.quantity_after, 12)
        self.assertEqual(adjustment.created_by, self.manager)

        movement = StockMovement.objects.filter(reference_type='stock_adjustment').get()
        self.assertEqual(movement.reference_id, adjustment.id)
        self.assertEqual(movement.quantity_delta, 7)
        self.assertEqual(movement.notes, 'Cycle count: Found behind rack')
        self.assert_ledger_consistent(self.product1, self.warehouse_a)

    def test_remove_below_zero_reports_on_hand(self):
        """
        Given: 3 units on hand
        When: Removing 5
        Then: InsufficientStockError carries quantity_on_hand=3, nothing is written
        """
        self.stock(self.product1, self.warehouse_a, 3)

        with self.assertRaises(InsufficientStockError) as ctx:
            services.adjust_stock(self.warehouse_a.id, self.product1.id, 'remove', 5, reason='Damaged')

        self.assertEqual(ctx.exception.errors['quantity_on_hand'], 3)
        self.assertFalse(StockAdjustment.objects.exists())
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 3)

    def test_reason_is_mandatory(self):
        with self.assertRaises(ValidationError):
            services.adjust_stock(self.warehouse_a.id, self.product1.id, 'add', 1, reason='  ')

    def test_inactive_warehouse_is_rejected(self):
        self.warehouse_b.is_active = False
        self.warehouse_b.save()

        with self.assertRaises(ValidationError):
            services.adjust_stock(self.warehouse_b.id, self.product1.id, 'add', 1, reason='Count')

    def test_numbers_are_sequential(self):
        first = services.adjust_stock(self.warehouse_a.id, self.product1.id, 'add', 1, reason='Count')
        second = services.adjust_stock(self.warehouse_a.id, self.product1.id, 'remove', 1, reason='Count')
        self.assertEqual(first.adjustment_number, 'ADJ-0001')
        self.assertEqual(second.adjustment_number, 'ADJ-0002')


class StockTransferTestCase(InventoryFixturesMixin, TestCase):

    def setUp(self):
        self.create_catalog()
        self.stock(self.product1, self.warehouse_a, 50)
        self.stock(self.product2, self.warehouse_a, 4)

    def _transfer(self, items, **kwargs):
        return services.create_transfer(self.warehouse_a.id, self.warehouse_b.id, items, **kwargs)

    def test_create_transfer_does_not_move_stock(self):
        transfer = self._transfer([{'product_id': self.product1.id, 'quantity': 10}])

        self.assertEqual(transfer.transfer_number, 'ST-0001')
        self.assertEqual(transfer.status, StockTransfer.Status.DRAFT)
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 50)
        self.assertFalse(InventoryItem.objects.filter(warehouse=self.warehouse_b).exists())

    def test_same_source_and_destination_conflicts(self):
        with self.assertRaises(ConflictError):
            services.create_transfer(
                self.warehouse_a.id, self.warehouse_a.id,
                [{'product_id': self.product1.id, 'quantity': 1}]
            )
        self.assertFalse(StockTransfer.objects.exists())

    def test_duplicate_products_rejected(self):
        with self.assertRaises(ValidationError):
            self._transfer([
                {'product_id': self.product1.id, 'quantity': 1},
                {'product_id': self.product1.id, 'quantity': 2},
            ])

    def test_process_moves_stock_between_warehouses(self):
        """
        Given: A pending transfer of 10 bolts and 4 nuts
        When: It is processed
        Then: Source loses, destination gains, status completed, ledger consistent
        """
        transfer = self._transfer(
            [
                {'product_id': self.product1.id, 'quantity': 10},
                {'product_id': self.product2.id, 'quantity': 4},
            ],
            status=StockTransfer.Status.PENDING,
        )

        transfer = services.process_transfer(transfer.id)

        self.assertEqual(transfer.status, StockTransfer.Status.COMPLETED)
        self.assertIsNotNone(transfer.completed_at)
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 40)
        self.assertEqual(self.record(self.product1, self.warehouse_b).quantity_on_hand, 10)
        self.assertEqual(self.record(self.product2, self.warehouse_a).quantity_on_hand, 0)
        self.assertEqual(self.record(self.product2, self.warehouse_b).quantity_on_hand, 4)
        self.assertEqual(
            StockMovement.objects.filter(reference_type='stock_transfer', reference_id=transfer.id).count(),
            4
        )
        for product in (self.product1, self.product2):
            for warehouse in (self.warehouse_a, self.warehouse_b):
                self.assert_ledger_consistent(product, warehouse)

    def test_insufficient_line_rejects_whole_transfer(self):
        """
        Given: Enough bolts but only 4 nuts at the source
        When: Processing a transfer of 10 bolts and 5 nuts
        Then: InsufficientStockError; neither warehouse changes; still draft
        """
        transfer = self._transfer([
            {'product_id': self.product1.id, 'quantity': 10},
            {'product_id': self.product2.id, 'quantity': 5},
        ])
        movements_before = StockMovement.objects.count()

        with self.assertRaises(InsufficientStockError) as ctx:
            services.process_transfer(transfer.id)

        self.assertEqual(ctx.exception.product_id, self.product2.id)
        self.assertEqual(ctx.exception.available, 4)
        self.assertEqual(StockMovement.objects.count(), movements_before)
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 50)
        self.assertEqual(self.record(self.product2, self.warehouse_a).quantity_on_hand, 4)
        self.assertFalse(
            InventoryItem.objects.filter(warehouse=self.warehouse_b, quantity_on_hand__gt=0).exists()
        )
        transfer.refresh_from_db()
        self.assertEqual(transfer.status, StockTransfer.Status.DRAFT)

    def test_reserved_stock_is_not_transferable(self):
        services.reserve_stock(self.product1.id, self.warehouse_a.id, 45)
        transfer = self._transfer([{'product_id': self.product1.id, 'quantity': 10}])

        with self.assertRaises(InsufficientStockError):
            services.process_transfer(transfer.id)

    def test_cancel_never_mutates_inventory(self):
        transfer = self._transfer([{'product_id': self.product1.id, 'quantity': 10}])
        movements_before = StockMovement.objects.count()

        transfer = services.cancel_transfer(transfer.id)

        self.assertEqual(transfer.status, StockTransfer.Status.CANCELLED)
        self.assertEqual(StockMovement.objects.count(), movements_before)
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 50)

    def test_closed_transfers_cannot_be_processed_or_cancelled(self):
        transfer = self._transfer([{'product_id': self.product1.id, 'quantity': 1}])
        services.cancel_transfer(transfer.id)

        with self.assertRaises(ValidationError):
            services.process_transfer(transfer.id)
        with self.assertRaises(ValidationError):
            services.cancel_transfer(transfer.id)

        completed = self._transfer([{'product_id': self.product1.id, 'quantity': 1}])
        services.process_transfer(completed.id)
        with self.assertRaises(ValidationError):
            services.cancel_transfer(completed.id)
        with self.assertRaises(ValidationError):
            services.update_transfer(completed.id, notes='late edit')

    def test_update_replaces_lines(self):
        transfer = self._transfer([{'product_id': self.product1.id, 'quantity': 1}])

        services.update_transfer(
            transfer.id,
            items=[{'product_id': self.product2.id, 'quantity': 2}],
            notes='Swap to nuts'
        )

        transfer.refresh_from_db()
        self.assertEqual(transfer.notes, 'Swap to nuts')
        self.assertEqual(
            list(transfer.items.values_list('product_id', 'quantity')),
            [(self.product2.id, 2)]
        )

    def test_notes_edit_skips_warehouse_checks(self):
        """
        Given: An open transfer whose destination was deactivated afterwards
        When: Only the notes are edited
        Then: The edit succeeds; moving it to another inactive warehouse still fails
        """
        transfer = self._transfer([{'product_id': self.product1.id, 'quantity': 1}])
        self.warehouse_b.is_active = False
        self.warehouse_b.save()

        services.update_transfer(transfer.id, notes='Awaiting truck')
        transfer.refresh_from_db()
        self.assertEqual(transfer.notes, 'Awaiting truck')

        with self.assertRaises(ValidationError):
            services.update_transfer(transfer.id, to_warehouse_id=self.warehouse_b.id)
        with self.assertRaises(ConflictError):
            services.update_transfer(transfer.id, to_warehouse_id=self.warehouse_a.id)


class InventoryReportTestCase(InventoryFixturesMixin, TestCase):

    def setUp(self):
        self.create_catalog()
        self.stock(self.product1, self.warehouse_a, 100)
        self.stock(self.product2, self.warehouse_a, 3)

    def test_low_stock_items(self):
        low = list(services.low_stock_items())
        self.assertEqual([r.product_id for r in low], [self.product2.id])

    def test_valuation_uses_cost_price(self):
        valuation = services.inventory_valuation(self.warehouse_a.id)
        # 100 * 0.50 + 3 * 0.25
        self.assertEqual(valuation['total_value'], '50.75')
        self.assertEqual(len(valuation['items']), 2)

    def test_stats_value_is_in_cents(self):
        stats = services.inventory_stats()

        self.assertEqual(stats['total_products'], 2)
        self.assertEqual(stats['total_warehouses'], 2)
        self.assertEqual(stats['low_stock_items'], 1)
        self.assertEqual(stats['total_inventory_value'], '50.75')

    def test_stats_value_whole_amount_keeps_cents(self):
        self.stock(self.product2, self.warehouse_a, 1)

        # 100 * 0.50 + 4 * 0.25
        self.assertEqual(services.inventory_stats()['total_inventory_value'], '51.00')

    def test_low_stock_report_task(self):
        from inventory.tasks import generate_low_stock_report

        result = generate_low_stock_report()

        self.assertEqual(result['low_stock_items'], 1)
        line = result['warehouses']['WH-A'][0]
        self.assertEqual(line['sku'], 'HW-002')
        self.assertEqual(line['suggested_reorder_quantity'], 50)


class ReconcileInventoryCommandTestCase(InventoryFixturesMixin, TestCase):

    def setUp(self):
        self.create_catalog()
        self.stock(self.product1, self.warehouse_a, 20)

    def test_reports_and_fixes_drift(self):
        InventoryItem.objects.filter(product=self.product1).update(quantity_on_hand=25, quantity_available=25)

        out = StringIO()
        call_command('reconcile_inventory', stdout=out)
        self.assertIn('MISMATCH WH-A HW-001', out.getvalue())
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 25)

        call_command('reconcile_inventory', '--fix', stdout=StringIO())
        self.assert_ledger_consistent(self.product1, self.warehouse_a)
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 20)


@override_settings(RATE_LIMIT_ENABLED=False)
class InventoryAPITestCase(InventoryFixturesMixin, APITestCase):
    """API envelopes, authentication and role gates."""

    def setUp(self):
        self.create_catalog()
        self.staff = User.objects.create_user('staff', password='pw', role=User.Role.STAFF)
        self.manager = User.objects.create_user('manager', password='pw', role=User.Role.MANAGER)
        self.stock(self.product1, self.warehouse_a, 10)

    def test_requires_authentication(self):
        response = self.client.get('/api/inventory/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])

    def test_jwt_bearer_token_is_accepted(self):
        token = self.client.post(
            '/api/auth/token/', {'username': 'staff', 'password': 'pw'}, format='json'
        ).data['access']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get('/api/inventory/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_inventory_list_envelope(self):
        self.client.force_authenticate(self.staff)

        response = self.client.get('/api/inventory/', {'limit': 5})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(
            response.data['pagination'],
            {'total': 1, 'page': 1, 'limit': 5, 'totalPages': 1}
        )
        self.assertEqual(response.data['data'][0]['quantity_on_hand'], 10)

    def test_staff_cannot_adjust_stock(self):
        self.client.force_authenticate(self.staff)

        response = self.client.post('/api/stock-adjustments/', {
            'warehouse_id': self.warehouse_a.id, 'product_id': self.product1.id,
            'adjustment_type': 'add', 'quantity': 1, 'reason': 'Count',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.data['success'])
        self.assertFalse(StockAdjustment.objects.exists())

    def test_manager_adjustment_and_rejection(self):
        self.client.force_authenticate(self.manager)

        response = self.client.post('/api/stock-adjustments/', {
            'warehouse_id': self.warehouse_a.id, 'product_id': self.product1.id,
            'adjustment_type': 'remove', 'quantity': 4, 'reason': 'Damaged',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['quantity_after'], 6)

        response = self.client.post('/api/stock-adjustments/', {
            'warehouse_id': self.warehouse_a.id, 'product_id': self.product1.id,
            'adjustment_type': 'remove', 'quantity': 9, 'reason': 'Damaged',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['errors']['quantity_on_hand'], 6)

    def test_request_validation_envelope(self):
        self.client.force_authenticate(self.manager)

        response = self.client.post('/api/stock-adjustments/', {'quantity': 0}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Validation errors')
        self.assertIn('reason', response.data['errors'])

    def test_transfer_endpoints(self):
        self.client.force_authenticate(self.staff)

        response = self.client.post('/api/stock-transfers/', {
            'from_warehouse_id': self.warehouse_a.id,
            'to_warehouse_id': self.warehouse_a.id,
            'items': [{'product_id': self.product1.id, 'quantity': 2}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post('/api/stock-transfers/', {
            'from_warehouse_id': self.warehouse_a.id,
            'to_warehouse_id': self.warehouse_b.id,
            'items': [{'product_id': self.product1.id, 'quantity': 2}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        transfer_id = response.data['data']['id']

        response = self.client.post(f'/api/stock-transfers/{transfer_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'completed')
        self.assertEqual(self.record(self.product1, self.warehouse_b).quantity_on_hand, 2)

    def test_reserve_endpoint_reports_shortage(self):
        self.client.force_authenticate(self.staff)

        response = self.client.post('/api/inventory/reserve/', {
            'product_id': self.product1.id, 'warehouse_id': self.warehouse_a.id, 'quantity': 11,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['errors']['available'], 10)

    def test_product_soft_delete_requires_manager(self):
        self.client.force_authenticate(self.staff)
        response = self.client.delete(f'/api/products/{self.product2.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        response = self.client.delete(f'/api/products/{self.product2.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.product2.refresh_from_db()
        self.assertFalse(self.product2.is_active)

    def test_product_lookup_and_autocomplete(self):
        self.client.force_authenticate(self.staff)

        response = self.client.get('/api/products/sku/hw-001/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['id'], self.product1.id)

        response = self.client.get('/api/products/autocomplete/', {'q': 'Wi'})
        self.assertEqual([p['sku'] for p in response.data['data']], ['HW-002'])

        response = self.client.get('/api/products/autocomplete/', {'q': 'W'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_record_is_404_envelope(self):
        self.client.force_authenticate(self.staff)

        response = self.client.get('/api/stock-transfers/9999/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['success'])


class ConcurrentTransferTestCase(InventoryFixturesMixin, TransactionTestCase):
    """
    Concurrent processing against the same source stock.
    Runs on row locks (PostgreSQL) or BEGIN IMMEDIATE (SQLite).
    """

    def test_concurrent_transfers_cannot_oversell_source(self):
        """
        Given: 10 units at the source and two transfers of 7 each
        When: Both are processed concurrently
        Then: Exactly one completes; on-hand never goes negative
        """
        self.create_catalog()
        self.stock(self.product1, self.warehouse_a, 10)
        transfers = [
            services.create_transfer(
                self.warehouse_a.id, self.warehouse_b.id,
                [{'product_id': self.product1.id, 'quantity': 7}]
            )
            for _ in range(2)
        ]
        results = []
        lock = threading.Lock()

        def process(transfer_id):
            try:
                services.process_transfer(transfer_id)
                outcome = 'completed'
            except InsufficientStockError:
                outcome = 'rejected'
            finally:
                connection.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=process, args=(t.id,)) for t in transfers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(results), ['completed', 'rejected'])
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 3)
        self.assert_ledger_consistent(self.product1, self.warehouse_a)
        self.assert_ledger_consistent(self.product1, self.warehouse_b)
