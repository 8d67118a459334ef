"""
Tests for purchase orders and goods receipt.

Test Cases:
1. Creation: server-computed totals, inactive products rejected
2. Status transitions and draft-only editing
3. Receiving: partial and full receipts, movement ledger, rollback on bad lines
4. API: envelopes and role gates
5. Concurrent receipts against the same line
"""
import threading
from decimal import Decimal
from unittest.mock import patch

from django.db import connection
from django.test import TestCase, TransactionTestCase
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User
from core.exceptions import NotFoundError, ValidationError
from inventory.models import InventoryItem, StockMovement
from inventory.tests import InventoryFixturesMixin
from purchasing import services
from purchasing.models import PurchaseOrder, PurchaseOrderItem, Vendor
from purchasing.tasks import send_purchase_order_received_notice


class PurchasingFixturesMixin(InventoryFixturesMixin):

    def create_vendor_and_order(self, quantities=(10, 4)):
        self.create_catalog()
        self.vendor = Vendor.objects.create(name='Acme Supply', email='orders@acme.test')
        items = [
            {'product_id': self.product1.id, 'quantity': quantities[0],
             'unit_price': Decimal('2.50'), 'tax_rate': Decimal('8.00')},
            {'product_id': self.product2.id, 'quantity': quantities[1],
             'unit_price': Decimal('1.25')},
        ]
        self.order = services.create_purchase_order(self.vendor.id, items)
        self.line1 = self.order.items.get(product=self.product1)
        self.line2 = self.order.items.get(product=self.product2)

    def send_order(self):
        return services.transition_purchase_order(self.order.id, PurchaseOrder.Status.SENT)


class PurchaseOrderLifecycleTestCase(PurchasingFixturesMixin, TestCase):
    """Test cases for creation, editing and status transitions."""

    def setUp(self):
        self.create_vendor_and_order()

    def test_totals_are_computed_from_lines(self):
        """
        Given: 10 x 2.50 at 8% tax and 4 x 1.25 untaxed
        When: The order is created
        Then: Line and header totals are computed server-side
        """
        self.assertEqual(self.order.po_number, 'PO-0001')
        self.assertEqual(self.order.status, PurchaseOrder.Status.DRAFT)
        self.assertEqual(self.line1.amount, Decimal('25.00'))
        self.assertEqual(self.line1.tax_amount, Decimal('2.00'))
        self.assertEqual(self.line2.amount, Decimal('5.00'))
        self.assertEqual(self.order.subtotal, Decimal('30.00'))
        self.assertEqual(self.order.tax_amount, Decimal('2.00'))
        self.assertEqual(self.order.total_amount, Decimal('32.00'))

    def test_inactive_product_is_rejected(self):
        self.product2.is_active = False
        self.product2.save()

        with self.assertRaises(ValidationError):
            services.create_purchase_order(
                self.vendor.id, [{'product_id': self.product2.id, 'quantity': 1, 'unit_price': '1.00'}]
            )

    def test_forward_transitions(self):
        self.send_order()
        order = services.transition_purchase_order(self.order.id, PurchaseOrder.Status.CONFIRMED)
        self.assertEqual(order.status, PurchaseOrder.Status.CONFIRMED)

        with self.assertRaises(ValidationError):
            services.transition_purchase_order(self.order.id, PurchaseOrder.Status.SENT)
        with self.assertRaises(ValidationError):
            services.transition_purchase_order(self.order.id, PurchaseOrder.Status.RECEIVED)

    def test_only_drafts_can_be_edited_or_deleted(self):
        services.update_purchase_order(
            self.order.id,
            items=[{'product_id': self.product1.id, 'quantity': 2, 'unit_price': '3.00'}]
        )
        self.order.refresh_from_db()
        self.assertEqual(self.order.items.count(), 1)
        self.assertEqual(self.order.total_amount, Decimal('6.00'))

        self.send_order()
        with self.assertRaises(ValidationError):
            services.update_purchase_order(self.order.id, notes='late change')
        with self.assertRaises(ValidationError):
            services.delete_purchase_order(self.order.id)

    def test_cancel_refused_after_receipt(self):
        """
        Given: A sent order with one unit received
        When: Cancelling
        Then: ValidationError; the order stays sent
        """
        self.send_order()
        services.receive_purchase_order(
            self.order.id, self.warehouse_a.id,
            [{'item_id': self.line1.id, 'quantity_received': 1}]
        )

        with self.assertRaises(ValidationError):
            services.transition_purchase_order(self.order.id, PurchaseOrder.Status.CANCELLED)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, PurchaseOrder.Status.SENT)

    def test_stats(self):
        self.send_order()
        stats = services.purchase_order_stats()

        self.assertEqual(stats['total_orders'], 1)
        self.assertEqual(stats['pending_orders'], 1)
        self.assertEqual(stats['received_orders'], 0)
        self.assertEqual(stats['total_value'], '32.00')


class ReceivePurchaseOrderTestCase(PurchasingFixturesMixin, TestCase):
    """Test cases for receive_purchase_order."""

    def setUp(self):
        self.create_vendor_and_order()
        self.send_order()

    def test_partial_receipt_keeps_status_and_posts_movements(self):
        """
        Given: A sent order for 10 + 4 units
        When: 6 of the first line are received
        Then: Inventory and ledger gain 6; the order stays sent
        """
        order = services.receive_purchase_order(
            self.order.id, self.warehouse_a.id,
            [{'item_id': self.line1.id, 'quantity_received': 6},
             {'item_id': self.line2.id, 'quantity_received': 0}]
        )

        self.assertEqual(order.status, PurchaseOrder.Status.SENT)
        self.line1.refresh_from_db()
        self.assertEqual(self.line1.quantity_received, 6)
        self.assertEqual(self.line1.remaining_quantity, 4)
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 6)
        self.assertFalse(InventoryItem.objects.filter(product=self.product2).exists())

        movement = StockMovement.objects.get()
        self.assertEqual(movement.movement_type, StockMovement.MovementType.PURCHASE_RECEIPT)
        self.assertEqual(movement.reference_type, 'purchase_order')
        self.assertEqual(movement.reference_id, self.order.id)
        self.assert_ledger_consistent(self.product1, self.warehouse_a)

    def test_full_receipt_closes_order_and_queues_notice(self):
        """
        Given: Two receipts that together cover every line
        When: The second receipt commits
        Then: Status is received, received_date is set and the notice task is queued
        """
        services.receive_purchase_order(
            self.order.id, self.warehouse_a.id,
            [{'item_id': self.line1.id, 'quantity_received': 6}]
        )

        with patch.object(send_purchase_order_received_notice, 'delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                order = services.receive_purchase_order(
                    self.order.id, self.warehouse_a.id,
                    [{'item_id': self.line1.id, 'quantity_received': 4},
                     {'item_id': self.line2.id, 'quantity_received': 4}]
                )

        self.assertEqual(order.status, PurchaseOrder.Status.RECEIVED)
        self.assertIsNotNone(order.received_date)
        self.assertTrue(order.is_fully_received)
        delay.assert_called_once_with(self.order.id)
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 10)
        self.assertEqual(self.record(self.product2, self.warehouse_a).quantity_on_hand, 4)
        self.assertEqual(StockMovement.objects.count(), 3)

    def test_over_receipt_rolls_back_every_line(self):
        """
        Given: A valid first line and an over-receiving second line
        When: Receiving both in one request
        Then: ValidationError; no line, record or movement changes
        """
        with self.assertRaises(ValidationError) as ctx:
            services.receive_purchase_order(
                self.order.id, self.warehouse_a.id,
                [{'item_id': self.line1.id, 'quantity_received': 5},
                 {'item_id': self.line2.id, 'quantity_received': 5}]
            )

        self.assertEqual(ctx.exception.errors['ordered'], 4)
        self.assertEqual(ctx.exception.errors['requested'], 5)
        self.assertEqual(
            list(PurchaseOrderItem.objects.values_list('quantity_received', flat=True)), [0, 0]
        )
        self.assertFalse(InventoryItem.objects.exists())
        self.assertFalse(StockMovement.objects.exists())

    def test_wrong_status_is_rejected(self):
        draft = services.create_purchase_order(
            self.vendor.id, [{'product_id': self.product1.id, 'quantity': 1, 'unit_price': '1.00'}]
        )
        line = draft.items.get()

        with self.assertRaises(ValidationError):
            services.receive_purchase_order(
                draft.id, self.warehouse_a.id, [{'item_id': line.id, 'quantity_received': 1}]
            )

    def test_foreign_and_duplicate_items_are_rejected(self):
        other = services.create_purchase_order(
            self.vendor.id, [{'product_id': self.product1.id, 'quantity': 1, 'unit_price': '1.00'}]
        )
        foreign_line = other.items.get()

        with self.assertRaises(ValidationError):
            services.receive_purchase_order(
                self.order.id, self.warehouse_a.id,
                [{'item_id': foreign_line.id, 'quantity_received': 1}]
            )
        with self.assertRaises(ValidationError):
            services.receive_purchase_order(
                self.order.id, self.warehouse_a.id,
                [{'item_id': self.line1.id, 'quantity_received': 1},
                 {'item_id': self.line1.id, 'quantity_received': 1}]
            )

    def test_all_zero_receipt_is_rejected(self):
        with self.assertRaises(ValidationError):
            services.receive_purchase_order(
                self.order.id, self.warehouse_a.id,
                [{'item_id': self.line1.id, 'quantity_received': 0}]
            )

    def test_inactive_or_unknown_warehouse(self):
        """
        Given: A sent order and a deactivated warehouse
        When: Receiving into it, or into an unknown warehouse
        Then: Rejected inside the receipt transaction; nothing is received
        """
        self.warehouse_b.is_active = False
        self.warehouse_b.save()

        with self.assertRaises(ValidationError):
            services.receive_purchase_order(
                self.order.id, self.warehouse_b.id,
                [{'item_id': self.line1.id, 'quantity_received': 1}]
            )
        with self.assertRaises(NotFoundError):
            services.receive_purchase_order(
                self.order.id, 9999, [{'item_id': self.line1.id, 'quantity_received': 1}]
            )

        self.line1.refresh_from_db()
        self.assertEqual(self.line1.quantity_received, 0)
        self.assertFalse(InventoryItem.objects.exists())
        self.assertFalse(StockMovement.objects.exists())

    def test_received_notice_task(self):
        result = send_purchase_order_received_notice(self.order.id)
        self.assertEqual(result['status'], 'skipped')

        services.receive_purchase_order(
            self.order.id, self.warehouse_a.id,
            [{'item_id': self.line1.id, 'quantity_received': 10},
             {'item_id': self.line2.id, 'quantity_received': 4}]
        )
        result = send_purchase_order_received_notice(self.order.id)
        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['po_id'], self.order.id)

        result = send_purchase_order_received_notice(9999)
        self.assertEqual(result['status'], 'error')


class PurchasingAPITestCase(PurchasingFixturesMixin, APITestCase):
    """API envelopes and role gates."""

    def setUp(self):
        self.create_vendor_and_order()
        self.staff = User.objects.create_user('staff', password='pw', role=User.Role.STAFF)
        self.manager = User.objects.create_user('manager', password='pw', role=User.Role.MANAGER)

    def test_create_and_list(self):
        self.client.force_authenticate(self.staff)

        response = self.client.post('/api/purchase-orders/', {
            'vendor_id': self.vendor.id,
            'items': [{'product_id': self.product1.id, 'quantity': 3, 'unit_price': '2.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['total_amount'], '6.00')
        self.assertEqual(response.data['data']['created_by']['id'], self.staff.id)

        response = self.client.get('/api/purchase-orders/', {'vendor_id': self.vendor.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_send_and_receive_endpoints(self):
        self.client.force_authenticate(self.staff)

        response = self.client.post(f'/api/purchase-orders/{self.order.id}/send/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'sent')

        response = self.client.post(f'/api/purchase-orders/{self.order.id}/receive/', {
            'warehouse_id': self.warehouse_a.id,
            'received_items': [{'item_id': self.line1.id, 'quantity_received': 10}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['items'][0]['quantity_received'], 10)

    def test_over_receipt_returns_400_envelope(self):
        self.client.force_authenticate(self.staff)
        self.send_order()

        response = self.client.post(f'/api/purchase-orders/{self.order.id}/receive/', {
            'warehouse_id': self.warehouse_a.id,
            'received_items': [{'item_id': self.line2.id, 'quantity_received': 99}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['errors']['already_received'], 0)

    def test_delete_requires_manager(self):
        self.client.force_authenticate(self.staff)
        response = self.client.delete(f'/api/purchase-orders/{self.order.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        response = self.client.delete(f'/api/purchase-orders/{self.order.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(PurchaseOrder.objects.filter(id=self.order.id).exists())

    def test_vendor_delete_deactivates(self):
        self.client.force_authenticate(self.manager)

        response = self.client.delete(f'/api/vendors/{self.vendor.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.vendor.refresh_from_db()
        self.assertFalse(self.vendor.is_active)


class ConcurrentReceiveTestCase(PurchasingFixturesMixin, TransactionTestCase):
    """
    Concurrent receipts against the same line.
    Runs on row locks (PostgreSQL) or BEGIN IMMEDIATE (SQLite).
    """

    def test_concurrent_receipts_cannot_exceed_ordered(self):
        """
        Given: A line ordered for 10
        When: Two receipts of 7 run concurrently
        Then: One succeeds, one is rejected; 7 received and 7 on hand
        """
        self.create_vendor_and_order(quantities=(10, 4))
        self.send_order()
        results = []
        lock = threading.Lock()

        def receive():
            try:
                services.receive_purchase_order(
                    self.order.id, self.warehouse_a.id,
                    [{'item_id': self.line1.id, 'quantity_received': 7}]
                )
                outcome = 'received'
            except ValidationError:
                outcome = 'rejected'
            finally:
                connection.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=receive) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(results), ['received', 'rejected'])
        self.line1.refresh_from_db()
        self.assertEqual(self.line1.quantity_received, 7)
        self.assertEqual(self.record(self.product1, self.warehouse_a).quantity_on_hand, 7)
        self.assert_ledger_consistent(self.product1, self.warehouse_a)
