"""
Tests for invoice totals, payment status and the invoice lifecycle.

Test Cases:
1. compute_totals: line rounding, tax, input validation
2. recompute_status: paid, partial, unchanged, tolerance
3. record_payment: exact, partial and cumulative payments; rejected payments
4. Lifecycle: numbering, send, cancel, duplicate, delete
5. API: envelopes, payments endpoint, role gates
"""
from datetime import timedelta
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User
from billing import services
from billing.models import Client, Invoice, Payment
from core.exceptions import ValidationError


class ComputeTotalsTestCase(SimpleTestCase):
    """Test cases for compute_totals (no database)."""

    def test_single_taxed_line(self):
        totals = services.compute_totals([{'quantity': 2, 'unit_price': 10, 'tax_rate': 10}])

        self.assertEqual(totals['subtotal'], Decimal('20.00'))
        self.assertEqual(totals['tax_amount'], Decimal('2.00'))
        self.assertEqual(totals['total_amount'], Decimal('22.00'))
        self.assertEqual(totals['lines'], [{'amount': Decimal('20.00'), 'tax_amount': Decimal('2.00')}])

    def test_lines_are_rounded_before_summing(self):
        """
        Given: Two lines whose tax is 0.825 each
        When: Totals are computed
        Then: Each line tax rounds half up to 0.83 before summing
        """
        items = [
            {'quantity': '1', 'unit_price': '8.25', 'tax_rate': '10'},
            {'quantity': '1', 'unit_price': '8.25', 'tax_rate': '10'},
        ]
        totals = services.compute_totals(items)

        self.assertEqual(totals['subtotal'], Decimal('16.50'))
        self.assertEqual(totals['tax_amount'], Decimal('1.66'))
        self.assertEqual(totals['total_amount'], Decimal('18.16'))

    def test_fractional_quantity(self):
        totals = services.compute_totals([{'quantity': '1.5', 'unit_price': '3.33'}])
        self.assertEqual(totals['subtotal'], Decimal('5.00'))
        self.assertEqual(totals['tax_amount'], Decimal('0.00'))

    def test_invalid_lines_are_rejected(self):
        for item in (
            {'quantity': 0, 'unit_price': 1},
            {'quantity': 1, 'unit_price': -1},
            {'quantity': 1, 'unit_price': 1, 'tax_rate': 101},
            {'quantity': 'abc', 'unit_price': 1},
        ):
            with self.assertRaises(ValidationError):
                services.compute_totals([item])


class RecomputeStatusTestCase(SimpleTestCase):
    """Test cases for recompute_status (unsaved instances)."""

    def invoice(self, total, invoice_status=Invoice.Status.SENT):
        return Invoice(total_amount=Decimal(total), status=invoice_status)

    def payments(self, *amounts):
        return [Payment(amount=Decimal(amount)) for amount in amounts]

    def test_full_payment_is_paid(self):
        self.assertEqual(
            services.recompute_status(self.invoice('100.00'), self.payments('60.00', '40.00')),
            Invoice.Status.PAID
        )

    def test_part_payment_is_partial(self):
        self.assertEqual(
            services.recompute_status(self.invoice('100.00'), self.payments('99.99')),
            Invoice.Status.PARTIAL
        )

    def test_no_payments_leaves_status(self):
        self.assertEqual(
            services.recompute_status(self.invoice('100.00'), []),
            Invoice.Status.SENT
        )

    def test_half_cent_tolerance(self):
        self.assertEqual(
            services.recompute_status(self.invoice('100.00'), self.payments('99.995')),
            Invoice.Status.PAID
        )

    def test_cancelled_stays_cancelled(self):
        invoice = self.invoice('10.00', Invoice.Status.CANCELLED)
        self.assertEqual(services.recompute_status(invoice, self.payments('10.00')), Invoice.Status.CANCELLED)


class BillingFixturesMixin:

    def create_invoice(self, invoice_status=Invoice.Status.SENT, **kwargs):
        self.client_record = getattr(self, 'client_record', None) or Client.objects.create(
            name='Globex', email='ap@globex.test'
        )
        items = kwargs.pop('items', [
            {'description': 'Consulting', 'quantity': 2, 'unit_price': '50.00', 'tax_rate': '10'},
        ])
        return services.create_invoice(self.client_record.id, items, status=invoice_status, **kwargs)


class RecordPaymentTestCase(BillingFixturesMixin, TestCase):
    """Test cases for record_payment."""

    def setUp(self):
        self.invoice = self.create_invoice()

    def test_exact_payment_marks_paid(self):
        services.record_payment(self.invoice.id, '110.00')

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PAID)
        self.assertEqual(self.invoice.balance_due, Decimal('0.00'))

    def test_cumulative_payments(self):
        """
        Given: An invoice totalling 110.00
        When: 40.00 then 70.00 are paid
        Then: partial after the first, paid after the second
        """
        services.record_payment(self.invoice.id, '40.00')
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PARTIAL)
        self.assertEqual(self.invoice.balance_due, Decimal('70.00'))

        services.record_payment(self.invoice.id, Decimal('70.00'), payment_method=Payment.Method.CASH)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.Status.PAID)
        self.assertEqual(self.invoice.total_paid, Decimal('110.00'))

    def test_rejected_payments_leave_no_trace(self):
        with self.assertRaises(ValidationError):
            services.record_payment(self.invoice.id, '0')
        with self.assertRaises(ValidationError):
            services.record_payment(self.invoice.id, 'ten dollars')
        with self.assertRaises(ValidationError):
            services.record_payment(self.invoice.id, None)
        with self.assertRaises(ValidationError):
            services.record_payment(self.invoice.id, 'NaN')

        cancelled = self.create_invoice(Invoice.Status.DRAFT)
        services.cancel_invoice(cancelled.id)
        with self.assertRaises(ValidationError):
            services.record_payment(cancelled.id, '1.00')

        self.assertFalse(Payment.objects.exists())

    def test_full_payment_on_draft_marks_paid(self):
        """
        Given: A draft invoice totalling 110.00
        When: 110.00 is paid
        Then: The payment is accepted and the invoice is paid
        """
        draft = self.create_invoice(Invoice.Status.DRAFT)

        services.record_payment(draft.id, '110.00')

        draft.refresh_from_db()
        self.assertEqual(draft.status, Invoice.Status.PAID)

    def test_part_payment_on_draft_marks_partial(self):
        draft = self.create_invoice(Invoice.Status.DRAFT)

        services.record_payment(draft.id, '10.00')

        draft.refresh_from_db()
        self.assertEqual(draft.status, Invoice.Status.PARTIAL)

    def test_overpayment_marks_paid(self):
        """
        Given: An invoice totalling 110.00
        When: 125.00 is paid
        Then: The payment is stored as given and the invoice is paid
        """
        payment = services.record_payment(self.invoice.id, '125.00')

        self.invoice.refresh_from_db()
        self.assertEqual(payment.amount, Decimal('125.00'))
        self.assertEqual(self.invoice.status, Invoice.Status.PAID)
        self.assertEqual(self.invoice.balance_due, Decimal('-15.00'))

    def test_paid_invoice_rejects_further_payments(self):
        services.record_payment(self.invoice.id, '110.00')
        with self.assertRaises(ValidationError):
            services.record_payment(self.invoice.id, '1.00')


class InvoiceLifecycleTestCase(BillingFixturesMixin, TestCase):
    """Test cases for numbering, send, cancel, duplicate and delete."""

    def test_numbers_are_sequential_per_month(self):
        first = self.create_invoice(Invoice.Status.DRAFT)
        second = self.create_invoice(Invoice.Status.DRAFT)

        prefix = f"INV-{timezone.localdate():%y%m}-"
        self.assertEqual(first.invoice_number, f"{prefix}0001")
        self.assertEqual(second.invoice_number, f"{prefix}0002")

    def test_default_due_date(self):
        invoice = self.create_invoice(Invoice.Status.DRAFT)
        self.assertEqual(invoice.due_date - invoice.issue_date, timedelta(days=30))

    def test_send_and_cancel(self):
        invoice = self.create_invoice(Invoice.Status.DRAFT)
        self.assertEqual(services.send_invoice(invoice.id).status, Invoice.Status.SENT)
        with self.assertRaises(ValidationError):
            services.send_invoice(invoice.id)

        services.record_payment(invoice.id, '10.00')
        with self.assertRaises(ValidationError):
            services.cancel_invoice(invoice.id)

    def test_items_locked_once_paid(self):
        invoice = self.create_invoice()
        services.record_payment(invoice.id, '10.00')

        with self.assertRaises(ValidationError):
            services.update_invoice(
                invoice.id, items=[{'description': 'Other', 'quantity': 1, 'unit_price': '1.00'}]
            )
        updated = services.update_invoice(invoice.id, notes='Net 30')
        self.assertEqual(updated.notes, 'Net 30')

    def test_duplicate_creates_draft_with_same_terms(self):
        issue_date = timezone.localdate() - timedelta(days=60)
        source = self.create_invoice(issue_date=issue_date, due_date=issue_date + timedelta(days=15))

        duplicate = services.duplicate_invoice(source.id)

        self.assertEqual(duplicate.status, Invoice.Status.DRAFT)
        self.assertEqual(duplicate.issue_date, timezone.localdate())
        self.assertEqual(duplicate.due_date - duplicate.issue_date, timedelta(days=15))
        self.assertEqual(duplicate.total_amount, source.total_amount)
        self.assertEqual(duplicate.items.count(), 1)

    def test_delete_refused_with_payments(self):
        invoice = self.create_invoice()
        services.record_payment(invoice.id, '10.00')

        with self.assertRaises(ValidationError):
            services.delete_invoice(invoice.id)

        draft = self.create_invoice(Invoice.Status.DRAFT)
        services.delete_invoice(draft.id)
        self.assertFalse(Invoice.objects.filter(id=draft.id).exists())

    def test_overdue_and_stats(self):
        past = timezone.localdate() - timedelta(days=40)
        overdue = self.create_invoice(issue_date=past, due_date=past + timedelta(days=10))
        self.create_invoice(Invoice.Status.DRAFT)

        self.assertTrue(overdue.is_overdue)
        self.assertEqual(list(services.overdue_invoices()), [overdue])

        stats = services.invoice_stats()
        self.assertEqual(stats['total_invoices'], 2)
        self.assertEqual(stats['by_status']['sent'], 1)
        self.assertEqual(stats['overdue_invoices'], 1)
        self.assertEqual(stats['total_amount'], '220.00')


class BillingAPITestCase(BillingFixturesMixin, APITestCase):
    """API envelopes, payments endpoint and role gates."""

    def setUp(self):
        self.staff = User.objects.create_user('staff', password='pw', role=User.Role.STAFF)
        self.manager = User.objects.create_user('manager', password='pw', role=User.Role.MANAGER)
        self.client_record = Client.objects.create(name='Globex', email='ap@globex.test')

    def test_create_invoice_computes_totals(self):
        self.client.force_authenticate(self.staff)

        response = self.client.post('/api/invoices/', {
            'client_id': self.client_record.id,
            'items': [{'description': 'Widgets', 'quantity': '2', 'unit_price': '10.00', 'tax_rate': '10'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        data = response.data['data']
        self.assertEqual(data['status'], 'draft')
        self.assertEqual(data['amount'], '20.00')
        self.assertEqual(data['tax_amount'], '2.00')
        self.assertEqual(data['total_amount'], '22.00')
        self.assertEqual(data['balance_due'], '22.00')

    def test_payments_endpoint(self):
        self.client.force_authenticate(self.staff)
        invoice = self.create_invoice()

        response = self.client.post(
            f'/api/invoices/{invoice.id}/payments/', {'amount': '10.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['invoice_status'], 'partial')
        self.assertEqual(response.data['data']['balance_due'], '100.00')

        response = self.client.get(f'/api/invoices/{invoice.id}/payments/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_overpayment_is_accepted(self):
        self.client.force_authenticate(self.staff)
        invoice = self.create_invoice()

        response = self.client.post(
            f'/api/invoices/{invoice.id}/payments/', {'amount': '500.00'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['invoice_status'], 'paid')
        self.assertEqual(response.data['data']['balance_due'], '-390.00')

    def test_payment_on_cancelled_invoice_returns_400_envelope(self):
        self.client.force_authenticate(self.staff)
        invoice = self.create_invoice(Invoice.Status.DRAFT)
        services.cancel_invoice(invoice.id)

        response = self.client.post(
            f'/api/invoices/{invoice.id}/payments/', {'amount': '5.00'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertIn('cancelled', response.data['message'])

    def test_list_filters(self):
        self.client.force_authenticate(self.staff)
        self.create_invoice()
        self.create_invoice(Invoice.Status.DRAFT)

        response = self.client.get('/api/invoices/', {'status': 'draft'})
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.get(f'/api/clients/{self.client_record.id}/invoices/')
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_delete_requires_manager(self):
        invoice = self.create_invoice(Invoice.Status.DRAFT)

        self.client.force_authenticate(self.staff)
        response = self.client.delete(f'/api/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        response = self.client.delete(f'/api/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_client_detail_includes_summary(self):
        self.client.force_authenticate(self.staff)
        self.create_invoice()

        response = self.client.get(f'/api/clients/{self.client_record.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['data']['invoice_summary']
        self.assertEqual(summary['invoice_count'], 1)
        self.assertEqual(summary['open_invoices'], 1)
        self.assertEqual(summary['total_billed'], '110.00')
