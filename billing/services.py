"""
Billing Service Layer - invoice totals, payment status and invoice lifecycle.

compute_totals() is shared with purchasing so invoices and purchase orders
round identically: every line amount and line tax is quantized to cents
(ROUND_HALF_UP) before summing.
"""
import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from core.numbering import next_number
from .models import Client, Invoice, InvoiceItem, Payment

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0.00')
# An invoice counts as paid when the shortfall is under half a cent
PAID_TOLERANCE = Decimal('0.005')
DEFAULT_PAYMENT_TERMS_DAYS = 30


def _decimal(value, field: str, idx: int) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Item {idx}: invalid {field} {value!r}")


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(items: Iterable[Dict]) -> Dict:
    """
    Compute line and document totals.

    Args:
        items: Dicts with quantity, unit_price and optional tax_rate (percent)

    Returns:
        {'subtotal', 'tax_amount', 'total_amount', 'lines': [{'amount', 'tax_amount'}]}
    """
    subtotal = ZERO
    tax_total = ZERO
    lines = []

    for idx, item in enumerate(items):
        quantity = _decimal(item.get('quantity'), 'quantity', idx)
        unit_price = _decimal(item.get('unit_price'), 'unit_price', idx)
        tax_rate = _decimal(item.get('tax_rate') or 0, 'tax_rate', idx)

        if quantity <= 0:
            raise ValidationError(f"Item {idx}: quantity must be greater than zero")
        if unit_price < 0:
            raise ValidationError(f"Item {idx}: unit_price cannot be negative")
        if not ZERO <= tax_rate <= 100:
            raise ValidationError(f"Item {idx}: tax_rate must be between 0 and 100")

        line_amount = _cents(quantity * unit_price)
        line_tax = _cents(line_amount * tax_rate / 100)
        subtotal += line_amount
        tax_total += line_tax
        lines.append({'amount': line_amount, 'tax_amount': line_tax})

    return {
        'subtotal': subtotal,
        'tax_amount': tax_total,
        'total_amount': subtotal + tax_total,
        'lines': lines,
    }


def recompute_status(invoice: Invoice, payments: Iterable[Payment]) -> str:
    """
    Status implied by the payments: paid when they cover total_amount
    (within half a cent), partial when they cover part of it, otherwise the
    current status. Cancelled invoices stay cancelled.
    """
    if invoice.status == Invoice.Status.CANCELLED:
        return invoice.status

    total_paid = sum((payment.amount for payment in payments), ZERO)
    if total_paid <= 0:
        return invoice.status
    if total_paid >= invoice.total_amount - PAID_TOLERANCE:
        return Invoice.Status.PAID
    return Invoice.Status.PARTIAL


# =============================================================================
# Invoice lifecycle
# =============================================================================

def generate_invoice_number(on_date=None) -> str:
    """INV-YYMM-NNNN, numbered per calendar month."""
    on_date = on_date or timezone.localdate()
    return next_number(Invoice, 'invoice_number', f"INV-{on_date:%y%m}-")


def _get_active_client(client_id: int) -> Client:
    try:
        client = Client.objects.get(id=client_id)
    except Client.DoesNotExist:
        raise NotFoundError(f"Client {client_id} not found")
    if not client.is_active:
        raise ValidationError(f"Client {client.name} is inactive")
    return client


def _lock_invoice(invoice_id: int) -> Invoice:
    try:
        return Invoice.objects.select_for_update().get(id=invoice_id)
    except Invoice.DoesNotExist:
        raise NotFoundError(f"Invoice {invoice_id} not found")


def _write_items(invoice: Invoice, items: List[Dict], totals: Dict) -> None:
    InvoiceItem.objects.bulk_create([
        InvoiceItem(
            invoice=invoice,
            product_id=item.get('product_id'),
            description=item['description'],
            quantity=item['quantity'],
            unit_price=item['unit_price'],
            tax_rate=item.get('tax_rate') or ZERO,
            amount=line['amount'],
            tax_amount=line['tax_amount'],
        )
        for item, line in zip(items, totals['lines'])
    ])


def _apply_totals(invoice: Invoice, totals: Dict) -> None:
    invoice.amount = totals['subtotal']
    invoice.tax_amount = totals['tax_amount']
    invoice.total_amount = totals['total_amount']


def create_invoice(client_id: int, items: List[Dict], *, issue_date=None, due_date=None,
                   currency: str = 'USD', notes: str = '', department: str = '',
                   status: str = Invoice.Status.DRAFT, user=None) -> Invoice:
    """Create an invoice with lines; totals are computed here, never taken from input."""
    if not items:
        raise ValidationError("Invoice must contain at least one item")
    if status not in (Invoice.Status.DRAFT, Invoice.Status.SENT):
        raise ValidationError("New invoices must be created as draft or sent")

    client = _get_active_client(client_id)
    issue_date = issue_date or timezone.localdate()
    due_date = due_date or issue_date + timedelta(days=DEFAULT_PAYMENT_TERMS_DAYS)
    if due_date < issue_date:
        raise ValidationError("Due date cannot be before the issue date")

    totals = compute_totals(items)

    with transaction.atomic():
        invoice = Invoice(
            invoice_number=generate_invoice_number(),
            client=client,
            issue_date=issue_date,
            due_date=due_date,
            currency=currency,
            status=status,
            notes=notes or '',
            department=department or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )
        _apply_totals(invoice, totals)
        invoice.save()
        _write_items(invoice, items, totals)

    logger.info(
        f"Created invoice {invoice.invoice_number} for {client.name}: "
        f"{len(items)} items, total {invoice.total_amount} {invoice.currency}"
    )
    return invoice


def update_invoice(invoice_id: int, *, client_id: Optional[int] = None, issue_date=None,
                   due_date=None, currency: Optional[str] = None, notes: Optional[str] = None,
                   department: Optional[str] = None, items: Optional[List[Dict]] = None) -> Invoice:
    """
    Edit an open invoice. Lines (and therefore totals) can only change while
    no payment has been recorded.
    """
    with transaction.atomic():
        invoice = _lock_invoice(invoice_id)
        if invoice.status in Invoice.CLOSED_STATUSES:
            raise ValidationError(f"Invoice {invoice.invoice_number} is {invoice.status} and cannot be edited")

        if client_id is not None:
            invoice.client = _get_active_client(client_id)
        if issue_date is not None:
            invoice.issue_date = issue_date
        if due_date is not None:
            invoice.due_date = due_date
        if invoice.due_date < invoice.issue_date:
            raise ValidationError("Due date cannot be before the issue date")
        if currency is not None:
            invoice.currency = currency
        if notes is not None:
            invoice.notes = notes
        if department is not None:
            invoice.department = department

        if items is not None:
            if not items:
                raise ValidationError("Invoice must contain at least one item")
            if invoice.payments.exists():
                raise ValidationError("Items cannot change once payments have been recorded")
            totals = compute_totals(items)
            _apply_totals(invoice, totals)
            invoice.items.all().delete()
            _write_items(invoice, items, totals)

        invoice.save()
    return invoice


def send_invoice(invoice_id: int) -> Invoice:
    with transaction.atomic():
        invoice = _lock_invoice(invoice_id)
        if invoice.status != Invoice.Status.DRAFT:
            raise ValidationError(f"Only draft invoices can be sent (current status: {invoice.status})")
        invoice.status = Invoice.Status.SENT
        invoice.save(update_fields=['status', 'updated_at'])

    logger.info(f"Invoice {invoice.invoice_number} sent")
    return invoice


def cancel_invoice(invoice_id: int) -> Invoice:
    with transaction.atomic():
        invoice = _lock_invoice(invoice_id)
        if invoice.status not in Invoice.CANCELLABLE_STATUSES:
            raise ValidationError(f"Invoice {invoice.invoice_number} cannot be cancelled from status '{invoice.status}'")
        invoice.status = Invoice.Status.CANCELLED
        invoice.save(update_fields=['status', 'updated_at'])

    logger.info(f"Invoice {invoice.invoice_number} cancelled")
    return invoice


def duplicate_invoice(invoice_id: int, user=None) -> Invoice:
    """Copy an invoice's lines into a new draft dated today with the same payment terms."""
    try:
        source = Invoice.objects.prefetch_related('items').get(id=invoice_id)
    except Invoice.DoesNotExist:
        raise NotFoundError(f"Invoice {invoice_id} not found")

    items = [
        {
            'product_id': item.product_id,
            'description': item.description,
            'quantity': item.quantity,
            'unit_price': item.unit_price,
            'tax_rate': item.tax_rate,
        }
        for item in source.items.all()
    ]
    issue_date = timezone.localdate()
    duplicate = create_invoice(
        source.client_id,
        items,
        issue_date=issue_date,
        due_date=issue_date + (source.due_date - source.issue_date),
        currency=source.currency,
        notes=source.notes,
        department=source.department,
        user=user,
    )
    logger.info(f"Invoice {source.invoice_number} duplicated as {duplicate.invoice_number}")
    return duplicate


def delete_invoice(invoice_id: int) -> None:
    with transaction.atomic():
        invoice = _lock_invoice(invoice_id)
        if invoice.payments.exists():
            raise ValidationError(f"Invoice {invoice.invoice_number} has payments and cannot be deleted")
        invoice.delete()

    logger.info(f"Invoice {invoice.invoice_number} deleted")


# =============================================================================
# Payments
# =============================================================================

def record_payment(invoice_id: int, amount, *, payment_date=None,
                   payment_method: str = Payment.Method.BANK_TRANSFER,
                   reference_number: str = '', notes: str = '', user=None) -> Payment:
    """
    Record a payment and move the invoice to partial/paid.

    Payments are accepted on any unpaid, uncancelled invoice (drafts
    included); recompute_status derives the new status from the payments
    total, so an overpayment simply marks the invoice paid.

    The invoice row is locked so concurrent payments see each other's totals.

    Raises:
        ValidationError: non-numeric or non-positive amount, cancelled or
            already paid invoice
    """
    try:
        value = Decimal(str(amount))
        if not value.is_finite():
            raise InvalidOperation
        amount = _cents(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid payment amount {amount!r}", errors={'amount': str(amount)})
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")

    with transaction.atomic():
        invoice = _lock_invoice(invoice_id)
        if invoice.status == Invoice.Status.CANCELLED:
            raise ValidationError(f"Cannot record a payment on cancelled invoice {invoice.invoice_number}")
        if invoice.status == Invoice.Status.PAID:
            raise ValidationError(f"Invoice {invoice.invoice_number} is already paid")

        payment = Payment.objects.create(
            invoice=invoice,
            amount=amount,
            payment_date=payment_date or timezone.localdate(),
            payment_method=payment_method,
            reference_number=reference_number or '',
            notes=notes or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )

        previous_status = invoice.status
        invoice.status = recompute_status(invoice, invoice.payments.all())
        invoice.save(update_fields=['status', 'updated_at'])

    logger.info(
        f"Payment of {amount} recorded on {invoice.invoice_number}: "
        f"{previous_status} -> {invoice.status}"
    )
    return payment


# =============================================================================
# Reporting
# =============================================================================

def overdue_invoices():
    return Invoice.objects.select_related('client').exclude(
        status__in=Invoice.CLOSED_STATUSES
    ).filter(due_date__lt=timezone.localdate())


def invoice_stats() -> Dict:
    totals = Invoice.objects.exclude(status=Invoice.Status.CANCELLED).aggregate(
        total_amount=Sum('total_amount'),
    )
    total_paid = _cents(Payment.objects.exclude(
        invoice__status=Invoice.Status.CANCELLED
    ).aggregate(total=Sum('amount'))['total'] or ZERO)
    total_amount = _cents(totals['total_amount'] or ZERO)

    by_status = {value: 0 for value in Invoice.Status.values}
    for row in Invoice.objects.values('status').annotate(count=Count('id')):
        by_status[row['status']] = row['count']

    return {
        'total_invoices': sum(by_status.values()),
        'by_status': by_status,
        'overdue_invoices': overdue_invoices().count(),
        'total_amount': str(total_amount),
        'total_paid': str(total_paid),
        'outstanding_amount': str(total_amount - total_paid),
    }


def client_invoice_summary(client: Client) -> Dict:
    summary = client.invoices.exclude(status=Invoice.Status.CANCELLED).aggregate(
        invoice_count=Count('id'),
        total_billed=Sum('total_amount'),
        open_invoices=Count('id', filter=Q(status__in=[Invoice.Status.SENT, Invoice.Status.PARTIAL])),
    )
    summary['total_billed'] = str(_cents(summary['total_billed'] or ZERO))
    return summary
