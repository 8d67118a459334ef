"""
Billing API Views.

Implements:
- CRUD for clients (DELETE deactivates), per-client invoice listing
- Invoices: list/create, detail/update/delete, stats, overdue listing
- Invoice actions: send, cancel, duplicate
- GET/POST /invoices/{id}/payments/ - Payment history and recording
"""
import logging

from django.db.models import Q
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.views import APIView

from accounts.permissions import DeleteRequiresAdminOrManager
from core.exceptions import NotFoundError
from core.responses import EnvelopeMixin, success_response
from . import services
from .models import Client, Invoice, Payment
from .serializers import (
    ClientDetailSerializer,
    ClientSerializer,
    InvoiceCreateSerializer,
    InvoiceListSerializer,
    InvoiceSerializer,
    InvoiceUpdateSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
)

logger = logging.getLogger(__name__)


def _invoice_queryset():
    return Invoice.objects.select_related('client', 'created_by').prefetch_related(
        'items', 'payments__created_by'
    )


def _invoice_data(invoice_id):
    return InvoiceSerializer(_invoice_queryset().get(id=invoice_id)).data


# =============================================================================
# Client Views
# =============================================================================

class ClientListCreateView(EnvelopeMixin, generics.ListCreateAPIView):
    """
    GET: List clients
    POST: Create a client

    Query Parameters:
        - search: Matches name, company or email
        - is_active: true/false (defaults to active clients only)
    """
    serializer_class = ClientSerializer

    def get_queryset(self):
        queryset = Client.objects.all()

        is_active = self.request.query_params.get('is_active')
        if is_active is None:
            queryset = queryset.filter(is_active=True)
        else:
            queryset = queryset.filter(is_active=is_active.lower() in ('1', 'true', 'yes'))

        keyword = self.request.query_params.get('search', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(name__icontains=keyword) |
                Q(company__icontains=keyword) |
                Q(email__icontains=keyword)
            )
        return queryset.order_by('name')

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class ClientDetailView(EnvelopeMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Client.objects.all()
    permission_classes = [DeleteRequiresAdminOrManager]

    def get_serializer_class(self):
        if self.request.method == 'GET':
            return ClientDetailSerializer
        return ClientSerializer

    def destroy(self, request, *args, **kwargs):
        client = self.get_object()
        client.is_active = False
        client.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Client {client.id} deactivated by {request.user}")
        return success_response(message='Client deactivated')


class ClientInvoiceListView(generics.ListAPIView):
    """GET: Invoices for one client, newest first."""
    serializer_class = InvoiceListSerializer

    def get_queryset(self):
        if not Client.objects.filter(id=self.kwargs['pk']).exists():
            raise NotFoundError(f"Client {self.kwargs['pk']} not found")
        return Invoice.objects.select_related('client').filter(client_id=self.kwargs['pk'])


# =============================================================================
# Invoice Views
# =============================================================================

class InvoiceListCreateView(generics.ListCreateAPIView):
    """
    GET: List invoices
    POST: Create an invoice (draft by default)

    Query Parameters (GET):
        - status, client_id
        - search: Invoice number or client name
        - start_date / end_date: issue_date range (YYYY-MM-DD)
        - overdue: true to list only overdue invoices
    """

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return InvoiceCreateSerializer
        return InvoiceListSerializer

    def get_queryset(self):
        queryset = Invoice.objects.select_related('client')
        params = self.request.query_params

        status_filter = params.get('status')
        if status_filter in Invoice.Status.values:
            queryset = queryset.filter(status=status_filter)

        client_id = params.get('client_id')
        if client_id:
            queryset = queryset.filter(client_id=client_id)

        keyword = params.get('search', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(invoice_number__icontains=keyword) | Q(client__name__icontains=keyword)
            )

        start_date = params.get('start_date')
        if start_date:
            queryset = queryset.filter(issue_date__gte=start_date)
        end_date = params.get('end_date')
        if end_date:
            queryset = queryset.filter(issue_date__lte=end_date)

        if params.get('overdue', '').lower() in ('1', 'true', 'yes'):
            queryset = queryset.exclude(status__in=Invoice.CLOSED_STATUSES).filter(
                due_date__lt=timezone.localdate()
            )

        return queryset.order_by('-issue_date', '-created_at')

    def create(self, request, *args, **kwargs):
        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        invoice = services.create_invoice(
            data['client_id'],
            data['items'],
            issue_date=data.get('issue_date'),
            due_date=data.get('due_date'),
            currency=data['currency'],
            notes=data['notes'],
            department=data['department'],
            status=data['status'],
            user=request.user,
        )
        return success_response(
            _invoice_data(invoice.id),
            message='Invoice created',
            status_code=status.HTTP_201_CREATED
        )


class InvoiceDetailView(EnvelopeMixin, generics.RetrieveAPIView):
    """
    GET: Retrieve an invoice with lines and payments
    PUT/PATCH: Edit an open invoice
    DELETE: Delete an invoice without payments (admin/manager)
    """
    serializer_class = InvoiceSerializer
    permission_classes = [DeleteRequiresAdminOrManager]

    def get_queryset(self):
        return _invoice_queryset()

    def put(self, request, pk):
        serializer = InvoiceUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        services.update_invoice(
            pk,
            client_id=data.get('client_id'),
            issue_date=data.get('issue_date'),
            due_date=data.get('due_date'),
            currency=data.get('currency'),
            notes=data.get('notes'),
            department=data.get('department'),
            items=data.get('items'),
        )
        return success_response(_invoice_data(pk), message='Invoice updated')

    def patch(self, request, pk):
        return self.put(request, pk)

    def delete(self, request, pk):
        services.delete_invoice(pk)
        return success_response(message='Invoice deleted')


class InvoiceStatsView(APIView):
    def get(self, request):
        return success_response(services.invoice_stats())


class OverdueInvoiceListView(generics.ListAPIView):
    """GET: Open invoices past their due date, oldest due first."""
    serializer_class = InvoiceListSerializer

    def get_queryset(self):
        return services.overdue_invoices().order_by('due_date')


class InvoiceSendView(APIView):
    def post(self, request, pk):
        services.send_invoice(pk)
        return success_response(_invoice_data(pk), message='Invoice sent')


class InvoiceCancelView(APIView):
    def post(self, request, pk):
        services.cancel_invoice(pk)
        return success_response(_invoice_data(pk), message='Invoice cancelled')


class InvoiceDuplicateView(APIView):
    """POST: Copy an invoice into a new draft."""

    def post(self, request, pk):
        duplicate = services.duplicate_invoice(pk, user=request.user)
        return success_response(
            _invoice_data(duplicate.id),
            message=f'Invoice duplicated as {duplicate.invoice_number}',
            status_code=status.HTTP_201_CREATED
        )


class InvoicePaymentListCreateView(generics.ListCreateAPIView):
    """
    GET: Payments recorded on an invoice
    POST: Record a payment

    Request Body (POST):
    {
        "amount": "50.00",
        "payment_date": "2024-10-15",
        "payment_method": "bank_transfer",
        "reference_number": "TRX-1234"
    }

    Returns:
        - 201: Payment plus the invoice's new status
        - 400: Validation error (cancelled or paid invoice, invalid amount)
        - 404: Invoice not found
    """

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return PaymentCreateSerializer
        return PaymentSerializer

    def get_queryset(self):
        if not Invoice.objects.filter(id=self.kwargs['pk']).exists():
            raise NotFoundError(f"Invoice {self.kwargs['pk']} not found")
        return Payment.objects.select_related('created_by').filter(invoice_id=self.kwargs['pk'])

    def create(self, request, *args, **kwargs):
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = services.record_payment(
            self.kwargs['pk'],
            data['amount'],
            payment_date=data.get('payment_date'),
            payment_method=data['payment_method'],
            reference_number=data['reference_number'],
            notes=data['notes'],
            user=request.user,
        )
        invoice = payment.invoice
        return success_response(
            {
                'payment': PaymentSerializer(payment).data,
                'invoice_status': invoice.status,
                'balance_due': str(invoice.balance_due),
            },
            message='Payment recorded',
            status_code=status.HTTP_201_CREATED
        )
