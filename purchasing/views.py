"""
Purchasing API Views.

Implements:
- CRUD for vendors (DELETE deactivates)
- Purchase orders: list/create, detail/update/delete, stats
- Status actions: send, confirm, cancel
- POST /purchase-orders/{id}/receive/ - Atomic goods receipt
"""
import logging

from django.db.models import Q
from rest_framework import generics, status
from rest_framework.views import APIView

from accounts.permissions import DeleteRequiresAdminOrManager
from core.responses import EnvelopeMixin, success_response
from . import services
from .models import PurchaseOrder, Vendor
from .serializers import (
    PurchaseOrderCreateSerializer,
    PurchaseOrderListSerializer,
    PurchaseOrderReceiveSerializer,
    PurchaseOrderSerializer,
    PurchaseOrderUpdateSerializer,
    VendorSerializer,
)

logger = logging.getLogger(__name__)


def _order_queryset():
    return PurchaseOrder.objects.select_related('vendor', 'created_by').prefetch_related(
        'items__product'
    )


def _order_data(po_id):
    return PurchaseOrderSerializer(_order_queryset().get(id=po_id)).data


# =============================================================================
# Vendor Views
# =============================================================================

class VendorListCreateView(EnvelopeMixin, generics.ListCreateAPIView):
    """
    GET: List vendors
    POST: Create a vendor

    Query Parameters:
        - search: Matches name, contact person or email
        - is_active: true/false (defaults to active vendors only)
    """
    serializer_class = VendorSerializer

    def get_queryset(self):
        queryset = Vendor.objects.all()

        is_active = self.request.query_params.get('is_active')
        if is_active is None:
            queryset = queryset.filter(is_active=True)
        else:
            queryset = queryset.filter(is_active=is_active.lower() in ('1', 'true', 'yes'))

        keyword = self.request.query_params.get('search', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(name__icontains=keyword) |
                Q(contact_person__icontains=keyword) |
                Q(email__icontains=keyword)
            )
        return queryset.order_by('name')

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class VendorDetailView(EnvelopeMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Vendor.objects.all()
    serializer_class = VendorSerializer
    permission_classes = [DeleteRequiresAdminOrManager]

    def destroy(self, request, *args, **kwargs):
        vendor = self.get_object()
        vendor.is_active = False
        vendor.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Vendor {vendor.id} deactivated by {request.user}")
        return success_response(message='Vendor deactivated')


# =============================================================================
# Purchase Order Views
# =============================================================================

class PurchaseOrderListCreateView(generics.ListCreateAPIView):
    """
    GET: List purchase orders
    POST: Create a draft purchase order

    Query Parameters (GET):
        - vendor_id, status
        - start_date / end_date: order_date range (YYYY-MM-DD)
        - search: PO number or vendor name
    """

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return PurchaseOrderCreateSerializer
        return PurchaseOrderListSerializer

    def get_queryset(self):
        queryset = _order_queryset()
        params = self.request.query_params

        vendor_id = params.get('vendor_id')
        if vendor_id:
            queryset = queryset.filter(vendor_id=vendor_id)

        status_filter = params.get('status')
        if status_filter in PurchaseOrder.Status.values:
            queryset = queryset.filter(status=status_filter)

        start_date = params.get('start_date')
        if start_date:
            queryset = queryset.filter(order_date__gte=start_date)
        end_date = params.get('end_date')
        if end_date:
            queryset = queryset.filter(order_date__lte=end_date)

        keyword = params.get('search', '').strip()
        if keyword:
            queryset = queryset.filter(Q(po_number__icontains=keyword) | Q(vendor__name__icontains=keyword))

        return queryset.order_by('-created_at')

    def create(self, request, *args, **kwargs):
        serializer = PurchaseOrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = services.create_purchase_order(
            data['vendor_id'],
            data['items'],
            order_date=data.get('order_date'),
            expected_date=data.get('expected_date'),
            currency=data['currency'],
            notes=data['notes'],
            user=request.user,
        )
        return success_response(
            _order_data(order.id),
            message='Purchase order created',
            status_code=status.HTTP_201_CREATED
        )


class PurchaseOrderDetailView(EnvelopeMixin, generics.RetrieveAPIView):
    """
    GET: Retrieve a purchase order with lines
    PUT/PATCH: Edit a draft purchase order
    DELETE: Delete a draft purchase order (admin/manager)
    """
    serializer_class = PurchaseOrderSerializer
    permission_classes = [DeleteRequiresAdminOrManager]

    def get_queryset(self):
        return _order_queryset()

    def put(self, request, pk):
        serializer = PurchaseOrderUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        services.update_purchase_order(
            pk,
            vendor_id=data.get('vendor_id'),
            order_date=data.get('order_date'),
            expected_date=data.get('expected_date'),
            currency=data.get('currency'),
            notes=data.get('notes'),
            items=data.get('items'),
        )
        return success_response(_order_data(pk), message='Purchase order updated')

    def patch(self, request, pk):
        return self.put(request, pk)

    def delete(self, request, pk):
        services.delete_purchase_order(pk)
        return success_response(message='Purchase order deleted')


class PurchaseOrderStatsView(APIView):
    """
    GET: Purchase order statistics.

    Query Parameters:
        - vendor_id: Restrict to one vendor (optional)
    """

    def get(self, request):
        return success_response(services.purchase_order_stats(request.query_params.get('vendor_id')))


class PurchaseOrderTransitionView(APIView):
    """POST: Move a purchase order to ``target_status`` (send, confirm, cancel)."""
    target_status = None

    def post(self, request, pk):
        services.transition_purchase_order(pk, self.target_status)
        return success_response(_order_data(pk), message=f'Purchase order {self.target_status}')


class PurchaseOrderReceiveView(APIView):
    """
    POST: Receive goods into a warehouse.

    Request Body:
    {
        "warehouse_id": 1,
        "received_items": [{"item_id": 10, "quantity_received": 5}]
    }

    Returns:
        - 200: Updated purchase order
        - 400: Validation error (nothing received)
        - 404: Purchase order or warehouse not found
    """

    def post(self, request, pk):
        serializer = PurchaseOrderReceiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.receive_purchase_order(
            pk,
            serializer.validated_data['warehouse_id'],
            serializer.validated_data['received_items'],
            user=request.user,
        )
        return success_response(_order_data(pk), message='Goods received')
