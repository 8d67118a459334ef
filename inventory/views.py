"""
Inventory API Views with optimized queries.

Implements:
- CRUD operations for Category, Product, Warehouse (soft delete)
- Inventory listing, stats, low-stock and valuation reports
- Stock reservations, movements ledger, transfers and adjustments
- Product autocomplete with rate limiting

Mutations of stock levels are delegated to inventory.services; domain
errors propagate to core.exceptions.api_exception_handler.
"""
import logging

from django.db.models import F, Q
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.views import APIView

from accounts.permissions import DeleteRequiresAdminOrManager, IsAdminOrManager
from core.exceptions import ValidationError
from core.rate_limiting import rate_limit
from core.responses import EnvelopeMixin, success_response
from . import services
from .models import (
    Category,
    InventoryItem,
    Product,
    StockAdjustment,
    StockMovement,
    StockTransfer,
    Warehouse,
)
from .serializers import (
    CategorySerializer,
    InventoryItemSerializer,
    ProductMinimalSerializer,
    ProductSerializer,
    StockAdjustmentCreateSerializer,
    StockAdjustmentSerializer,
    StockMovementSerializer,
    StockReservationRequestSerializer,
    StockTransferCreateSerializer,
    StockTransferSerializer,
    StockTransferUpdateSerializer,
    WarehouseSerializer,
)

logger = logging.getLogger(__name__)


def _truthy(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes')


# =============================================================================
# Category Views
# =============================================================================

class CategoryListCreateView(EnvelopeMixin, generics.ListCreateAPIView):
    """
    GET: List all categories
    POST: Create a new category
    """
    queryset = Category.objects.all()
    serializer_class = CategorySerializer


class CategoryDetailView(EnvelopeMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a category
    PUT/PATCH: Update a category
    DELETE: Delete a category (admin/manager); its products become uncategorized
    """
    queryset = Category.objects.all()
    serializer_class = CategorySerializer
    permission_classes = [DeleteRequiresAdminOrManager]


# =============================================================================
# Product Views
# =============================================================================

class ProductListCreateView(EnvelopeMixin, generics.ListCreateAPIView):
    """
    GET: List products with category info
    POST: Create a new product

    Query Parameters:
        - search: Keyword matched against sku, name and description
        - category_id: Filter by category ID
        - is_active: true/false (defaults to active products only)
    """
    serializer_class = ProductSerializer

    def get_queryset(self):
        queryset = Product.objects.select_related('category')

        is_active = self.request.query_params.get('is_active')
        if is_active is None:
            queryset = queryset.filter(is_active=True)
        else:
            queryset = queryset.filter(is_active=_truthy(is_active))

        keyword = self.request.query_params.get('search', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(sku__icontains=keyword) |
                Q(name__icontains=keyword) |
                Q(description__icontains=keyword)
            )

        category_id = self.request.query_params.get('category_id')
        if category_id:
            queryset = queryset.filter(category_id=category_id)

        return queryset.order_by('name')

    def perform_create(self, serializer):
        product = serializer.save(created_by=self.request.user)
        logger.info(f"Product {product.sku} created by {self.request.user}")


class ProductDetailView(EnvelopeMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a product
    PUT/PATCH: Update a product
    DELETE: Deactivate a product (admin/manager); history is kept
    """
    serializer_class = ProductSerializer
    permission_classes = [DeleteRequiresAdminOrManager]

    def get_queryset(self):
        return Product.objects.select_related('category')

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        product.is_active = False
        product.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Product {product.sku} deactivated by {request.user}")
        return success_response(message='Product deactivated')


class ProductBySkuView(EnvelopeMixin, generics.RetrieveAPIView):
    serializer_class = ProductSerializer
    lookup_field = 'sku'

    def get_queryset(self):
        return Product.objects.select_related('category')

    def get_object(self):
        return get_object_or_404(self.get_queryset(), sku__iexact=self.kwargs['sku'])


class ProductAutocompleteView(APIView):
    """
    GET: Fast prefix-matching autocomplete on product name or SKU.

    Query Parameters:
        - q: Search query (minimum 2 characters)

    Returns top 10 matching products.
    Rate limited to 20 requests per minute.
    """

    @rate_limit(max_requests=20, window_seconds=60)
    def get(self, request):
        query = request.query_params.get('q', '').strip()
        if len(query) < 2:
            raise ValidationError("Query must be at least 2 characters")

        products = Product.objects.filter(
            Q(name__istartswith=query) | Q(sku__istartswith=query),
            is_active=True
        ).order_by('name')[:10]

        return success_response(ProductMinimalSerializer(products, many=True).data)


# =============================================================================
# Warehouse Views
# =============================================================================

class WarehouseListCreateView(EnvelopeMixin, generics.ListCreateAPIView):
    """
    GET: List warehouses (active only unless ?is_active=false)
    POST: Create a new warehouse
    """
    serializer_class = WarehouseSerializer

    def get_queryset(self):
        is_active = self.request.query_params.get('is_active')
        active = True if is_active is None else _truthy(is_active)
        return Warehouse.objects.filter(is_active=active).order_by('name')

    def perform_create(self, serializer):
        warehouse = serializer.save(created_by=self.request.user)
        logger.info(f"Warehouse {warehouse.code} created by {self.request.user}")


class WarehouseDetailView(EnvelopeMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a warehouse
    PUT/PATCH: Update a warehouse
    DELETE: Deactivate a warehouse (admin/manager)
    """
    queryset = Warehouse.objects.all()
    serializer_class = WarehouseSerializer
    permission_classes = [DeleteRequiresAdminOrManager]

    def destroy(self, request, *args, **kwargs):
        warehouse = self.get_object()
        warehouse.is_active = False
        warehouse.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Warehouse {warehouse.code} deactivated by {request.user}")
        return success_response(message='Warehouse deactivated')


class WarehouseInventorySummaryView(APIView):
    """GET: Per-product stock and value for one warehouse."""

    def get(self, request, pk):
        warehouse = get_object_or_404(Warehouse, pk=pk)
        return success_response(services.warehouse_inventory_summary(warehouse))


# =============================================================================
# Inventory Views
# =============================================================================

class InventoryListView(generics.ListAPIView):
    """
    GET: List inventory records with warehouse and product info

    Query Parameters:
        - warehouse_id: Filter by warehouse
        - product_id: Filter by product
        - low_stock: Show only items at or below reorder level (true/false)
    """
    serializer_class = InventoryItemSerializer

    def get_queryset(self):
        queryset = InventoryItem.objects.select_related('warehouse', 'product')

        warehouse_id = self.request.query_params.get('warehouse_id')
        if warehouse_id:
            queryset = queryset.filter(warehouse_id=warehouse_id)

        product_id = self.request.query_params.get('product_id')
        if product_id:
            queryset = queryset.filter(product_id=product_id)

        if _truthy(self.request.query_params.get('low_stock', '')):
            queryset = queryset.filter(
                product__reorder_level__gt=0,
                quantity_available__lte=F('product__reorder_level')
            )

        return queryset.order_by('warehouse__name', 'product__name')


class InventoryStatsView(APIView):
    def get(self, request):
        return success_response(services.inventory_stats())


class LowStockListView(generics.ListAPIView):
    """GET: Items whose available quantity is at or below the reorder level."""
    serializer_class = InventoryItemSerializer

    def get_queryset(self):
        return services.low_stock_items(self.request.query_params.get('warehouse_id'))


class InventoryValuationView(APIView):
    """
    GET: Stock valued at cost price.

    Query Parameters:
        - warehouse_id: Restrict to one warehouse (optional)
    """

    def get(self, request):
        return success_response(
            services.inventory_valuation(request.query_params.get('warehouse_id'))
        )


class ReserveStockView(APIView):
    """
    POST: Reserve available stock.

    Returns 400 with the available quantity when stock is insufficient.
    """

    def post(self, request):
        serializer = StockReservationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = services.reserve_stock(user=request.user, **serializer.validated_data)
        record = InventoryItem.objects.select_related('product', 'warehouse').get(pk=record.pk)
        return success_response(InventoryItemSerializer(record).data, message='Stock reserved')


class ReleaseStockView(APIView):
    """POST: Release previously reserved stock."""

    def post(self, request):
        serializer = StockReservationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = services.release_stock(user=request.user, **serializer.validated_data)
        record = InventoryItem.objects.select_related('product', 'warehouse').get(pk=record.pk)
        return success_response(InventoryItemSerializer(record).data, message='Reservation released')


# =============================================================================
# Stock Movement Views
# =============================================================================

class StockMovementListView(generics.ListAPIView):
    """
    GET: Ledger entries, newest first.

    Query Parameters:
        - warehouse_id, product_id, movement_type
        - reference_type, reference_id
    """
    serializer_class = StockMovementSerializer

    def get_queryset(self):
        queryset = StockMovement.objects.select_related('product', 'warehouse', 'created_by')
        params = self.request.query_params

        for param in ('warehouse_id', 'product_id', 'reference_id'):
            value = params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})

        movement_type = params.get('movement_type')
        if movement_type:
            if movement_type not in StockMovement.MovementType.values:
                raise ValidationError(f"Unknown movement type '{movement_type}'")
            queryset = queryset.filter(movement_type=movement_type)

        reference_type = params.get('reference_type')
        if reference_type:
            queryset = queryset.filter(reference_type=reference_type)

        return queryset.order_by('-created_at', '-id')


# =============================================================================
# Stock Transfer Views
# =============================================================================

def _transfer_queryset():
    return StockTransfer.objects.select_related(
        'from_warehouse', 'to_warehouse', 'created_by'
    ).prefetch_related('items__product')


def _transfer_data(transfer_id):
    return StockTransferSerializer(_transfer_queryset().get(id=transfer_id)).data


class StockTransferListCreateView(generics.ListCreateAPIView):
    """
    GET: List transfers
    POST: Create a draft/pending transfer (no stock moves yet)

    Query Parameters (GET):
        - status, from_warehouse_id, to_warehouse_id
    """
    serializer_class = StockTransferSerializer

    def get_queryset(self):
        queryset = _transfer_queryset()
        params = self.request.query_params

        status_filter = params.get('status')
        if status_filter in StockTransfer.Status.values:
            queryset = queryset.filter(status=status_filter)

        for param in ('from_warehouse_id', 'to_warehouse_id'):
            value = params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})

        return queryset.order_by('-created_at')

    def create(self, request, *args, **kwargs):
        serializer = StockTransferCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        transfer = services.create_transfer(
            data['from_warehouse_id'],
            data['to_warehouse_id'],
            data['items'],
            transfer_date=data.get('transfer_date'),
            notes=data['notes'],
            status=data['status'],
            user=request.user,
        )
        return success_response(
            _transfer_data(transfer.id),
            message='Stock transfer created',
            status_code=status.HTTP_201_CREATED
        )


class StockTransferDetailView(EnvelopeMixin, generics.RetrieveAPIView):
    """
    GET: Retrieve a transfer with its lines
    PUT/PATCH: Edit a draft/pending transfer
    DELETE: Delete a transfer that has not been completed (admin/manager)
    """
    serializer_class = StockTransferSerializer
    permission_classes = [DeleteRequiresAdminOrManager]

    def get_queryset(self):
        return _transfer_queryset()

    def put(self, request, pk):
        serializer = StockTransferUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        services.update_transfer(
            pk,
            from_warehouse_id=data.get('from_warehouse_id'),
            to_warehouse_id=data.get('to_warehouse_id'),
            transfer_date=data.get('transfer_date'),
            notes=data.get('notes'),
            status=data.get('status'),
            items=data.get('items'),
        )
        return success_response(_transfer_data(pk), message='Stock transfer updated')

    def patch(self, request, pk):
        return self.put(request, pk)

    def delete(self, request, pk):
        services.delete_transfer(pk)
        return success_response(message='Stock transfer deleted')


class StockTransferProcessView(APIView):
    """
    POST: Complete a transfer, moving stock from source to destination.

    Returns:
        - 200: Transfer completed
        - 400: Insufficient source stock (nothing moved) or illegal status
        - 404: Transfer not found
    """

    def post(self, request, pk):
        services.process_transfer(pk, user=request.user)
        return success_response(_transfer_data(pk), message='Stock transfer completed')


class StockTransferCancelView(APIView):
    def post(self, request, pk):
        services.cancel_transfer(pk)
        return success_response(_transfer_data(pk), message='Stock transfer cancelled')


# =============================================================================
# Stock Adjustment Views
# =============================================================================

def _adjustment_queryset():
    return StockAdjustment.objects.select_related('product', 'warehouse', 'created_by')


class StockAdjustmentListCreateView(generics.ListCreateAPIView):
    """
    GET: List adjustments
    POST: Add or remove stock with a reason (admin/manager)

    Request Body (POST):
    {
        "warehouse_id": 1,
        "product_id": 3,
        "adjustment_type": "remove",
        "quantity": 2,
        "reason": "Damaged in storage"
    }
    """
    serializer_class = StockAdjustmentSerializer

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAdminOrManager()]
        return super().get_permissions()

    def get_queryset(self):
        queryset = _adjustment_queryset()
        for param in ('warehouse_id', 'product_id'):
            value = self.request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        return queryset.order_by('-created_at')

    def create(self, request, *args, **kwargs):
        serializer = StockAdjustmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        adjustment = services.adjust_stock(user=request.user, **serializer.validated_data)
        adjustment = _adjustment_queryset().get(id=adjustment.id)
        return success_response(
            StockAdjustmentSerializer(adjustment).data,
            message='Stock adjusted',
            status_code=status.HTTP_201_CREATED
        )


class StockAdjustmentDetailView(EnvelopeMixin, generics.RetrieveAPIView):
    serializer_class = StockAdjustmentSerializer

    def get_queryset(self):
        return _adjustment_queryset()
