"""
URL routing for inventory API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Categories
    path('categories/', views.CategoryListCreateView.as_view(), name='category-list'),
    path('categories/<int:pk>/', views.CategoryDetailView.as_view(), name='category-detail'),

    # Products
    path('products/', views.ProductListCreateView.as_view(), name='product-list'),
    path('products/autocomplete/', views.ProductAutocompleteView.as_view(), name='product-autocomplete'),
    path('products/sku/<str:sku>/', views.ProductBySkuView.as_view(), name='product-by-sku'),
    path('products/<int:pk>/', views.ProductDetailView.as_view(), name='product-detail'),

    # Warehouses
    path('warehouses/', views.WarehouseListCreateView.as_view(), name='warehouse-list'),
    path('warehouses/<int:pk>/', views.WarehouseDetailView.as_view(), name='warehouse-detail'),
    path(
        'warehouses/<int:pk>/inventory-summary/',
        views.WarehouseInventorySummaryView.as_view(),
        name='warehouse-inventory-summary'
    ),

    # Inventory
    path('inventory/', views.InventoryListView.as_view(), name='inventory-list'),
    path('inventory/stats/', views.InventoryStatsView.as_view(), name='inventory-stats'),
    path('inventory/low-stock/', views.LowStockListView.as_view(), name='inventory-low-stock'),
    path('inventory/valuation/', views.InventoryValuationView.as_view(), name='inventory-valuation'),
    path('inventory/reserve/', views.ReserveStockView.as_view(), name='inventory-reserve'),
    path('inventory/release/', views.ReleaseStockView.as_view(), name='inventory-release'),

    # Ledger
    path('stock-movements/', views.StockMovementListView.as_view(), name='stock-movement-list'),

    # Transfers
    path('stock-transfers/', views.StockTransferListCreateView.as_view(), name='stock-transfer-list'),
    path('stock-transfers/<int:pk>/', views.StockTransferDetailView.as_view(), name='stock-transfer-detail'),
    path(
        'stock-transfers/<int:pk>/process/',
        views.StockTransferProcessView.as_view(),
        name='stock-transfer-process'
    ),
    path(
        'stock-transfers/<int:pk>/cancel/',
        views.StockTransferCancelView.as_view(),
        name='stock-transfer-cancel'
    ),

    # Adjustments
    path('stock-adjustments/', views.StockAdjustmentListCreateView.as_view(), name='stock-adjustment-list'),
    path(
        'stock-adjustments/<int:pk>/',
        views.StockAdjustmentDetailView.as_view(),
        name='stock-adjustment-detail'
    ),
]
