"""
Management command to seed the database with sample data.

Generates:
- 12 categories
- 200 products with SKUs, prices and reorder levels
- 5 warehouses
- Opening stock posted as adjustment movements, so the ledger and the
  inventory records agree from the start
- Optionally one user per role

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
    python manage.py seed_data --users  # Also create admin/manager/staff users
"""
import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from inventory.models import (
    Category,
    InventoryItem,
    Product,
    StockAdjustment,
    StockMovement,
    StockTransfer,
    Warehouse,
)
from inventory.services import apply_delta


class Command(BaseCommand):
    help = 'Seed the database with sample categories, products, warehouses, and opening stock'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--users',
            action='store_true',
            help='Create one demo user per role (password: changeme123)',
        )
        parser.add_argument(
            '--categories',
            type=int,
            default=12,
            help='Number of categories to create (default: 12)',
        )
        parser.add_argument(
            '--products',
            type=int,
            default=200,
            help='Number of products to create (default: 200)',
        )
        parser.add_argument(
            '--warehouses',
            type=int,
            default=5,
            help='Number of warehouses to create (default: 5)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            if options['users']:
                self._create_users()
            categories = self._create_categories(options['categories'])
            products = self._create_products(options['products'], categories)
            warehouses = self._create_warehouses(options['warehouses'])
            self._create_opening_stock(products, warehouses)

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all existing data, dependents first."""
        from billing.models import Invoice, Client
        from purchasing.models import PurchaseOrder, Vendor

        Invoice.objects.all().delete()
        Client.objects.all().delete()
        PurchaseOrder.objects.all().delete()
        Vendor.objects.all().delete()
        StockTransfer.objects.all().delete()
        StockAdjustment.objects.all().delete()
        # Bulk queryset delete bypasses StockMovement.delete(); only a full reset may do this
        StockMovement.objects.all().delete()
        InventoryItem.objects.all().delete()
        Product.objects.all().delete()
        Warehouse.objects.all().delete()
        Category.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_users(self):
        User = get_user_model()
        for role in User.Role.values:
            user, created = User.objects.get_or_create(
                username=f'{role}_demo',
                defaults={'email': f'{role}@example.com', 'role': role},
            )
            if created:
                user.set_password('changeme123')
                user.save(update_fields=['password'])
                self.stdout.write(f'  Created user: {user.username} ({role})')

    def _create_categories(self, count):
        """Create sample categories."""
        category_names = [
            'Electronics', 'Office Supplies', 'Packaging', 'Cleaning Supplies',
            'Tools & Hardware', 'Safety Equipment', 'Furniture', 'Food & Beverages',
            'Automotive', 'Networking', 'Lighting', 'Printing',
            'Medical Supplies', 'Textiles', 'Garden'
        ]

        categories = []
        for name in category_names[:count]:
            category, created = Category.objects.get_or_create(name=name)
            categories.append(category)
            if created:
                self.stdout.write(f'  Created category: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(categories)} categories'))
        return categories

    def _create_products(self, count, categories):
        """Create sample products with unique SKUs."""
        base_names = [
            'Cable', 'Adapter', 'Binder', 'Carton Box', 'Detergent', 'Drill Bit',
            'Gloves', 'Desk Lamp', 'Coffee Beans', 'Brake Pad', 'Router', 'LED Panel',
            'Toner Cartridge', 'Bandage Roll', 'Hand Towel', 'Seed Pack'
        ]
        adjectives = [
            'Standard', 'Premium', 'Heavy Duty', 'Compact', 'Industrial',
            'Eco', 'Professional', 'Basic', 'Reinforced', 'Portable'
        ]
        units = ['unit', 'box', 'pack', 'kg', 'roll']

        existing_skus = set(Product.objects.values_list('sku', flat=True))
        products = []

        self.stdout.write(f'Creating {count} products...')

        for i in range(count):
            category = random.choice(categories)
            sku = f"{category.name[:3].upper()}-{i + 1:05d}"
            if sku in existing_skus:
                continue
            existing_skus.add(sku)

            cost = Decimal(str(round(random.uniform(2, 300), 2)))
            margin = Decimal(str(round(random.uniform(1.1, 1.8), 2)))
            reorder_level = random.choice([0, 5, 10, 20, 50])

            products.append(Product(
                sku=sku,
                name=f"{random.choice(adjectives)} {random.choice(base_names)} {i + 1}",
                description=random.choice([
                    f"{category.name} item for daily operations.",
                    "Stocked at all main warehouses.",
                    "",
                ]),
                category=category,
                unit_of_measure=random.choice(units),
                cost_price=cost,
                unit_price=(cost * margin).quantize(Decimal('0.01')),
                reorder_level=reorder_level,
                reorder_quantity=reorder_level * 3,
                is_active=random.random() > 0.05  # 95% active
            ))

        Product.objects.bulk_create(products, ignore_conflicts=True)

        products = list(Product.objects.filter(is_active=True))
        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} active products'))
        return products

    def _create_warehouses(self, count):
        """Create sample warehouses."""
        cities = [
            ('Chicago', 'IL'), ('Dallas', 'TX'), ('Seattle', 'WA'),
            ('Atlanta', 'GA'), ('Denver', 'CO'), ('Boston', 'MA'),
            ('Phoenix', 'AZ'), ('Columbus', 'OH'),
        ]

        warehouses = []
        for i in range(count):
            city, state = cities[i % len(cities)]
            warehouse, created = Warehouse.objects.get_or_create(
                code=f"WH-{i + 1:02d}",
                defaults={
                    'name': f"{city} Distribution Center",
                    'address': f"{random.randint(100, 9999)} Industrial Way",
                    'city': city,
                    'state': state,
                    'country': 'US',
                }
            )
            warehouses.append(warehouse)
            if created:
                self.stdout.write(f'  Created warehouse: {warehouse.code}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(warehouses)} warehouses'))
        return warehouses

    def _create_opening_stock(self, products, warehouses):
        """Post opening balances through apply_delta so every record has a ledger."""
        self.stdout.write(f'Posting opening stock for {len(warehouses)} warehouses...')

        posted = 0
        for warehouse in warehouses:
            # Each warehouse carries 50-80% of products
            stocked = random.sample(products, k=int(len(products) * random.uniform(0.5, 0.8)))
            for product in stocked:
                quantity = random.randint(0, 300)
                if quantity == 0:
                    continue
                apply_delta(
                    product.id, warehouse.id, quantity,
                    StockMovement.MovementType.ADJUSTMENT,
                    reference_type='opening_balance',
                    notes='Opening stock',
                )
                posted += 1

        self.stdout.write(self.style.SUCCESS(f'Posted {posted} opening stock movements'))
