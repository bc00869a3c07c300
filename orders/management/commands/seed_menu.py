from django.core.management.base import BaseCommand
from django.db.models import ProtectedError

from engine.money import format_cents
from orders.models import Product, VoidReason, DiscountDefinition


class Command(BaseCommand):
    help = 'Seed the database with products, void reasons and discount types'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Deactivate existing products before seeding',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing products...')
            # Products already on orders are protected, so retire them instead
            try:
                Product.objects.all().delete()
            except ProtectedError:
                Product.objects.update(is_active=False)
            self.stdout.write(
                self.style.SUCCESS('Successfully cleared products')
            )

        products = [
            {"name": "Burger", "unit_price_cents": 5000},
            {"name": "Steak", "unit_price_cents": 10000},
            {"name": "Caesar Salad", "unit_price_cents": 900},
            {"name": "Pizza Margherita", "unit_price_cents": 1200},
            {"name": "Fries", "unit_price_cents": 450},
            {"name": "Coca Cola", "unit_price_cents": 300},
            {"name": "Iced Tea", "unit_price_cents": 300},
            {"name": "Chocolate Cake", "unit_price_cents": 450},
        ]

        created_items = []
        for product_data in products:
            product, created = Product.objects.get_or_create(
                name=product_data['name'],
                is_active=True,
                defaults={'unit_price_cents': product_data['unit_price_cents']}
            )
            if created:
                created_items.append(product)
                self.stdout.write(f"Created: {product.name} - {format_cents(product.unit_price_cents)}")
            else:
                self.stdout.write(f"Already exists: {product.name}")

        void_reasons = [
            ("wrong_item", "Wrong item rung in", False),
            ("customer_changed_mind", "Customer changed their mind", False),
            ("kitchen_error", "Kitchen error", False),
            ("quality_issue", "Quality issue", True),
            ("manager_void", "Manager void", True),
        ]
        for code, description, requires_manager in void_reasons:
            VoidReason.objects.get_or_create(
                code=code,
                defaults={'description': description, 'requires_manager': requires_manager}
            )

        discounts = [
            ("staff10", "Staff 10%", DiscountDefinition.PERCENTAGE, 1000, None, False),
            ("happy_hour", "Happy hour 20%", DiscountDefinition.PERCENTAGE, 2000, 2000, False),
            ("loyalty5", "Loyalty 5.00 off", DiscountDefinition.FIXED, 500, None, False),
            ("manager50", "Manager 50%", DiscountDefinition.PERCENTAGE, 5000, None, True),
        ]
        for code, name, kind, value, cap, requires_manager in discounts:
            DiscountDefinition.objects.get_or_create(
                code=code,
                defaults={
                    'name': name,
                    'kind': kind,
                    'value': value,
                    'max_amount_cents': cap,
                    'requires_manager': requires_manager,
                }
            )

        self.stdout.write(
            self.style.SUCCESS(f'\nTotal new products created: {len(created_items)}')
        )

        self.stdout.write("\nAll products in database:")
        self.stdout.write("-" * 50)
        for product in Product.objects.filter(is_active=True).order_by('name'):
            self.stdout.write(
                f"ID: {product.id:2d} | {product.name:20s} | {format_cents(product.unit_price_cents):>8s}"
            )
        self.stdout.write(f"\nVoid reasons: {VoidReason.objects.count()} | "
                          f"Discount types: {DiscountDefinition.objects.count()}")
