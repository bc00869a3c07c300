from django.core.management.base import BaseCommand
from tables.models import Table


class Command(BaseCommand):
    help = 'Seed the database with a floor plan of tables'

    def add_arguments(self, parser):
        parser.add_argument(
            '--count',
            type=int,
            default=12,
            help='Number of tables to create (default 12)',
        )

    def handle(self, *args, **options):
        # Every fourth table is a booth for six, the rest are round fours
        created_tables = []
        for number in range(1, options['count'] + 1):
            booth = number % 4 == 0
            table, created = Table.objects.get_or_create(
                number=number,
                defaults={
                    'name': f"Table {number}",
                    'capacity': 6 if booth else 4,
                    'shape': 'booth' if booth else 'round',
                }
            )
            if created:
                created_tables.append(table)
                self.stdout.write(f"Created: {table.name} ({table.shape}, seats {table.capacity})")
            else:
                self.stdout.write(f"Already exists: {table.name}")

        self.stdout.write(
            self.style.SUCCESS(f'\nTotal new tables created: {len(created_tables)}')
        )

        self.stdout.write("\nFloor plan:")
        self.stdout.write("-" * 50)
        for table in Table.objects.filter(is_active=True):
            self.stdout.write(
                f"#{table.number:3d} | {table.name:15s} | seats {table.capacity:2d} | {table.status}"
            )
