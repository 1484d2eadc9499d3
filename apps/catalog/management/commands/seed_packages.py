from decimal import Decimal

from django.core.management.base import BaseCommand

from apps.catalog.models import Package

DEFAULT_PACKAGES = [
    ("1 month", Decimal("400000")),
    ("3 months", Decimal("800000")),
    ("6 months", Decimal("1200000")),
    ("1 year", Decimal("1200000")),
]


class Command(BaseCommand):
    help = "Seed the default subscription packages."

    def handle(self, *args, **options):
        created_count = 0
        for name, price in DEFAULT_PACKAGES:
            _, created = Package.objects.get_or_create(name=name, defaults={"price": price})
            if created:
                created_count += 1

        self.stdout.write(self.style.SUCCESS(f"Seed packages completed. packages_created={created_count}"))
