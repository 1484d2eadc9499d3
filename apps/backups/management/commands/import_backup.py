from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from apps.backups.services import import_snapshot, load_snapshot
from apps.common.exceptions import BusinessRuleError


class Command(BaseCommand):
    help = "Replace users, orders, settlement statuses and admin logs with the contents of a JSON backup."

    def add_arguments(self, parser):
        parser.add_argument("path")

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.is_file():
            raise CommandError(f"No such file: {path}")
        try:
            counts = import_snapshot(load_snapshot(path.read_bytes()))
        except BusinessRuleError as exc:
            raise CommandError(f"{exc.code}: {exc.detail} {exc.fields or ''}".strip()) from exc
        summary = ", ".join(f"{key}={value}" for key, value in counts.items())
        self.stdout.write(self.style.SUCCESS(f"Backup restored ({summary})"))
