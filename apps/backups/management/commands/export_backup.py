from pathlib import Path

from django.core.management.base import BaseCommand

from apps.backups.services import backup_filename, dump_snapshot, export_snapshot


class Command(BaseCommand):
    help = "Write a JSON backup of users, orders, settlement statuses and admin logs."

    def add_arguments(self, parser):
        parser.add_argument("path", nargs="?", help="Target file or directory (defaults to the current directory).")

    def handle(self, *args, **options):
        target = Path(options["path"] or ".")
        if target.is_dir():
            target = target / backup_filename()
        target.write_text(dump_snapshot(export_snapshot()), encoding="utf-8")
        self.stdout.write(self.style.SUCCESS(f"Backup written to {target}"))
