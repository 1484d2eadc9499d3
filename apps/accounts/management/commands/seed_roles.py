from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from apps.accounts.models import User, UserRole


class Command(BaseCommand):
    help = "Create default user role groups and, optionally, a first admin account"

    def add_arguments(self, parser):
        parser.add_argument("--admin-username")
        parser.add_argument("--admin-password")
        parser.add_argument("--admin-name", default="Admin")

    def handle(self, *args, **options):
        for role in UserRole.values:
            group, created = Group.objects.get_or_create(name=role)
            action = "created" if created else "exists"
            self.stdout.write(self.style.SUCCESS(f"{group.name}: {action}"))

        username = options.get("admin_username")
        password = options.get("admin_password")
        if not username:
            return
        if not password:
            self.stderr.write(self.style.ERROR("--admin-password is required with --admin-username"))
            return

        admin, created = User.objects.get_or_create(
            username=username,
            defaults={"role": UserRole.ADMIN, "name": options["admin_name"]},
        )
        if created:
            admin.set_password(password)
            admin.save(update_fields=["password"])
        action = "created" if created else "exists"
        self.stdout.write(self.style.SUCCESS(f"admin {admin.username}: {action}"))
