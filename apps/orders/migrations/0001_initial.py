import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("account_name", models.CharField(blank=True, default="", max_length=255)),
                ("account_email", models.CharField(blank=True, default="", max_length=254)),
                ("price", models.DecimalField(decimal_places=2, max_digits=14)),
                ("actual_revenue", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("ACTIVATED", "Activated"), ("NOT_ACTIVATED", "Not activated")],
                        default="NOT_ACTIVATED",
                        max_length=16,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(choices=[("PAID", "Paid"), ("UNPAID", "Unpaid")], default="UNPAID", max_length=16),
                ),
                ("sold_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "agent",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "package",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="catalog.package",
                    ),
                ),
            ],
            options={
                "ordering": ["-sold_at", "-id"],
                "indexes": [
                    models.Index(fields=["agent", "sold_at"], name="order_agent_sold_idx"),
                    models.Index(fields=["payment_status", "sold_at"], name="order_payment_sold_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("price__gte", 0)), name="order_price_gte_zero"),
                ],
            },
        ),
    ]
