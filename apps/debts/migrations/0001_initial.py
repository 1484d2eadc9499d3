from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="DebtStatusRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=40, unique=True)),
                ("agent_id", models.BigIntegerField()),
                ("date", models.DateField()),
                (
                    "status",
                    models.CharField(choices=[("PAID", "Paid"), ("UNPAID", "Unpaid")], default="UNPAID", max_length=8),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-date", "agent_id"],
                "indexes": [models.Index(fields=["agent_id", "date"], name="debtstatus_agent_date_idx")],
            },
        ),
    ]
