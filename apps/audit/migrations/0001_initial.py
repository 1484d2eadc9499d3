import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AdminLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("admin_id", models.BigIntegerField(blank=True, null=True)),
                ("admin_name", models.CharField(max_length=150)),
                ("description", models.TextField()),
            ],
            options={
                "ordering": ["-timestamp", "-id"],
                "indexes": [models.Index(fields=["admin_id", "timestamp"], name="adminlog_admin_ts_idx")],
            },
        ),
    ]
