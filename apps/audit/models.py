from django.db import models
from django.utils import timezone


class AdminLog(models.Model):
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)
    admin_id = models.BigIntegerField(null=True, blank=True)
    admin_name = models.CharField(max_length=150)
    description = models.TextField()

    class Meta:
        ordering = ["-timestamp", "-id"]
        indexes = [
            models.Index(fields=["admin_id", "timestamp"], name="adminlog_admin_ts_idx"),
        ]

    def __str__(self):
        return f"{self.timestamp:%Y-%m-%d %H:%M} {self.admin_name}: {self.description}"
