from django.db import models


class DebtStatus(models.TextChoices):
    PAID = "PAID", "Paid"
    UNPAID = "UNPAID", "Unpaid"


class DebtStatusRecord(models.Model):
    """Settlement status of one agent's sales on one local day, keyed ``{agent_id}_{yyyy-mm-dd}``."""

    key = models.CharField(max_length=40, unique=True)
    agent_id = models.BigIntegerField()
    date = models.DateField()
    status = models.CharField(max_length=8, choices=DebtStatus.choices, default=DebtStatus.UNPAID)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-date", "agent_id"]
        indexes = [
            models.Index(fields=["agent_id", "date"], name="debtstatus_agent_date_idx"),
        ]

    def __str__(self):
        return f"{self.key}: {self.status}"
