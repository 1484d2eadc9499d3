from django.db import models
from django.utils import timezone


class ActivationStatus(models.TextChoices):
    ACTIVATED = "ACTIVATED", "Activated"
    NOT_ACTIVATED = "NOT_ACTIVATED", "Not activated"


class PaymentStatus(models.TextChoices):
    PAID = "PAID", "Paid"
    UNPAID = "UNPAID", "Unpaid"


class Order(models.Model):
    account_name = models.CharField(max_length=255, blank=True, default="")
    account_email = models.CharField(max_length=254, blank=True, default="")
    package = models.ForeignKey("catalog.Package", on_delete=models.PROTECT, related_name="orders")
    price = models.DecimalField(max_digits=14, decimal_places=2)
    actual_revenue = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=16, choices=ActivationStatus.choices, default=ActivationStatus.NOT_ACTIVATED)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID)
    agent = models.ForeignKey("accounts.User", on_delete=models.CASCADE, related_name="orders")
    sold_at = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-sold_at", "-id"]
        indexes = [
            models.Index(fields=["agent", "sold_at"], name="order_agent_sold_idx"),
            models.Index(fields=["payment_status", "sold_at"], name="order_payment_sold_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(price__gte=0), name="order_price_gte_zero"),
        ]

    @property
    def sale_day(self):
        return timezone.localdate(self.sold_at)

    def __str__(self):
        return f"#{self.pk} {self.account_email or self.account_name}"
