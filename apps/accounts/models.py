from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    AGENT = "AGENT", "Agent"


class User(AbstractUser):
    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.AGENT)
    name = models.CharField(max_length=150, blank=True, default="")
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(discount_percentage__isnull=True)
                | (models.Q(discount_percentage__gte=0) & models.Q(discount_percentage__lte=100)),
                name="user_discount_pct_range",
            ),
        ]

    @property
    def display_name(self):
        return self.name or self.username

    def __str__(self):
        return self.display_name
