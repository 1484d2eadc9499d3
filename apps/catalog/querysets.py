from django.db.models import Count


def with_order_counts(queryset):
    return queryset.annotate(order_count=Count("orders"))
