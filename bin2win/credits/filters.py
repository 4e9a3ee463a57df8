import django_filters
from django.db.models import Q

from .models import CreditTransaction


class CreditTransactionFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(field_name='transaction_type', choices=CreditTransaction.TYPE_CHOICES)
    status = django_filters.ChoiceFilter(field_name='status', choices=CreditTransaction.STATUS_CHOICES)
    source = django_filters.ChoiceFilter(field_name='source', choices=CreditTransaction.SOURCE_CHOICES)
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    user = django_filters.NumberFilter(field_name='user_id')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = CreditTransaction
        fields = ['type', 'status', 'source', 'date_from', 'date_to', 'user', 'search']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(reference_number__icontains=value) |
            Q(description__icontains=value) |
            Q(user__username__icontains=value)
        )
