import django_filters
from django.db.models import Q

from bin2win.core.rules import WASTE_TYPE_CHOICES
from .models import WasteSubmission


class WasteSubmissionFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(field_name='status', choices=WasteSubmission.STATUS_CHOICES)
    method = django_filters.ChoiceFilter(field_name='method', choices=WasteSubmission.METHOD_CHOICES)
    waste_type = django_filters.ChoiceFilter(field_name='waste_type__code', choices=WASTE_TYPE_CHOICES)
    booth = django_filters.NumberFilter(field_name='booth_id')
    user = django_filters.NumberFilter(field_name='user_id')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = WasteSubmission
        fields = ['status', 'method', 'waste_type', 'booth', 'user', 'date_from', 'date_to', 'search']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(submission_number__icontains=value) |
            Q(user__username__icontains=value) |
            Q(booth__name__icontains=value) |
            Q(booth__code__icontains=value) |
            Q(notes__icontains=value)
        )
