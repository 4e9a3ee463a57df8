import django_filters
from django.db.models import Q

from .models import CollectionBooth


class CollectionBoothFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    area = django_filters.CharFilter(field_name='area', lookup_expr='iexact')
    pincode = django_filters.CharFilter(field_name='pincode')
    active = django_filters.BooleanFilter(field_name='is_active')
    waste_type = django_filters.CharFilter(method='filter_waste_type')

    class Meta:
        model = CollectionBooth
        fields = ['search', 'area', 'pincode', 'active', 'waste_type']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(code__icontains=value) |
            Q(area__icontains=value) |
            Q(address__icontains=value) |
            Q(landmark__icontains=value) |
            Q(pincode__icontains=value)
        )

    def filter_waste_type(self, queryset, name, value):
        # JSON containment lookups are not available on SQLite, so match in Python
        code = value.strip().lower()
        booth_ids = [booth.id for booth in queryset.only('id', 'accepted_waste_types') if booth.accepts_waste_type(code)]
        return queryset.filter(id__in=booth_ids)
