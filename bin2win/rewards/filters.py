import django_filters
from django.db.models import Q

from .models import Reward, Redemption

ORDERING_FIELDS = {
    'points': 'points_required',
    '-points': '-points_required',
    'popularity': '-popularity_score',
    'newest': '-created_at',
    'name': 'name',
}


class RewardFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    category = django_filters.ChoiceFilter(field_name='category', choices=Reward.CATEGORY_CHOICES)
    min_points = django_filters.NumberFilter(field_name='points_required', lookup_expr='gte')
    max_points = django_filters.NumberFilter(field_name='points_required', lookup_expr='lte')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock')
    featured = django_filters.BooleanFilter(field_name='is_featured')
    active = django_filters.BooleanFilter(field_name='is_active')
    ordering = django_filters.ChoiceFilter(method='filter_ordering',
                                           choices=[(key, key) for key in ORDERING_FIELDS])

    class Meta:
        model = Reward
        fields = ['search', 'category', 'min_points', 'max_points', 'in_stock', 'featured', 'active', 'ordering']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(description__icontains=value) |
            Q(sponsor_name__icontains=value) |
            Q(subcategory__icontains=value)
        )

    def filter_in_stock(self, queryset, name, value):
        if value:
            return queryset.filter(stock_available__gt=0)
        return queryset.filter(stock_available=0)

    def filter_ordering(self, queryset, name, value):
        return queryset.order_by(ORDERING_FIELDS[value], 'id')


class RedemptionFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(field_name='status', choices=Redemption.STATUS_CHOICES)
    reward = django_filters.NumberFilter(field_name='reward_id')
    user = django_filters.NumberFilter(field_name='user_id')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Redemption
        fields = ['status', 'reward', 'user', 'date_from', 'date_to', 'search']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(order_number__icontains=value) |
            Q(reward__name__icontains=value) |
            Q(user__username__icontains=value) |
            Q(voucher_code__icontains=value)
        )
