import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """
    Optional list filters on top of the category filter applied by the service.

    Query params:
    - company: case-insensitive exact company name
    - availableForSale / availableForRent: true/false
    - search: matches English or Arabic name
    """
    company = django_filters.CharFilter(field_name='company', lookup_expr='iexact')
    availableForSale = django_filters.BooleanFilter(field_name='available_for_sale')
    availableForRent = django_filters.BooleanFilter(field_name='available_for_rent')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Product
        fields = []

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(name_en__icontains=value) | Q(name_ar__icontains=value))
