from django.contrib import admin
from .models import CartItem


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ['user', 'product', 'quantity', 'transaction_type', 'updated_at']
    list_filter = ['transaction_type', 'updated_at']
    search_fields = ['user__username', 'product__name_en']
    ordering = ['-updated_at']
