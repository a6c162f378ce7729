from rest_framework import serializers
from .models import CartItem


class CartItemSerializer(serializers.ModelSerializer):
    productId = serializers.IntegerField(source='product_id', read_only=True)
    productName = serializers.CharField(source='product.name_en', read_only=True)
    category = serializers.CharField(source='product.category', read_only=True)
    transactionType = serializers.CharField(source='transaction_type', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = CartItem
        fields = ['id', 'productId', 'productName', 'category', 'quantity', 'transactionType', 'createdAt', 'updatedAt']


class AddToCartSerializer(serializers.Serializer):
    productId = serializers.IntegerField(min_value=1, error_messages={'required': 'Product ID is required'})
    quantity = serializers.IntegerField(min_value=0, default=1)
    transactionType = serializers.ChoiceField(choices=CartItem.TRANSACTION_TYPE_CHOICES, default='SALE')
