from rest_framework import serializers
from backend.catalog.serializers import ProductSerializer
from .models import User


class UserSerializer(serializers.ModelSerializer):
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    isStaff = serializers.BooleanField(source='is_staff', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'phone', 'isStaff', 'createdAt']


class UserFavoritesSerializer(UserSerializer):
    """User with the full favorites list (products without videos)"""
    favorites = serializers.SerializerMethodField()

    def get_favorites(self, obj):
        products = obj.favorites.order_by('-created_at')
        return ProductSerializer(products, many=True, context={'with_videos': False}).data

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['favorites']
