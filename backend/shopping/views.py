import logging

from django.db import IntegrityError
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.core.exceptions import NotFound
from backend.core.serializers import UserFavoritesSerializer
from backend.core.utils import create_audit_log
from .serializers import CartItemSerializer, AddToCartSerializer
from .services import add_to_cart, add_to_favorites, list_cart

logger = logging.getLogger(__name__)


# Cart views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def cart_list_add(request):
    """List the current user's cart or set a product's quantity in it"""
    if request.method == 'GET':
        serializer = CartItemSerializer(list_cart(request.user.id), many=True)
        return Response({'items': serializer.data})

    serializer = AddToCartSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    product_id = serializer.validated_data['productId']
    quantity = serializer.validated_data['quantity']
    transaction_type = serializer.validated_data['transactionType']

    result = add_to_cart(request.user.id, product_id, quantity, transaction_type)

    if result.item is None:
        action = 'cart_remove'
    elif result.created:
        action = 'cart_add'
    else:
        action = 'cart_update'
    create_audit_log(
        request=request,
        action=action,
        model_name='CartItem',
        object_id=f'{request.user.id}:{product_id}',
        changes={'product_id': product_id, 'quantity': quantity, 'transaction_type': transaction_type,
                 'message': result.message}
    )

    data = {'message': result.message}
    if result.item is not None:
        data['cartItem'] = CartItemSerializer(result.item).data
    return Response(data)


# Favorites views
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def product_add_favorite(request, product_id):
    """Add a product to the current user's favorites"""
    try:
        user = add_to_favorites(request.user.id, product_id)
    except IntegrityError:
        logger.warning(f"User {request.user.id} tried to favorite missing product {product_id}")
        raise NotFound('Product not found', entity='Product', identifier=product_id)

    create_audit_log(
        request=request,
        action='favorite_add',
        model_name='Product',
        object_id=product_id,
        changes={'favorites_count': user.favorites.count()}
    )
    return Response({'message': 'Product added to favorites', 'result': UserFavoritesSerializer(user).data})
