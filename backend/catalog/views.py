import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from rest_framework.response import Response

from backend.core.exceptions import ServiceError
from backend.core.permissions import IsAdminOrReadOnly
from backend.core.utils import create_audit_log
from .filters import ProductFilter
from .models import Product
from .serializers import ProductSerializer, ProductInputSerializer
from .services import (
    create_product, edit_product, delete_product, fetch_products,
    find_product_by_qr_payload, regenerate_qr_code,
)

logger = logging.getLogger(__name__)


def _audit_changes(fields):
    """Make validated field values JSON-safe for the audit log"""
    return {
        key: str(value) if isinstance(value, Decimal) else value
        for key, value in fields.items()
    }


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAdminOrReadOnly])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def product_list_create(request):
    """List products (public) or create a product with media (staff)"""
    if request.method == 'GET':
        with_videos = request.query_params.get('withVideos') == 'true'
        category = request.query_params.get('category') or None

        filterset = ProductFilter(request.query_params, queryset=Product.objects.all())
        products = fetch_products(category=category, with_videos=with_videos, queryset=filterset.qs)

        serializer = ProductSerializer(products, many=True, context={'with_videos': with_videos})
        return Response({'products': serializer.data})

    serializer = ProductInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    fields, image_files, video_files = serializer.split_files()
    try:
        product = create_product(fields, image_files, video_files)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Create product failed: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to create product.'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(
        request=request,
        action='create',
        instance=product,
        changes={**_audit_changes(fields), 'images': len(image_files), 'videos': len(video_files)}
    )
    return Response(
        {'message': 'Product created successfully', 'product': ProductSerializer(product).data},
        status=status.HTTP_201_CREATED
    )


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def product_detail(request, pk):
    """Sparse-update or delete a product"""
    if request.method == 'DELETE':
        product = delete_product(pk)
        create_audit_log(
            request=request,
            action='delete',
            instance=product,
            changes={'name_en': product.name_en, 'category': product.category}
        )
        serializer = ProductSerializer(product, context={'with_videos': False})
        return Response({'message': 'Product deleted successfully', 'product': serializer.data})

    serializer = ProductInputSerializer(data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    fields, image_files, video_files = serializer.split_files()
    try:
        product = edit_product(pk, fields, image_files, video_files)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Update product {pk} failed: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to update product.'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    changes = _audit_changes(fields)
    if image_files:
        changes['images_added'] = len(image_files)
    if video_files:
        changes['videos_added'] = len(video_files)
    if changes:
        create_audit_log(
            request=request,
            action='update',
            instance=product,
            changes=changes
        )
    return Response({'message': 'Product updated successfully', 'product': ProductSerializer(product).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def product_regenerate_qr_code(request, pk):
    """Render the product's QR code again (recovers products created without one)"""
    try:
        product = regenerate_qr_code(pk)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"QR regeneration for product {pk} failed: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to generate QR code.'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(
        request=request,
        action='qr_regenerate',
        instance=product,
        changes={'qr_code': product.qr_code}
    )
    return Response({'message': 'QR code generated successfully', 'product': ProductSerializer(product).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_by_qr_code(request):
    """
    Look up a product from scanned QR content.
    The full payload is sent as ?code=https://.../products/123
    """
    code = request.query_params.get('code')
    if not code:
        return Response(
            {'error': 'The "code" query parameter is required.'},
            status=status.HTTP_400_BAD_REQUEST
        )

    product = find_product_by_qr_payload(code)
    return Response(ProductSerializer(product).data)
