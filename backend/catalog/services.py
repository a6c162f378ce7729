"""
Product lifecycle operations: create/edit/delete with media, listing and QR lookup.

Views call these with already validated data; errors are raised as typed
service errors from backend.core.exceptions.
"""
import logging
import posixpath
import re

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction

from backend.core.exceptions import NotFound, InvalidFormat
from .models import Product, ProductVideo
from .qr_generator import build_qr_payload, save_product_qr_code, delete_product_qr_code, qr_storage_name

logger = logging.getLogger(__name__)

# Fields a sparse edit may change; anything else in the input is ignored
EDITABLE_FIELDS = (
    'name_en', 'name_ar', 'company', 'category', 'description', 'rate',
    'cost_price', 'rent_price', 'sell_price',
    'available_for_rent', 'available_for_sale',
    'rent_stock', 'sale_stock',
)


def store_uploaded_files(files, directory, storage=None, saved_names=None):
    """
    Save uploaded files and return their public URL paths, in upload order.

    Storage names of the saved files are appended to `saved_names` so a
    caller can remove them if the database write that follows fails.
    """
    storage = storage or default_storage
    paths = []
    for uploaded in files or []:
        name = storage.save(posixpath.join(directory, uploaded.name), uploaded)
        if saved_names is not None:
            saved_names.append(name)
        paths.append(storage.url(name))
    return paths


def delete_stored_files(names, storage=None):
    """Remove files left behind by a failed write; failures are only logged"""
    storage = storage or default_storage
    for name in names:
        try:
            if storage.exists(name):
                storage.delete(name)
        except Exception as e:
            logger.warning(f"Could not remove stored file {name}: {str(e)}")


def _video_rows(product, video_files, storage, saved_names=None):
    """Store uploaded video files and build unsaved ProductVideo rows for them"""
    urls = store_uploaded_files(video_files, settings.PRODUCT_VIDEO_DIR, storage, saved_names)
    return [
        ProductVideo(product=product, name=uploaded.name, bio='', url=url)
        for uploaded, url in zip(video_files, urls)
    ]


def get_product(product_id, with_videos=True):
    """Fetch a product or raise NotFound"""
    queryset = Product.objects.all()
    if with_videos:
        queryset = queryset.prefetch_related('videos')
    product = queryset.filter(pk=product_id).first()
    if product is None:
        raise NotFound('Product not found', entity='Product', identifier=product_id)
    return product


def create_product(fields, image_files=None, video_files=None, storage=None):
    """
    Create a product with its media, then attach a QR code.

    The QR payload embeds the product id, so the row is inserted first and
    updated with the QR path afterwards. A QR failure is logged and the
    product is returned without a QR path; regenerate_qr_code() recovers it.

    Args:
        fields: Validated product fields keyed by model field name
        image_files: Uploaded image files
        video_files: Uploaded video files
        storage: Storage backend (defaults to default_storage)

    Returns:
        Product with videos prefetched
    """
    storage = storage or default_storage
    image_files = image_files or []
    video_files = video_files or []

    saved_names = []
    try:
        images = store_uploaded_files(image_files, settings.PRODUCT_IMAGE_DIR, storage, saved_names)

        with transaction.atomic():
            product = Product.objects.create(
                name_en=fields.get('name_en'),
                name_ar=fields.get('name_ar'),
                company=fields.get('company'),
                category=fields.get('category'),
                description=fields.get('description'),
                rate=fields.get('rate') or 0,
                cost_price=fields.get('cost_price'),
                rent_price=fields.get('rent_price') or None,
                sell_price=fields.get('sell_price') or None,
                available_for_rent=bool(fields.get('available_for_rent', False)),
                available_for_sale=bool(fields.get('available_for_sale', False)),
                rent_stock=fields.get('rent_stock') or 0,
                sale_stock=fields.get('sale_stock') or 0,
                images=images,
            )
            ProductVideo.objects.bulk_create(_video_rows(product, video_files, storage, saved_names))
    except Exception:
        delete_stored_files(saved_names, storage)
        raise

    logger.info(f"Created product {product.id} ({product.name_en}) with {len(images)} images and {len(video_files)} videos")

    try:
        product.qr_code = save_product_qr_code(product.id, storage=storage, payload=build_qr_payload(product.id))
        product.save(update_fields=['qr_code'])
    except Exception as e:
        logger.warning(f"Failed to generate QR code for product {product.id}: {str(e)}", exc_info=True)
        delete_stored_files([qr_storage_name(product.id)], storage)

    return get_product(product.id)


def edit_product(product_id, fields, new_image_files=None, new_video_files=None, storage=None):
    """
    Sparse update of a product.

    Only keys present in `fields` are written, so falsy values such as a
    stock of 0 or availableForSale=false are applied. New images are appended
    after the existing ones and new videos are added as extra rows.
    """
    storage = storage or default_storage
    new_image_files = new_image_files or []
    new_video_files = new_video_files or []

    saved_names = []
    try:
        with transaction.atomic():
            product = Product.objects.select_for_update().filter(pk=product_id).first()
            if product is None:
                raise NotFound('Product not found', entity='Product', identifier=product_id)

            update_fields = []
            for field_name in EDITABLE_FIELDS:
                if field_name in fields:
                    setattr(product, field_name, fields[field_name])
                    update_fields.append(field_name)

            if new_image_files:
                new_paths = store_uploaded_files(new_image_files, settings.PRODUCT_IMAGE_DIR, storage, saved_names)
                product.images = list(product.images or []) + new_paths
                update_fields.append('images')

            if update_fields:
                product.save(update_fields=update_fields + ['updated_at'])

            if new_video_files:
                ProductVideo.objects.bulk_create(_video_rows(product, new_video_files, storage, saved_names))
    except Exception:
        delete_stored_files(saved_names, storage)
        raise

    return get_product(product.id)


def delete_product(product_id, storage=None):
    """
    Delete a product and its videos.

    Returns:
        The deleted product (unsaved snapshot keeping its original id)
    """
    with transaction.atomic():
        product = Product.objects.select_for_update().filter(pk=product_id).first()
        if product is None:
            raise NotFound('Product not found', entity='Product', identifier=product_id)

        deleted_id = product.id
        ProductVideo.objects.filter(product_id=deleted_id).delete()
        product.delete()

    # Model.delete() clears the pk; keep it on the snapshot for the response
    product.id = deleted_id
    if product.qr_code:
        try:
            delete_product_qr_code(deleted_id, storage=storage)
        except Exception as e:
            logger.warning(f"Could not remove QR image for deleted product {deleted_id}: {str(e)}")

    logger.info(f"Deleted product {deleted_id} ({product.name_en})")
    return product


def fetch_products(category=None, with_videos=False, queryset=None):
    """
    List products newest first.

    Args:
        category: Optional exact category filter
        with_videos: Prefetch videos (serializers omit them otherwise)
        queryset: Optional pre-filtered base queryset

    Returns:
        QuerySet of Product
    """
    if queryset is None:
        queryset = Product.objects.all()
    if category:
        queryset = queryset.filter(category=category)
    if with_videos:
        queryset = queryset.prefetch_related('videos')
    return queryset.order_by('-created_at', '-id')


def parse_qr_payload(payload):
    """Extract the product id from the last path segment of a QR payload"""
    if not payload or not isinstance(payload, str):
        raise InvalidFormat('Invalid or missing QR code content.')

    segment = payload.split('/')[-1].strip()
    if not re.fullmatch(r'[0-9]+', segment) or int(segment) <= 0:
        raise InvalidFormat('Invalid QR code format: Could not extract a valid product ID.')
    return int(segment)


def find_product_by_qr_payload(payload):
    """Resolve a scanned QR payload (e.g. https://host/products/42) to its product"""
    product_id = parse_qr_payload(payload)
    product = Product.objects.prefetch_related('videos').filter(pk=product_id).first()
    if product is None:
        raise NotFound('Product not found for the given QR code.', entity='Product', identifier=product_id)
    return product


def regenerate_qr_code(product_id, storage=None):
    """
    Render the product's QR image again and store its path.

    Safe to repeat: the image file is overwritten under the same name.
    Rendering errors propagate to the caller.
    """
    product = get_product(product_id, with_videos=False)
    product.qr_code = save_product_qr_code(product.id, storage=storage)
    product.save(update_fields=['qr_code', 'updated_at'])
    return get_product(product.id)
