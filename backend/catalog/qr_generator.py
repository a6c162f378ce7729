"""
Local QR code generator for product lookup codes.
Uses qrcode with the PIL image factory; images are written through Django's storage API.
"""
import io
import logging
from typing import Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.image.pil import PilImage
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)


def build_qr_payload(product_id: int) -> str:
    """URL embedded in a product's QR code; its last path segment is the product id"""
    base_url = settings.QR_CODE_BASE_URL.rstrip('/')
    return f'{base_url}/{product_id}'


def qr_storage_name(product_id: int) -> str:
    """Storage-relative file name of a product's QR image"""
    return f'{settings.QR_CODE_DIR.strip("/")}/product-{product_id}.png'


def render_qr_png(
    payload: str,
    box_size: int = 10,
    border: int = 4,
) -> bytes:
    """
    Render a QR code for the payload as PNG bytes.

    Args:
        payload: Text to encode (the product URL)
        box_size: Pixels per QR module
        border: Quiet zone width in modules (4 is the minimum the standard allows)

    Returns:
        PNG image bytes
    """
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(image_factory=PilImage, fill_color='black', back_color='white')

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    data = buffer.getvalue()
    buffer.close()
    return data


def save_product_qr_code(product_id: int, storage=None, payload: Optional[str] = None) -> str:
    """
    Render and store the QR image for a product, replacing any previous file.

    Returns:
        Public URL path of the stored image (e.g. /media/qrcodes/product-42.png)
    """
    storage = storage or default_storage
    payload = payload or build_qr_payload(product_id)
    name = qr_storage_name(product_id)

    png = render_qr_png(payload)
    # Storage.save() renames on collision, so clear the old file to keep the name stable
    if storage.exists(name):
        storage.delete(name)
    saved_name = storage.save(name, ContentFile(png))
    logger.info(f"Generated QR code for product {product_id} at {saved_name}")
    return storage.url(saved_name)


def delete_product_qr_code(product_id: int, storage=None) -> bool:
    """Remove a product's QR image if present"""
    storage = storage or default_storage
    name = qr_storage_name(product_id)
    if storage.exists(name):
        storage.delete(name)
        return True
    return False
