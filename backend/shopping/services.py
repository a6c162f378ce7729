"""
Cart and favorites mutations for the current user.

Cart writes run in one transaction with the product row locked, so the
stock check and the upsert see the same stock figures.
"""
import logging
from collections import namedtuple

from django.db import connection, transaction, DatabaseError

from backend.catalog.models import Product
from backend.core.exceptions import ServiceError, NotFound, InsufficientStock, CartError
from backend.core.models import User
from .models import CartItem

logger = logging.getLogger(__name__)

CartResult = namedtuple('CartResult', ['message', 'item', 'created'])


def add_to_cart(user_id, product_id, quantity=1, transaction_type='SALE'):
    """
    Set the quantity of a product in the user's cart.

    quantity=0 removes the line. An existing line only gets its quantity
    overwritten; its transaction type is kept and its stock pool is the one
    checked.

    Returns:
        CartResult(message, item, created); item is None when nothing remains in the cart

    Raises:
        CartError: quantity is not a non-negative integer, or the datastore failed
        NotFound: product does not exist
        InsufficientStock: quantity exceeds the stock pool of the line's transaction type
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise CartError('Invalid quantity', identifier=product_id)

    try:
        with transaction.atomic():
            product = Product.objects.select_for_update().filter(pk=product_id).first()
            if product is None:
                raise NotFound('Product not found', entity='Product', identifier=product_id)

            existing = CartItem.objects.select_for_update().filter(user_id=user_id, product_id=product_id).first()

            # An existing line keeps its transaction type, so it draws from that pool
            pool_type = existing.transaction_type if existing else transaction_type
            stock = product.stock_for(pool_type)
            if quantity > stock:
                raise InsufficientStock(stock, requested=quantity, identifier=product_id)

            if quantity == 0:
                if existing is None:
                    return CartResult('Product not found in cart, nothing to remove.', None, False)
                existing.delete()
                return CartResult('Product removed from cart.', None, False)

            item, created = CartItem.objects.update_or_create(
                user_id=user_id,
                product_id=product_id,
                defaults={'quantity': quantity},
                create_defaults={'quantity': quantity, 'transaction_type': transaction_type},
            )
    except ServiceError:
        raise
    except DatabaseError as e:
        logger.error(f"Cart update failed for user {user_id}, product {product_id}: {str(e)}", exc_info=True)
        raise CartError(str(e) or None, identifier=product_id, unexpected=True) from e

    if created:
        return CartResult('Product added to cart.', item, True)
    return CartResult('Cart quantity updated.', item, False)


def list_cart(user_id):
    """Cart lines of a user with their products, most recently changed first"""
    return CartItem.objects.filter(user_id=user_id).select_related('product').order_by('-updated_at', '-id')


def add_to_favorites(user_id, product_id):
    """
    Connect a product to the user's favorites and return the user.

    There is no product pre-check: a missing product is reported by the
    database's foreign key constraint as IntegrityError, checked right away
    instead of at commit so the failed link is rolled back with this call.
    """
    user = User.objects.get(pk=user_id)
    through_table = User.favorites.through._meta.db_table

    with transaction.atomic():
        user.favorites.add(product_id)
        connection.check_constraints(table_names=[through_table])

    return User.objects.prefetch_related('favorites').get(pk=user_id)
