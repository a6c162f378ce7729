"""
Test suite for the shopping module
Tests: cart upserts with stock checks, quantity-zero removal, favorites
"""
from unittest import mock

from django.db import DatabaseError, IntegrityError
from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import NotFound, InsufficientStock, CartError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, TemporaryMediaMixin
from backend.shopping.models import CartItem
from backend.shopping.services import add_to_cart, add_to_favorites, list_cart


class AddToCartServiceTests(TestCase):
    """Test add_to_cart directly"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(sale_stock=5, rent_stock=2)

    def test_add_new_item(self):
        result = add_to_cart(self.user.id, self.product.id, 3)
        self.assertEqual(result.message, 'Product added to cart.')
        self.assertTrue(result.created)
        self.assertEqual(result.item.quantity, 3)
        self.assertEqual(result.item.transaction_type, 'SALE')

    def test_update_existing_item_overwrites_quantity(self):
        TestDataFactory.create_cart_item(self.user, self.product, quantity=1)
        result = add_to_cart(self.user.id, self.product.id, 4)
        self.assertEqual(result.message, 'Cart quantity updated.')
        self.assertFalse(result.created)
        self.assertEqual(CartItem.objects.get(user=self.user, product=self.product).quantity, 4)
        self.assertEqual(CartItem.objects.count(), 1)

    def test_update_keeps_transaction_type(self):
        TestDataFactory.create_cart_item(self.user, self.product, quantity=1, transaction_type='RENT')
        add_to_cart(self.user.id, self.product.id, 2, 'SALE')
        self.assertEqual(CartItem.objects.get(user=self.user, product=self.product).transaction_type, 'RENT')

    def test_update_checks_stock_of_existing_line_type(self):
        """Posting another transaction type cannot push a line past its own stock pool"""
        product = TestDataFactory.create_product(sale_stock=1, rent_stock=10)
        add_to_cart(self.user.id, product.id, 1, 'SALE')

        with self.assertRaises(InsufficientStock) as ctx:
            add_to_cart(self.user.id, product.id, 10, 'RENT')
        self.assertEqual(ctx.exception.available, 1)

        item = CartItem.objects.get(user=self.user, product=product)
        self.assertEqual(item.transaction_type, 'SALE')
        self.assertEqual(item.quantity, 1)
        self.assertLessEqual(item.quantity, product.stock_for(item.transaction_type))

    def test_update_rent_line_uses_rent_stock(self):
        TestDataFactory.create_cart_item(self.user, self.product, quantity=1, transaction_type='RENT')
        with self.assertRaises(InsufficientStock) as ctx:
            add_to_cart(self.user.id, self.product.id, 4, 'SALE')
        self.assertEqual(ctx.exception.available, 2)

    def test_quantity_equal_to_stock_is_allowed(self):
        result = add_to_cart(self.user.id, self.product.id, 5)
        self.assertEqual(result.item.quantity, 5)

    def test_insufficient_sale_stock(self):
        with self.assertRaises(InsufficientStock) as ctx:
            add_to_cart(self.user.id, self.product.id, 6)
        self.assertEqual(ctx.exception.message, 'Not enough stock. Only 5 units available.')
        self.assertEqual(ctx.exception.available, 5)
        self.assertFalse(CartItem.objects.exists())

    def test_rent_uses_rent_stock(self):
        with self.assertRaises(InsufficientStock) as ctx:
            add_to_cart(self.user.id, self.product.id, 3, 'RENT')
        self.assertEqual(ctx.exception.available, 2)

        result = add_to_cart(self.user.id, self.product.id, 2, 'RENT')
        self.assertEqual(result.item.transaction_type, 'RENT')

    def test_insufficient_stock_leaves_existing_item(self):
        TestDataFactory.create_cart_item(self.user, self.product, quantity=2)
        with self.assertRaises(InsufficientStock):
            add_to_cart(self.user.id, self.product.id, 10)
        self.assertEqual(CartItem.objects.get(user=self.user, product=self.product).quantity, 2)

    def test_zero_quantity_removes_item(self):
        TestDataFactory.create_cart_item(self.user, self.product, quantity=2)
        result = add_to_cart(self.user.id, self.product.id, 0)
        self.assertEqual(result.message, 'Product removed from cart.')
        self.assertIsNone(result.item)
        self.assertFalse(CartItem.objects.exists())

    def test_zero_quantity_without_item(self):
        result = add_to_cart(self.user.id, self.product.id, 0)
        self.assertEqual(result.message, 'Product not found in cart, nothing to remove.')
        self.assertIsNone(result.item)
        self.assertFalse(CartItem.objects.exists())

    def test_zero_quantity_with_no_stock(self):
        empty = TestDataFactory.create_product(sale_stock=0)
        TestDataFactory.create_cart_item(self.user, empty, quantity=1)
        result = add_to_cart(self.user.id, empty.id, 0)
        self.assertEqual(result.message, 'Product removed from cart.')

    def test_invalid_quantity(self):
        for quantity in [-1, '3', 1.5, True, None]:
            with self.subTest(quantity=quantity):
                with self.assertRaises(CartError) as ctx:
                    add_to_cart(self.user.id, self.product.id, quantity)
                self.assertEqual(ctx.exception.message, 'Invalid quantity')
                self.assertFalse(ctx.exception.unexpected)
        self.assertFalse(CartItem.objects.exists())

    def test_missing_product(self):
        with self.assertRaises(NotFound) as ctx:
            add_to_cart(self.user.id, 999999, 1)
        self.assertEqual(ctx.exception.message, 'Product not found')

    def test_datastore_failure_is_wrapped(self):
        with mock.patch.object(CartItem.objects, 'update_or_create', side_effect=DatabaseError('connection lost')):
            with self.assertRaises(CartError) as ctx:
                add_to_cart(self.user.id, self.product.id, 1)
        self.assertTrue(ctx.exception.unexpected)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.message, 'connection lost')

    def test_list_cart(self):
        other = TestDataFactory.create_product()
        TestDataFactory.create_cart_item(self.user, self.product)
        TestDataFactory.create_cart_item(self.user, other)
        TestDataFactory.create_cart_item(TestDataFactory.create_user(), other)
        self.assertEqual(list_cart(self.user.id).count(), 2)


class FavoritesServiceTests(TestCase):
    """Test add_to_favorites directly"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product()

    def test_add_favorite(self):
        user = add_to_favorites(self.user.id, self.product.id)
        self.assertEqual([p.id for p in user.favorites.all()], [self.product.id])

    def test_add_favorite_is_idempotent(self):
        add_to_favorites(self.user.id, self.product.id)
        user = add_to_favorites(self.user.id, self.product.id)
        self.assertEqual(user.favorites.count(), 1)

    def test_add_missing_product_raises_integrity_error(self):
        with self.assertRaises(IntegrityError):
            add_to_favorites(self.user.id, 999999)
        self.assertEqual(self.user.favorites.count(), 0)


class CartAPITests(TemporaryMediaMixin, TestCase):
    """Test cart API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(sale_stock=5)

    def test_stock_limited_cart_flow(self):
        """Adding within stock succeeds, exceeding it is rejected without changing the cart"""
        admin_client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_admin())
        response = admin_client.post('/api/v1/products/', TestDataFactory.product_form_data(
            costPrice='100', sellPrice='150', saleStock='5'
        ), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product_id = response.data['product']['id']

        response = self.client.post('/api/v1/cart/', {'productId': product_id, 'quantity': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Product added to cart.')
        self.assertEqual(response.data['cartItem']['quantity'], 3)

        response = self.client.post('/api/v1/cart/', {'productId': product_id, 'quantity': 10}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Not enough stock. Only 5 units available.')
        self.assertEqual(CartItem.objects.get(user=self.user, product_id=product_id).quantity, 3)

    def test_add_default_quantity(self):
        response = self.client.post('/api/v1/cart/', {'productId': self.product.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['cartItem']['quantity'], 1)
        self.assertEqual(response.data['cartItem']['transactionType'], 'SALE')
        self.assertTrue(AuditLog.objects.filter(action='cart_add', model_name='CartItem').exists())

    def test_update_quantity(self):
        TestDataFactory.create_cart_item(self.user, self.product, quantity=1)
        response = self.client.post('/api/v1/cart/', {'productId': self.product.id, 'quantity': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Cart quantity updated.')
        self.assertEqual(response.data['cartItem']['quantity'], 2)

    def test_remove_with_zero_quantity(self):
        TestDataFactory.create_cart_item(self.user, self.product, quantity=1)
        response = self.client.post('/api/v1/cart/', {'productId': self.product.id, 'quantity': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Product removed from cart.')
        self.assertNotIn('cartItem', response.data)
        self.assertFalse(CartItem.objects.exists())

    def test_missing_product_id(self):
        response = self.client.post('/api/v1/cart/', {'quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(str(response.data['productId'][0]), 'Product ID is required')

    def test_negative_quantity(self):
        response = self.client.post('/api/v1/cart/', {'productId': self.product.id, 'quantity': -2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data)

    def test_unknown_product(self):
        response = self.client.post('/api/v1/cart/', {'productId': 999999, 'quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Product not found')

    def test_datastore_failure(self):
        with mock.patch.object(CartItem.objects, 'update_or_create', side_effect=DatabaseError('connection lost')):
            response = self.client.post('/api/v1/cart/', {'productId': self.product.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'Could not add to cart')

    def test_list_cart(self):
        TestDataFactory.create_cart_item(self.user, self.product, quantity=2)
        response = self.client.get('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(response.data['items'][0]['productId'], self.product.id)
        self.assertEqual(response.data['items'][0]['quantity'], 2)

    def test_cart_requires_authentication(self):
        response = AuthenticatedAPIClient().get('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class FavoritesAPITests(TestCase):
    """Test the favorites endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(name_en='Bean Bag')

    def test_add_favorite(self):
        response = self.client.post(f'/api/v1/products/{self.product.id}/favorites/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Product added to favorites')
        favorites = response.data['result']['favorites']
        self.assertEqual([p['nameEn'] for p in favorites], ['Bean Bag'])

    def test_add_favorite_twice(self):
        self.client.post(f'/api/v1/products/{self.product.id}/favorites/')
        response = self.client.post(f'/api/v1/products/{self.product.id}/favorites/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['result']['favorites']), 1)

    def test_add_missing_product(self):
        response = self.client.post('/api/v1/products/999999/favorites/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.user.favorites.count(), 0)
