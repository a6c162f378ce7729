"""
Test suite for the core module
Tests: service error rendering, audit logging, current user endpoint
"""
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from django.test import TestCase, RequestFactory
from rest_framework import status
from rest_framework.exceptions import ValidationError

from backend.core.exceptions import (
    api_exception_handler, NotFound, InvalidFormat, InsufficientStock, CartError,
)
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log, get_client_ip


class ExceptionHandlerTests(TestCase):
    """Test mapping of service errors to HTTP responses"""

    def handle(self, exc):
        return api_exception_handler(exc, {'view': None})

    def test_not_found(self):
        response = self.handle(NotFound('Product not found', entity='Product', identifier=3))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'Product not found'})

    def test_invalid_format(self):
        response = self.handle(InvalidFormat('Invalid or missing QR code content.'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_insufficient_stock(self):
        exc = InsufficientStock(5, requested=10, identifier=1)
        self.assertEqual(exc.message, 'Not enough stock. Only 5 units available.')
        response = self.handle(exc)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Not enough stock. Only 5 units available.')

    def test_cart_error(self):
        response = self.handle(CartError('Invalid quantity'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid quantity')

    def test_unexpected_cart_error_hides_details(self):
        response = self.handle(CartError('deadlock detected', unexpected=True))
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'Could not add to cart')

    def test_drf_exceptions_keep_default_rendering(self):
        response = self.handle(ValidationError({'nameEn': ['This field is required.']}))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('nameEn', response.data)

    def test_unhandled_exception(self):
        response = self.handle(DatabaseError('boom'))
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'An unexpected error occurred.')


class AuditLogTests(TestCase):
    """Test audit log helpers"""

    def setUp(self):
        self.factory = RequestFactory()
        self.user = TestDataFactory.create_user()

    def test_client_ip_prefers_forwarded_header(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='10.0.0.1, 10.0.0.2')
        self.assertEqual(get_client_ip(request), '10.0.0.1')

    def test_client_ip_falls_back_to_remote_addr(self):
        request = self.factory.get('/', REMOTE_ADDR='192.168.1.5')
        self.assertEqual(get_client_ip(request), '192.168.1.5')

    def test_create_audit_log(self):
        request = self.factory.post('/')
        request.user = self.user
        log = create_audit_log(
            request=request, action='create', model_name='Product',
            object_id=12, object_name='Chair', changes={'sale_stock': 5}
        )
        self.assertIsNotNone(log)
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.object_id, '12')
        self.assertEqual(log.changes, {'sale_stock': 5})

    def test_audit_log_from_instance(self):
        """Model name, id and display name are read from the product"""
        product = TestDataFactory.create_product(name_en='Rocking Chair')
        request = self.factory.patch('/', REMOTE_ADDR='10.1.1.1')
        request.user = self.user

        log = create_audit_log(request=request, action='update', instance=product, changes={'rate': 4})
        self.assertEqual(log.model_name, 'Product')
        self.assertEqual(log.object_id, str(product.id))
        self.assertEqual(log.object_name, 'Rocking Chair')
        self.assertEqual(log.ip_address, '10.1.1.1')

    def test_audit_log_for_deleted_product_snapshot(self):
        product = TestDataFactory.create_product(name_en='Old Shelf')
        product_id = product.id
        product.delete()
        product.id = product_id

        log = create_audit_log(action='delete', instance=product)
        self.assertEqual(log.object_id, str(product_id))
        self.assertIsNone(log.user)
        self.assertIsNone(log.ip_address)

    def test_anonymous_user_is_not_recorded(self):
        request = self.factory.get('/')
        request.user = AnonymousUser()
        log = create_audit_log(request=request, action='favorite_add', model_name='Product', object_id=3)
        self.assertIsNone(log.user)

    def test_missing_fields_skip_audit_log(self):
        self.assertIsNone(create_audit_log(action='create', model_name='Product'))
        self.assertEqual(AuditLog.objects.count(), 0)


class UserMeAPITests(TestCase):
    """Test the current user endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='shopper')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_me_with_favorites(self):
        product = TestDataFactory.create_product(name_en='Recliner')
        self.user.favorites.add(product)

        response = self.client.get('/api/v1/users/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'shopper')
        self.assertFalse(response.data['isStaff'])
        self.assertEqual([p['nameEn'] for p in response.data['favorites']], ['Recliner'])
        self.assertNotIn('videos', response.data['favorites'][0])

    def test_me_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/users/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
