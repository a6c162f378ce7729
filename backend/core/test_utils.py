"""
Test utilities and factories for creating test data
"""
import random
import shutil
import string
import tempfile
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from backend.catalog.models import Product, ProductVideo
from backend.shopping.models import CartItem

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_admin(username=None):
        """Create a staff user allowed to manage products"""
        return TestDataFactory.create_user(username=username, is_staff=True)

    @staticmethod
    def create_product(name_en=None, category='chairs', sale_stock=5, rent_stock=2, **extra):
        """Create a test product directly in the database"""
        if not name_en:
            name_en = f'Product_{TestDataFactory.random_string(6)}'
        values = {
            'name_en': name_en,
            'name_ar': f'منتج {name_en}',
            'company': 'Acme',
            'category': category,
            'description': f'Test product {name_en}',
            'rate': 4.5,
            'cost_price': Decimal('100.00'),
            'sell_price': Decimal('150.00'),
            'rent_price': Decimal('20.00'),
            'available_for_sale': True,
            'available_for_rent': True,
            'sale_stock': sale_stock,
            'rent_stock': rent_stock,
            'images': [],
        }
        values.update(extra)
        return Product.objects.create(**values)

    @staticmethod
    def create_video(product, name=None, bio='', url=None):
        """Create a test video attached to a product"""
        if not name:
            name = f'video_{TestDataFactory.random_string(4)}.mp4'
        return ProductVideo.objects.create(
            product=product,
            name=name,
            bio=bio,
            url=url or f'/media/products/videos/{name}'
        )

    @staticmethod
    def create_cart_item(user, product, quantity=1, transaction_type='SALE'):
        """Create a test cart line"""
        return CartItem.objects.create(
            user=user,
            product=product,
            quantity=quantity,
            transaction_type=transaction_type
        )

    @staticmethod
    def image_file(name=None):
        """A small uploaded image file"""
        name = name or f'img_{TestDataFactory.random_string(6)}.png'
        return SimpleUploadedFile(name, b'\x89PNG\r\n\x1a\n' + b'0' * 32, content_type='image/png')

    @staticmethod
    def video_file(name=None):
        """A small uploaded video file"""
        name = name or f'clip_{TestDataFactory.random_string(6)}.mp4'
        return SimpleUploadedFile(name, b'\x00\x00\x00\x18ftypmp42' + b'0' * 32, content_type='video/mp4')

    @staticmethod
    def product_form_data(**overrides):
        """Multipart fields for creating a product through the API"""
        data = {
            'nameEn': 'Office Chair',
            'nameAr': 'كرسي مكتب',
            'company': 'Acme',
            'category': 'chairs',
            'description': 'Ergonomic office chair',
            'rate': '4',
            'costPrice': '100',
            'sellPrice': '150',
            'availableForSale': 'true',
            'availableForRent': 'false',
            'saleStock': '5',
            'rentStock': '0',
        }
        data.update(overrides)
        return data


class TemporaryMediaMixin:
    """Route MEDIA_ROOT to a temporary directory for the duration of a test case"""

    @classmethod
    def setUpClass(cls):
        cls._media_root = tempfile.mkdtemp(prefix='catalog-media-')
        cls._media_override = override_settings(MEDIA_ROOT=cls._media_root)
        cls._media_override.enable()
        super().setUpClass()

    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        cls._media_override.disable()
        shutil.rmtree(cls._media_root, ignore_errors=True)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
