"""
Test suite for the catalog module
Tests: product create/edit/delete with media, listing, QR generation and QR lookup
"""
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.files.storage import default_storage
from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework import status

from backend.core.exceptions import NotFound, InvalidFormat
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, TemporaryMediaMixin
from backend.catalog.models import Product, ProductVideo
from backend.catalog.qr_generator import build_qr_payload, render_qr_png, qr_storage_name
from backend.catalog.services import (
    create_product, edit_product, delete_product, fetch_products,
    parse_qr_payload, find_product_by_qr_payload, regenerate_qr_code,
)


def product_fields(**overrides):
    """Validated create fields keyed by model field name"""
    fields = {
        'name_en': 'Desk',
        'name_ar': 'مكتب',
        'company': 'Acme',
        'category': 'tables',
        'description': 'Standing desk',
        'cost_price': Decimal('100.00'),
        'sell_price': Decimal('150.00'),
        'available_for_sale': True,
        'sale_stock': 5,
    }
    fields.update(overrides)
    return fields


class QRGeneratorTests(TestCase):
    """Test QR payload and image rendering"""

    @override_settings(QR_CODE_BASE_URL='https://shop.example.com/products/')
    def test_payload_ends_with_product_id(self):
        self.assertEqual(build_qr_payload(42), 'https://shop.example.com/products/42')

    def test_storage_name(self):
        self.assertEqual(qr_storage_name(7), 'qrcodes/product-7.png')

    def test_render_returns_png(self):
        png = render_qr_png(build_qr_payload(1))
        self.assertTrue(png.startswith(b'\x89PNG\r\n\x1a\n'))


class ProductServiceTests(TemporaryMediaMixin, TestCase):
    """Test product service functions directly"""

    def test_create_product_stores_media_and_qr_code(self):
        """Created product gets images, video rows and a QR path containing its id"""
        product = create_product(
            product_fields(),
            image_files=[TestDataFactory.image_file('front.png'), TestDataFactory.image_file('back.png')],
            video_files=[TestDataFactory.video_file('demo.mp4')]
        )
        self.assertEqual(len(product.images), 2)
        self.assertTrue(product.images[0].endswith('front.png'))
        self.assertTrue(product.images[1].endswith('back.png'))
        self.assertEqual(product.videos.count(), 1)
        video = product.videos.first()
        self.assertEqual(video.name, 'demo.mp4')
        self.assertEqual(video.bio, '')
        self.assertIn(f'product-{product.id}', product.qr_code)
        self.assertTrue(default_storage.exists(qr_storage_name(product.id)))

    def test_create_product_defaults(self):
        """Omitted optional fields get their defaults"""
        product = create_product({
            'name_en': 'Lamp', 'name_ar': 'مصباح', 'company': 'Acme',
            'category': 'lighting', 'description': 'Desk lamp',
        })
        self.assertEqual(product.rate, 0)
        self.assertIsNone(product.sell_price)
        self.assertIsNone(product.rent_price)
        self.assertEqual(product.sale_stock, 0)
        self.assertEqual(product.rent_stock, 0)
        self.assertFalse(product.available_for_sale)
        self.assertEqual(product.images, [])

    def test_create_product_survives_qr_failure(self):
        """A QR rendering error leaves the product created without a QR path"""
        with mock.patch('backend.catalog.services.save_product_qr_code', side_effect=RuntimeError('renderer down')):
            product = create_product(product_fields())
        self.assertTrue(Product.objects.filter(pk=product.id).exists())
        self.assertIsNone(product.qr_code)

    def test_create_product_removes_media_when_insert_fails(self):
        """Stored uploads are deleted again when the product row cannot be written"""
        with mock.patch.object(Product.objects, 'create', side_effect=DatabaseError('insert failed')):
            with self.assertRaises(DatabaseError):
                create_product(
                    product_fields(),
                    image_files=[TestDataFactory.image_file('orphan.png')],
                    video_files=[TestDataFactory.video_file('orphan.mp4')]
                )
        self.assertFalse(default_storage.exists('products/images/orphan.png'))
        self.assertFalse(default_storage.exists('products/videos/orphan.mp4'))
        self.assertEqual(Product.objects.count(), 0)

    def test_create_product_removes_qr_image_when_update_fails(self):
        """A rendered QR image is deleted when its path cannot be written to the product"""
        original_save = Product.save

        def failing_qr_save(instance, *args, **kwargs):
            if kwargs.get('update_fields') == ['qr_code']:
                raise DatabaseError('update failed')
            return original_save(instance, *args, **kwargs)

        with mock.patch.object(Product, 'save', autospec=True, side_effect=failing_qr_save):
            product = create_product(product_fields())

        self.assertIsNone(product.qr_code)
        self.assertFalse(default_storage.exists(qr_storage_name(product.id)))

    def test_edit_product_removes_new_media_when_write_fails(self):
        product = TestDataFactory.create_product(images=['/media/products/images/kept.png'])
        with mock.patch.object(ProductVideo.objects, 'bulk_create', side_effect=DatabaseError('insert failed')):
            with self.assertRaises(DatabaseError):
                edit_product(
                    product.id, {'name_en': 'Renamed'},
                    new_image_files=[TestDataFactory.image_file('late.png')],
                    new_video_files=[TestDataFactory.video_file('late.mp4')]
                )
        self.assertFalse(default_storage.exists('products/images/late.png'))
        self.assertFalse(default_storage.exists('products/videos/late.mp4'))
        product.refresh_from_db()
        self.assertEqual(product.images, ['/media/products/images/kept.png'])
        self.assertNotEqual(product.name_en, 'Renamed')

    def test_edit_product_applies_falsy_values(self):
        """Zero stock and false flags are written when present"""
        product = TestDataFactory.create_product(sale_stock=5)
        updated = edit_product(product.id, {'sale_stock': 0, 'available_for_sale': False})
        self.assertEqual(updated.sale_stock, 0)
        self.assertFalse(updated.available_for_sale)

    def test_edit_product_leaves_absent_fields(self):
        product = TestDataFactory.create_product(name_en='Sofa', sale_stock=5)
        updated = edit_product(product.id, {'category': 'sofas'})
        self.assertEqual(updated.category, 'sofas')
        self.assertEqual(updated.name_en, 'Sofa')
        self.assertEqual(updated.sale_stock, 5)

    def test_edit_product_appends_images_and_videos(self):
        """New media is added after the existing media"""
        product = TestDataFactory.create_product(images=['/media/products/images/old.png'])
        TestDataFactory.create_video(product, name='old.mp4')

        updated = edit_product(
            product.id, {},
            new_image_files=[TestDataFactory.image_file('new.png')],
            new_video_files=[TestDataFactory.video_file('new.mp4')]
        )
        self.assertEqual(len(updated.images), 2)
        self.assertEqual(updated.images[0], '/media/products/images/old.png')
        self.assertTrue(updated.images[1].endswith('new.png'))
        self.assertEqual(
            sorted(updated.videos.values_list('name', flat=True)),
            ['new.mp4', 'old.mp4']
        )

    def test_edit_product_with_no_changes(self):
        product = TestDataFactory.create_product(name_en='Stool')
        updated = edit_product(product.id, {})
        self.assertEqual(updated.name_en, 'Stool')

    def test_edit_missing_product(self):
        with self.assertRaises(NotFound):
            edit_product(999999, {'name_en': 'Ghost'})

    def test_delete_product_removes_videos_and_qr(self):
        product = create_product(product_fields(), video_files=[TestDataFactory.video_file()])
        product_id = product.id
        self.assertTrue(default_storage.exists(qr_storage_name(product_id)))

        deleted = delete_product(product_id)
        self.assertEqual(deleted.id, product_id)
        self.assertFalse(Product.objects.filter(pk=product_id).exists())
        self.assertFalse(ProductVideo.objects.filter(product_id=product_id).exists())
        self.assertFalse(default_storage.exists(qr_storage_name(product_id)))

    def test_delete_missing_product(self):
        with self.assertRaises(NotFound):
            delete_product(999999)

    def test_fetch_products_by_category_newest_first(self):
        first = TestDataFactory.create_product(category='chairs')
        second = TestDataFactory.create_product(category='chairs')
        TestDataFactory.create_product(category='tables')

        products = list(fetch_products(category='chairs'))
        self.assertEqual([p.id for p in products], [second.id, first.id])
        self.assertEqual(len(fetch_products()), 3)

    def test_regenerate_qr_code(self):
        product = TestDataFactory.create_product()
        self.assertIsNone(product.qr_code)

        updated = regenerate_qr_code(product.id)
        self.assertIn(f'product-{product.id}', updated.qr_code)

        # Repeating keeps the same file name
        again = regenerate_qr_code(product.id)
        self.assertEqual(again.qr_code, updated.qr_code)


class QRLookupTests(TestCase):
    """Test QR payload parsing and product lookup"""

    def test_parse_valid_payload(self):
        self.assertEqual(parse_qr_payload('https://your-app-domain.com/products/42'), 42)
        self.assertEqual(parse_qr_payload('42'), 42)

    def test_parse_invalid_payloads(self):
        for payload in ['https://x/products/abc', 'https://x/products/0', 'https://x/products/-3',
                        'https://x/products/42/', 'https://x/products/4.2']:
            with self.subTest(payload=payload):
                with self.assertRaises(InvalidFormat) as ctx:
                    parse_qr_payload(payload)
                self.assertEqual(
                    ctx.exception.message,
                    'Invalid QR code format: Could not extract a valid product ID.'
                )

    def test_parse_missing_payload(self):
        for payload in ['', None]:
            with self.subTest(payload=payload):
                with self.assertRaises(InvalidFormat) as ctx:
                    parse_qr_payload(payload)
                self.assertEqual(ctx.exception.message, 'Invalid or missing QR code content.')

    def test_find_product(self):
        product = TestDataFactory.create_product()
        found = find_product_by_qr_payload(build_qr_payload(product.id))
        self.assertEqual(found.id, product.id)

    def test_find_missing_product(self):
        with self.assertRaises(NotFound) as ctx:
            find_product_by_qr_payload('https://your-app-domain.com/products/999999')
        self.assertEqual(ctx.exception.message, 'Product not found for the given QR code.')


class ProductAPITests(TemporaryMediaMixin, TestCase):
    """Test product API endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_product(self):
        data = TestDataFactory.product_form_data()
        data['images'] = [TestDataFactory.image_file('a.png'), TestDataFactory.image_file('b.png')]
        data['videos'] = [TestDataFactory.video_file('tour.mp4')]

        response = self.client.post('/api/v1/products/', data, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['message'], 'Product created successfully')

        product = response.data['product']
        self.assertEqual(product['nameEn'], 'Office Chair')
        self.assertEqual(product['sellPrice'], Decimal('150'))
        self.assertEqual(product['saleStock'], 5)
        self.assertTrue(product['availableForSale'])
        self.assertFalse(product['availableForRent'])
        self.assertEqual(len(product['images']), 2)
        self.assertEqual(len(product['videos']), 1)
        self.assertEqual(product['videos'][0]['name'], 'tour.mp4')
        self.assertIn(f"product-{product['id']}", product['qrCode'])

        self.assertTrue(AuditLog.objects.filter(action='create', object_id=str(product['id'])).exists())

    def test_create_product_missing_required_fields(self):
        data = TestDataFactory.product_form_data()
        del data['nameEn']
        response = self.client.post('/api/v1/products/', data, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('nameEn', response.data)
        self.assertEqual(Product.objects.count(), 0)

    def test_create_product_rejects_negative_stock(self):
        data = TestDataFactory.product_form_data(saleStock='-1')
        response = self.client.post('/api/v1/products/', data, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('saleStock', response.data)

    def test_create_product_without_qr_code(self):
        """QR failure still answers 201 with the product"""
        with mock.patch('backend.catalog.services.save_product_qr_code', side_effect=RuntimeError('renderer down')):
            response = self.client.post('/api/v1/products/', TestDataFactory.product_form_data(), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['product']['qrCode'])

    def test_create_product_storage_failure(self):
        with mock.patch('backend.catalog.views.create_product', side_effect=OSError('disk full')):
            response = self.client.post('/api/v1/products/', TestDataFactory.product_form_data(), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'Failed to create product.')

    def test_create_requires_staff(self):
        user = TestDataFactory.create_user()
        client = AuthenticatedAPIClient().authenticate_user(user)
        response = client.post('/api/v1/products/', TestDataFactory.product_form_data(), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_requires_authentication(self):
        client = AuthenticatedAPIClient()
        response = client.post('/api/v1/products/', TestDataFactory.product_form_data(), format='multipart')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_edit_product_sparse(self):
        product = TestDataFactory.create_product(name_en='Chair', sale_stock=5)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'saleStock': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Product updated successfully')
        self.assertEqual(response.data['product']['saleStock'], 0)
        self.assertEqual(response.data['product']['nameEn'], 'Chair')

        product.refresh_from_db()
        self.assertEqual(product.sale_stock, 0)

    def test_edit_product_appends_images(self):
        product = TestDataFactory.create_product(images=['/media/products/images/old.png'])
        response = self.client.patch(
            f'/api/v1/products/{product.id}/',
            {'images': [TestDataFactory.image_file('extra.png')]},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        images = response.data['product']['images']
        self.assertEqual(images[0], '/media/products/images/old.png')
        self.assertTrue(images[1].endswith('extra.png'))

    def test_edit_missing_product(self):
        response = self.client.patch('/api/v1/products/999999/', {'nameEn': 'Ghost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Product not found')

    def test_delete_product(self):
        product = TestDataFactory.create_product()
        TestDataFactory.create_video(product)

        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Product deleted successfully')
        self.assertEqual(response.data['product']['id'], product.id)
        self.assertFalse(Product.objects.filter(pk=product.id).exists())
        self.assertEqual(ProductVideo.objects.count(), 0)

    def test_delete_missing_product(self):
        response = self.client.delete('/api/v1/products/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_requires_staff(self):
        product = TestDataFactory.create_product()
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_user())
        response = client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Product.objects.filter(pk=product.id).exists())

    def test_list_products_is_public(self):
        TestDataFactory.create_product()
        response = AuthenticatedAPIClient().get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['products']), 1)
        self.assertNotIn('videos', response.data['products'][0])

    def test_list_products_with_videos_and_category(self):
        chair = TestDataFactory.create_product(category='chairs')
        TestDataFactory.create_video(chair, name='spin.mp4')
        TestDataFactory.create_product(category='tables')

        response = self.client.get('/api/v1/products/', {'category': 'chairs', 'withVideos': 'true'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        products = response.data['products']
        self.assertEqual(len(products), 1)
        self.assertEqual(products[0]['id'], chair.id)
        self.assertEqual(products[0]['videos'][0]['name'], 'spin.mp4')

    def test_list_products_filters(self):
        TestDataFactory.create_product(name_en='Oak Table', company='Woodworks')
        TestDataFactory.create_product(name_en='Steel Chair', company='Metalco', available_for_rent=False)

        response = self.client.get('/api/v1/products/', {'company': 'woodworks'})
        self.assertEqual([p['nameEn'] for p in response.data['products']], ['Oak Table'])

        response = self.client.get('/api/v1/products/', {'search': 'steel'})
        self.assertEqual([p['nameEn'] for p in response.data['products']], ['Steel Chair'])

        response = self.client.get('/api/v1/products/', {'availableForRent': 'false'})
        self.assertEqual([p['nameEn'] for p in response.data['products']], ['Steel Chair'])

    def test_list_products_empty(self):
        response = self.client.get('/api/v1/products/', {'category': 'nothing-here'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['products'], [])

    def test_regenerate_qr_code(self):
        product = TestDataFactory.create_product()
        response = self.client.post(f'/api/v1/products/{product.id}/qrcode/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(f'product-{product.id}', response.data['product']['qrCode'])

    def test_regenerate_qr_code_missing_product(self):
        response = self.client.post('/api/v1/products/999999/qrcode/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProductByQRCodeAPITests(TestCase):
    """Test the QR lookup endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_lookup_product(self):
        product = TestDataFactory.create_product(name_en='Armchair')
        TestDataFactory.create_video(product)
        response = self.client.get('/api/v1/products/by-qrcode/', {'code': build_qr_payload(product.id)})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], product.id)
        self.assertEqual(response.data['nameEn'], 'Armchair')
        self.assertEqual(len(response.data['videos']), 1)

    def test_lookup_invalid_code(self):
        response = self.client.get('/api/v1/products/by-qrcode/', {'code': 'https://your-app-domain.com/products/abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid QR code format: Could not extract a valid product ID.')

    def test_lookup_missing_code(self):
        response = self.client.get('/api/v1/products/by-qrcode/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_lookup_unknown_product(self):
        response = self.client.get('/api/v1/products/by-qrcode/', {'code': 'https://your-app-domain.com/products/999999'})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Product not found for the given QR code.')

    def test_lookup_requires_authentication(self):
        response = AuthenticatedAPIClient().get('/api/v1/products/by-qrcode/', {'code': '1'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class RegenerateQRCodesCommandTests(TemporaryMediaMixin, TestCase):
    """Test the regenerate_qr_codes management command"""

    def test_missing_only(self):
        without_qr = TestDataFactory.create_product()
        with_qr = TestDataFactory.create_product(qr_code='/media/qrcodes/custom.png')

        out = StringIO()
        call_command('regenerate_qr_codes', '--missing-only', stdout=out)

        without_qr.refresh_from_db()
        with_qr.refresh_from_db()
        self.assertIn(f'product-{without_qr.id}', without_qr.qr_code)
        self.assertEqual(with_qr.qr_code, '/media/qrcodes/custom.png')
        self.assertIn('1 QR codes generated, 0 errors', out.getvalue())

    def test_single_product(self):
        product = TestDataFactory.create_product()
        call_command('regenerate_qr_codes', '--product-id', str(product.id), stdout=StringIO())
        product.refresh_from_db()
        self.assertIsNotNone(product.qr_code)
