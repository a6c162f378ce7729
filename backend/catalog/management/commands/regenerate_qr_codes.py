from django.core.management.base import BaseCommand, CommandError
from django.db.models import Q
from ...models import Product
from ...services import regenerate_qr_code


class Command(BaseCommand):
    help = 'Regenerate product QR code images (all products, only those missing one, or a single product)'

    def add_arguments(self, parser):
        parser.add_argument('--missing-only', action='store_true',
                            help='Only products that have no QR code path yet')
        parser.add_argument('--product-id', type=int, help='Regenerate a single product')

    def handle(self, *args, **options):
        products = Product.objects.all().order_by('id')
        if options.get('product_id'):
            products = products.filter(pk=options['product_id'])
            if not products.exists():
                raise CommandError(f"Product {options['product_id']} does not exist")
        if options.get('missing_only'):
            products = products.filter(Q(qr_code__isnull=True) | Q(qr_code=''))

        generated_count = 0
        error_count = 0

        self.stdout.write(f'Found {products.count()} products to process')

        for product in products:
            try:
                updated = regenerate_qr_code(product.id)
                generated_count += 1
                self.stdout.write(f'  ✓ {product.name_en} (ID: {product.id}) -> {updated.qr_code}')
            except Exception as e:
                error_count += 1
                self.stdout.write(self.style.ERROR(f'  ✗ Error generating QR code for {product.name_en} (ID: {product.id}): {str(e)}'))

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {generated_count} QR codes generated, {error_count} errors'
        ))
