from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from decimal import Decimal


class Product(models.Model):
    """Product master with bilingual names, rent/sale pools and media paths"""
    name_en = models.CharField(max_length=200, db_index=True)
    name_ar = models.CharField(max_length=200)
    company = models.CharField(max_length=200)
    category = models.CharField(max_length=100, db_index=True)
    description = models.TextField()
    rate = models.FloatField(default=0, validators=[MinValueValidator(0), MaxValueValidator(5)])
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True,
                                     validators=[MinValueValidator(Decimal('0.00'))])
    rent_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True,
                                     validators=[MinValueValidator(Decimal('0.00'))])
    sell_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True,
                                     validators=[MinValueValidator(Decimal('0.00'))])
    available_for_rent = models.BooleanField(default=False)
    available_for_sale = models.BooleanField(default=False)
    rent_stock = models.PositiveIntegerField(default=0)
    sale_stock = models.PositiveIntegerField(default=0)
    images = models.JSONField(default=list, blank=True)  # ordered stored paths, append-only via edit
    qr_code = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name_en} ({self.category})"

    def stock_for(self, transaction_type):
        """Stock pool a cart line of the given transaction type draws from"""
        if transaction_type == 'SALE':
            return self.sale_stock
        return self.rent_stock

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']


class ProductVideo(models.Model):
    """Videos attached to a product, deleted with it"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='videos')
    name = models.CharField(max_length=255)
    bio = models.TextField(blank=True, default='')
    url = models.CharField(max_length=500)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product.name_en} - {self.name}"

    class Meta:
        db_table = 'product_videos'
        ordering = ['id']
