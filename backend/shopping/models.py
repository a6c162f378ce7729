from django.db import models
from backend.catalog.models import Product
from backend.core.models import User


class CartItem(models.Model):
    """One cart line per user/product pair"""
    TRANSACTION_TYPE_CHOICES = [
        ('SALE', 'Sale'),
        ('RENT', 'Rent'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='cart_items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='cart_items')
    quantity = models.PositiveIntegerField(default=1)
    transaction_type = models.CharField(max_length=10, choices=TRANSACTION_TYPE_CHOICES, default='SALE')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user} - {self.product.name_en} x{self.quantity} ({self.transaction_type})"

    class Meta:
        db_table = 'cart_items'
        ordering = ['-updated_at']
        unique_together = [['user', 'product']]
