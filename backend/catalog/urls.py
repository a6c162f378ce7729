from django.urls import path
from .views import (
    product_list_create, product_detail,
    product_regenerate_qr_code, product_by_qr_code,
)

urlpatterns = [
    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/by-qrcode/', product_by_qr_code, name='product-by-qrcode'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/qrcode/', product_regenerate_qr_code, name='product-regenerate-qrcode'),
]
