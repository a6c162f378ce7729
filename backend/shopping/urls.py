from django.urls import path
from .views import cart_list_add, product_add_favorite

urlpatterns = [
    # Cart endpoints
    path('cart/', cart_list_add, name='cart-list-add'),

    # Favorites endpoints
    path('products/<int:product_id>/favorites/', product_add_favorite, name='product-add-favorite'),
]
