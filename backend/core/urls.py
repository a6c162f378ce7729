from django.urls import path
from .views import user_me

urlpatterns = [
    path('users/me/', user_me, name='user-me'),
]
