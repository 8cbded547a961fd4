from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import ItemRequestViewSet, StoreItemViewSet

router = DefaultRouter()
router.register(r'items', StoreItemViewSet, basename='store-item')
router.register(r'requests', ItemRequestViewSet, basename='item-request')

urlpatterns = [
    path('', include(router.urls)),
]
