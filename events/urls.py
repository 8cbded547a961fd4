from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import EventViewSet, MyEventsViewSet

router = SimpleRouter()
router.register(r'mine', MyEventsViewSet, basename='my-event')
router.register(r'', EventViewSet, basename='event')

urlpatterns = [
    path('', include(router.urls)),
]
