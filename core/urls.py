from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import RegistrationRequestViewSet, StudentClassroomView, TutorStudentsView, UserViewSet

router = DefaultRouter()
router.register(r'users', UserViewSet, basename='user')
router.register(r'registration-requests', RegistrationRequestViewSet, basename='registration-request')


urlpatterns = [
    path('tutor/students/', TutorStudentsView.as_view(), name='tutor-students'),
    path('student/classroom/', StudentClassroomView.as_view(), name='student-classroom'),
    # Router URLs
    path('', include(router.urls)),
]
