import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, OpenApiResponse, inline_serializer
from rest_framework import filters, generics, mixins, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer

from loyaltypoints.services import adjust_points

from . import services
from .authentication import clear_jwt_cookies, set_jwt_cookies
from .exceptions import NotFound, Unauthorized
from .models import RegistrationRequest
from .permissions import IsAdmin, IsStudent, IsTutor, IsTutorOrAdmin, can_view_user
from .serializers import (
    ClassmateSerializer, ClassroomSerializer, CustomTokenObtainPairSerializer, LoginSerializer,
    PasswordSerializer, PointsAdjustmentSerializer, RegistrationRejectSerializer,
    RegistrationRequestSerializer, RoleSerializer, StudentCreateSerializer, TutorSummarySerializer,
    UserCreateSerializer, UserSerializer, UserUpdateSerializer,
)
from .throttles import LoginRateThrottle

logger = logging.getLogger(__name__)
User = get_user_model()


# --------------------------------------------------------------------------
# Session endpoints
# --------------------------------------------------------------------------

class LoginView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [LoginRateThrottle]

    @extend_schema(
        request=LoginSerializer,
        responses={
            200: inline_serializer('LoginResponse', {
                'message': serializers.CharField(),
                'user': UserSerializer(),
            }),
            401: OpenApiResponse(description="Invalid username or password"),
        },
    )
    def post(self, request):
        serializer = CustomTokenObtainPairSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.user

        response = Response({
            'message': 'Login successful',
            'user': UserSerializer(user).data,
        }, status=status.HTTP_200_OK)
        logger.info(f"User {user.username} logged in")
        return set_jwt_cookies(response, serializer.validated_data['access'], serializer.validated_data['refresh'])


class LogoutView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(request=None, responses={200: OpenApiResponse(description="Cookies cleared")})
    def post(self, request):
        response = Response({'message': 'Logged out successfully'}, status=status.HTTP_200_OK)
        return clear_jwt_cookies(response)


class RefreshView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(request=None, responses={200: OpenApiResponse(description="New access cookie set")})
    def post(self, request):
        raw_refresh = request.COOKIES.get(settings.JWT_REFRESH_COOKIE) or request.data.get('refresh')
        if not raw_refresh:
            raise Unauthorized("Refresh token missing")

        serializer = TokenRefreshSerializer(data={'refresh': raw_refresh})
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            raise InvalidToken(e.args[0])

        response = Response({'message': 'Token refreshed'}, status=status.HTTP_200_OK)
        return set_jwt_cookies(response, serializer.validated_data['access'], serializer.validated_data.get('refresh'))


class MeView(generics.RetrieveAPIView):
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user


class RegisterView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(request=RegistrationRequestSerializer, responses={201: RegistrationRequestSerializer})
    def post(self, request):
        serializer = RegistrationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        registration = services.submit_registration(**serializer.validated_data)
        return Response({
            'message': 'Registration request submitted. An administrator will review it.',
            'request': RegistrationRequestSerializer(registration).data,
        }, status=status.HTTP_201_CREATED)


class RegistrationRequestViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = RegistrationRequest.objects.all()
    serializer_class = RegistrationRequestSerializer
    permission_classes = [IsAuthenticated, IsAdmin]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['status', 'requested_role']
    search_fields = ['username', 'email', 'first_name', 'last_name']

    @extend_schema(request=None, responses={200: UserSerializer})
    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        registration, user = services.approve_registration(request.user, pk)
        return Response({
            'message': 'Registration request approved successfully',
            'request': RegistrationRequestSerializer(registration).data,
            'user': UserSerializer(user).data,
        })

    @extend_schema(request=RegistrationRejectSerializer, responses={200: RegistrationRequestSerializer})
    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        serializer = RegistrationRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        registration = services.reject_registration(request.user, pk, serializer.validated_data['reason'])
        return Response({
            'message': 'Registration request rejected successfully',
            'request': RegistrationRequestSerializer(registration).data,
        })


# --------------------------------------------------------------------------
# Users
# --------------------------------------------------------------------------

class UserViewSet(mixins.CreateModelMixin,
                  mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.UpdateModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    """
    Account management. Admins manage every account; tutors can list
    their own students and adjust their points.
    """
    serializer_class = UserSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['role', 'tutor']
    search_fields = ['username', 'first_name', 'last_name', 'email']
    ordering_fields = ['date_joined', 'points', 'username']
    ordering = ['-date_joined']

    def get_permissions(self):
        if self.action in ['list', 'points']:
            permission_classes = [IsAuthenticated, IsTutorOrAdmin]
        elif self.action == 'retrieve':
            permission_classes = [IsAuthenticated]
        else:
            permission_classes = [IsAuthenticated, IsAdmin]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        user = self.request.user
        queryset = User.objects.select_related('tutor')
        if self.action == 'list' and user.role == User.Role.TUTOR:
            return queryset.filter(role=User.Role.STUDENT, tutor=user)
        return queryset

    def get_serializer_class(self):
        if self.action == 'create':
            return UserCreateSerializer
        if self.action in ['update', 'partial_update']:
            return UserUpdateSerializer
        return UserSerializer

    def get_object(self):
        obj = super().get_object()
        can_view_user(self.request.user, obj).enforce()
        return obj

    @extend_schema(request=UserCreateSerializer, responses={201: UserSerializer})
    def create(self, request, *args, **kwargs):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        user = services.create_user(
            data['username'], data['email'], data['password'],
            role=data['role'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            tutor=data.get('tutor_id'),
        )
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=UserUpdateSerializer, responses={200: UserSerializer})
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        serializer = UserUpdateSerializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response(UserSerializer(user).data)

    def perform_destroy(self, instance):
        services.delete_user(self.request.user, instance)

    @extend_schema(request=PasswordSerializer, responses={200: OpenApiResponse(description="Password changed")})
    @action(detail=True, methods=['post'])
    def password(self, request, pk=None):
        user = self.get_object()
        serializer = PasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.set_password(user, serializer.validated_data['password'])
        return Response({'message': 'Password updated successfully'})

    @extend_schema(request=RoleSerializer, responses={200: UserSerializer})
    @action(detail=True, methods=['post'])
    def role(self, request, pk=None):
        user = self.get_object()
        serializer = RoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.change_role(request.user, user, serializer.validated_data['role'])
        return Response({
            'message': f"Role changed to {user.role}",
            'user': UserSerializer(user).data,
        })

    @extend_schema(
        request=PointsAdjustmentSerializer,
        responses={
            200: inline_serializer('PointsAdjustmentResponse', {
                'message': serializers.CharField(),
                'user': UserSerializer(),
            }),
            400: OpenApiResponse(description="Invalid points or action"),
            403: OpenApiResponse(description="Student belongs to another tutor"),
            404: OpenApiResponse(description="User not found"),
        },
    )
    @action(detail=True, methods=['post'])
    def points(self, request, pk=None):
        serializer = PointsAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        # Ownership is decided inside the service so cross-tutor access is a 403
        user = adjust_points(request.user, pk, data['points'], data['action'])
        return Response({
            'message': 'Points updated successfully',
            'user': UserSerializer(user).data,
        })


class TutorStudentsView(generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated, IsTutor]
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['username', 'first_name', 'last_name', 'email']
    ordering_fields = ['points', 'username', 'date_joined']
    ordering = ['-points']

    def get_queryset(self):
        return User.objects.students().filter(tutor=self.request.user).select_related('tutor')

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return StudentCreateSerializer
        return UserSerializer

    @extend_schema(request=StudentCreateSerializer, responses={201: UserSerializer})
    def create(self, request, *args, **kwargs):
        serializer = StudentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        student = services.create_student_for_tutor(request.user, **serializer.validated_data)
        return Response(UserSerializer(student).data, status=status.HTTP_201_CREATED)


class StudentClassroomView(APIView):
    permission_classes = [IsAuthenticated, IsStudent]

    @extend_schema(responses={200: inline_serializer('StudentClassroom', {
        'tutor': TutorSummarySerializer(),
        'classroom': ClassroomSerializer(allow_null=True),
        'students': ClassmateSerializer(many=True),
    })})
    def get(self, request):
        student = request.user
        if student.tutor_id is None:
            raise NotFound("You have not been assigned to a tutor yet")

        tutor = student.tutor
        classmates = (
            User.objects.students()
            .filter(tutor=tutor)
            .exclude(pk=student.pk)
            .order_by('-points', 'first_name')
        )
        classroom = getattr(tutor, 'classroom', None)
        return Response({
            'tutor': TutorSummarySerializer(tutor).data,
            'classroom': ClassroomSerializer(classroom).data if classroom else None,
            'students': ClassmateSerializer(classmates, many=True).data,
        })
