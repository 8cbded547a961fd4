import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, OpenApiResponse, inline_serializer
from rest_framework import filters, mixins, serializers, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import Conflict, NoTutorAssigned, ValidationFailed
from core.permissions import IsStudent, IsTutorOrAdmin, can_manage_item, can_view_request

from . import services
from .models import ItemRequest, StoreItem
from .serializers import (
    ItemRequestCreateSerializer, ItemRequestProcessSerializer, ItemRequestSerializer, StoreItemSerializer,
)

logger = logging.getLogger(__name__)
User = get_user_model()


class StoreItemViewSet(viewsets.ModelViewSet):
    """
    A tutor's reward catalog. Students browse their own tutor's store,
    tutors manage their own items and admins see every store.
    """
    serializer_class = StoreItemSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['tutor']
    search_fields = ['name', 'description']
    ordering_fields = ['created_at', 'points_required', 'available_quantity']
    ordering = ['-created_at']

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            permission_classes = [IsAuthenticated]
        else:
            permission_classes = [IsAuthenticated, IsTutorOrAdmin]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        user = self.request.user
        queryset = StoreItem.objects.select_related('tutor')
        if user.role == User.Role.ADMIN or user.is_superuser:
            return queryset
        if self.action in ['update', 'partial_update', 'destroy']:
            # Ownership is checked per object so foreign items are a 403, not a 404
            return queryset
        if user.role == User.Role.TUTOR:
            return queryset.filter(tutor=user)
        if user.tutor_id is None:
            raise NoTutorAssigned("No tutor assigned")
        return queryset.filter(tutor_id=user.tutor_id)

    def get_object(self):
        obj = super().get_object()
        if self.action in ['update', 'partial_update', 'destroy']:
            can_manage_item(self.request.user, obj).enforce()
        return obj

    def _resolve_owner(self, serializer):
        user = self.request.user
        if user.role == User.Role.TUTOR:
            return user

        tutor_id = serializer.validated_data.get('tutor_id')
        tutor = User.objects.tutors().filter(pk=tutor_id).first() if tutor_id else None
        if tutor is None:
            raise ValidationFailed("Invalid tutor ID")
        return tutor

    def _save(self, serializer, **kwargs):
        serializer.validated_data.pop('tutor_id', None)
        try:
            with transaction.atomic():
                return serializer.save(**kwargs)
        except IntegrityError:
            raise Conflict("An item with this name already exists in this store")

    def perform_create(self, serializer):
        tutor = self._resolve_owner(serializer)
        name = serializer.validated_data['name']
        if StoreItem.objects.filter(tutor=tutor, name=name).exists():
            raise Conflict("An item with this name already exists in this store")
        item = self._save(serializer, tutor=tutor)
        logger.info(f"{self.request.user.username} created store item {item.pk} for tutor {tutor.username}")

    def perform_update(self, serializer):
        with transaction.atomic():
            # Edit the locked row, not the copy loaded before an approval may have committed
            instance = StoreItem.objects.select_for_update().get(pk=serializer.instance.pk)
            serializer.instance = instance
            name = serializer.validated_data.get('name', instance.name)
            duplicate = StoreItem.objects.filter(tutor_id=instance.tutor_id, name=name).exclude(pk=instance.pk)
            if duplicate.exists():
                raise Conflict("An item with this name already exists in this store")
            self._save(serializer)

    def perform_destroy(self, instance):
        logger.info(f"{self.request.user.username} deleted store item {instance.pk}")
        instance.delete()


class ItemRequestViewSet(mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         mixins.CreateModelMixin,
                         mixins.UpdateModelMixin,
                         viewsets.GenericViewSet):
    serializer_class = ItemRequestSerializer
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['status', 'item', 'student']
    ordering_fields = ['created_at', 'points_spent']
    ordering = ['-created_at']

    def get_permissions(self):
        if self.action == 'create':
            permission_classes = [IsAuthenticated, IsStudent]
        elif self.action in ['update', 'partial_update']:
            permission_classes = [IsAuthenticated, IsTutorOrAdmin]
        else:
            permission_classes = [IsAuthenticated]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        user = self.request.user
        queryset = ItemRequest.objects.select_related('student', 'tutor', 'item', 'item__tutor', 'processed_by')
        if user.role == User.Role.ADMIN or user.is_superuser:
            return queryset
        if self.action == 'list':
            if user.role == User.Role.TUTOR:
                return queryset.filter(tutor=user)
            return queryset.filter(student=user)
        return queryset

    def get_object(self):
        obj = super().get_object()
        can_view_request(self.request.user, obj).enforce()
        return obj

    @extend_schema(
        request=ItemRequestCreateSerializer,
        responses={
            201: inline_serializer('ItemRequestCreated', {
                'message': serializers.CharField(),
                'request': ItemRequestSerializer(),
            }),
            400: OpenApiResponse(description="No tutor, out of stock or not enough points"),
            404: OpenApiResponse(description="Item not found"),
        },
    )
    def create(self, request, *args, **kwargs):
        serializer = ItemRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item_request = services.submit_request(
            request.user,
            serializer.validated_data['item_id'],
            serializer.validated_data['note'],
        )
        return Response({
            'message': 'Item request submitted successfully',
            'request': ItemRequestSerializer(item_request).data,
        }, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=ItemRequestProcessSerializer,
        responses={
            200: inline_serializer('ItemRequestProcessed', {
                'message': serializers.CharField(),
                'request': ItemRequestSerializer(),
            }),
            400: OpenApiResponse(description="Already processed, out of stock, not enough points or invalid status"),
            403: OpenApiResponse(description="Request belongs to another tutor"),
            404: OpenApiResponse(description="Request not found"),
        },
    )
    def update(self, request, *args, **kwargs):
        serializer = ItemRequestProcessSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item_request = services.process_request(
            request.user,
            kwargs['pk'],
            serializer.validated_data['status'],
            serializer.validated_data.get('note'),
        )
        item_request = self.get_queryset().get(pk=item_request.pk)
        return Response({
            'message': f"Request {item_request.status.lower()} successfully",
            'request': ItemRequestSerializer(item_request).data,
        })
