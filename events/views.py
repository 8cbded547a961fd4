from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, OpenApiResponse, inline_serializer
from rest_framework import filters, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import IsTutorOrAdmin, can_view_participants

from . import services
from .models import Event, EventParticipant
from .serializers import (
    EventParticipantSerializer, EventSerializer, ParticipantAddSerializer, ParticipantStatusSerializer,
)


class EventViewSet(viewsets.ModelViewSet):
    """
    Admins publish GLOBAL events, tutors publish GROUP events for their own
    students. Anyone who can see an upcoming event can join it.
    """
    serializer_class = EventSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'scope', 'type', 'created_by']
    search_fields = ['title', 'description', 'location']
    ordering_fields = ['start_datetime', 'created_at', 'points']
    ordering = ['start_datetime']

    def get_permissions(self):
        if self.action in ['create', 'update', 'partial_update', 'destroy', 'participant']:
            permission_classes = [IsAuthenticated, IsTutorOrAdmin]
        else:
            permission_classes = [IsAuthenticated]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        return (
            Event.objects.visible_to(self.request.user)
            .with_enrollment()
            .select_related('created_by')
        )

    def perform_create(self, serializer):
        serializer.instance = services.create_event(self.request.user, **serializer.validated_data)

    def perform_update(self, serializer):
        services.update_event(self.request.user, serializer.instance, **serializer.validated_data)

    def perform_destroy(self, instance):
        services.delete_event(self.request.user, instance)

    @extend_schema(
        request=None,
        responses={
            201: inline_serializer('EventJoined', {
                'message': serializers.CharField(),
                'participant': EventParticipantSerializer(),
                'enrolled_students': serializers.IntegerField(),
            }),
            400: OpenApiResponse(description="Event is full or not upcoming"),
            404: OpenApiResponse(description="Event not found"),
            409: OpenApiResponse(description="Already joined"),
        },
    )
    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        participant, enrolled = services.join_event(request.user, pk)
        return Response({
            'message': 'Successfully joined the event',
            'participant': EventParticipantSerializer(participant).data,
            'enrolled_students': enrolled,
        }, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={200: OpenApiResponse(description="Left the event")})
    @action(detail=True, methods=['post'])
    def leave(self, request, pk=None):
        enrolled = services.leave_event(request.user, pk)
        return Response({
            'message': 'You have left the event',
            'enrolled_students': enrolled,
        })

    @extend_schema(methods=['GET'], responses={200: EventParticipantSerializer(many=True)})
    @extend_schema(methods=['POST'], request=ParticipantAddSerializer, responses={201: EventParticipantSerializer})
    @action(detail=True, methods=['get', 'post'])
    def participants(self, request, pk=None):
        if request.method == 'POST':
            serializer = ParticipantAddSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            participant = services.add_participant(request.user, pk, serializer.validated_data['user_id'])
            return Response(EventParticipantSerializer(participant).data, status=status.HTTP_201_CREATED)

        event = self.get_object()
        participants = event.participants.select_related('user')
        is_participant = participants.filter(user=request.user).exists()
        can_view_participants(request.user, event, is_participant).enforce()
        return Response(EventParticipantSerializer(participants, many=True).data)

    @extend_schema(methods=['PATCH'], request=ParticipantStatusSerializer, responses={200: EventParticipantSerializer})
    @extend_schema(methods=['DELETE'], request=None, responses={204: None})
    @action(detail=True, methods=['patch', 'delete'], url_path=r'participants/(?P<user_id>\d+)')
    def participant(self, request, pk=None, user_id=None):
        if request.method == 'DELETE':
            services.remove_participant(request.user, pk, user_id)
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = ParticipantStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        participant = services.update_participant_status(
            request.user, pk, user_id, serializer.validated_data['status'],
        )
        return Response(EventParticipantSerializer(participant).data)


class MyEventsViewSet(viewsets.ReadOnlyModelViewSet):
    """Events the current user has joined."""
    serializer_class = EventSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status']

    def get_queryset(self):
        joined = EventParticipant.objects.filter(user=self.request.user).values('event_id')
        return (
            Event.objects.filter(pk__in=joined)
            .with_enrollment()
            .select_related('created_by')
            .order_by('start_datetime')
        )
