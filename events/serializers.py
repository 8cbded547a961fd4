from rest_framework import serializers

from core.models import POINTS_LIMIT
from core.serializers import TutorSummarySerializer

from .models import Event, EventParticipant


class EventSerializer(serializers.ModelSerializer):
    created_by = TutorSummarySerializer(read_only=True)
    enrolled_students = serializers.IntegerField(read_only=True, default=0)
    end_datetime = serializers.DateTimeField(required=False, allow_null=True)
    type = serializers.CharField(required=False)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    capacity = serializers.IntegerField(min_value=1, max_value=POINTS_LIMIT, required=False)
    points = serializers.IntegerField(min_value=0, max_value=POINTS_LIMIT, required=False)

    class Meta:
        model = Event
        fields = [
            'id', 'title', 'description', 'start_datetime', 'end_datetime', 'location',
            'type', 'capacity', 'points', 'tags', 'scope', 'status', 'created_by',
            'enrolled_students', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'scope', 'created_by', 'created_at', 'updated_at']

    def validate_type(self, value):
        value = value.upper()
        if value not in Event.Type.values:
            raise serializers.ValidationError("Invalid event type")
        return value

    def validate_status(self, value):
        if self.instance is None and value != Event.Status.UPCOMING:
            raise serializers.ValidationError("New events always start as UPCOMING")
        return value

    def validate(self, attrs):
        start = attrs.get('start_datetime', getattr(self.instance, 'start_datetime', None))
        end = attrs.get('end_datetime')
        if end is not None and start is not None and end < start:
            raise serializers.ValidationError({'end_datetime': 'End date must be after the start date'})
        if 'end_datetime' in attrs and end is None:
            attrs.pop('end_datetime')
        return attrs


class ParticipantUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField()
    first_name = serializers.CharField()
    last_name = serializers.CharField()
    role = serializers.CharField()


class EventParticipantSerializer(serializers.ModelSerializer):
    user = ParticipantUserSerializer(read_only=True)

    class Meta:
        model = EventParticipant
        fields = ['id', 'user', 'status', 'registered_at']
        read_only_fields = fields


class ParticipantAddSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(error_messages={'required': 'User ID is required'})


class ParticipantStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[EventParticipant.Status.ATTENDED, EventParticipant.Status.ABSENT],
        error_messages={'invalid_choice': 'Status must be ATTENDED or ABSENT'},
    )
