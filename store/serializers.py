from django.contrib.auth import get_user_model
from rest_framework import serializers

from core.models import POINTS_LIMIT
from core.serializers import TutorSummarySerializer

from .models import ItemRequest, StoreItem

User = get_user_model()


class StoreItemSerializer(serializers.ModelSerializer):
    tutor = TutorSummarySerializer(read_only=True)
    tutor_id = serializers.IntegerField(required=False, write_only=True)
    points_required = serializers.IntegerField(
        min_value=1,
        max_value=POINTS_LIMIT,
        error_messages={'min_value': 'Points required must be greater than 0'},
    )
    available_quantity = serializers.IntegerField(
        min_value=0,
        max_value=POINTS_LIMIT,
        error_messages={'min_value': 'Available quantity cannot be negative'},
    )

    class Meta:
        model = StoreItem
        fields = [
            'id', 'name', 'description', 'image_url', 'points_required',
            'available_quantity', 'tutor', 'tutor_id', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'tutor', 'created_at', 'updated_at']
        # Per-tutor uniqueness is reported as a conflict by the view
        validators = []

    def update(self, instance, validated_data):
        validated_data.pop('tutor_id', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        # Only submitted columns are written so a concurrent stock decrement is kept
        instance.save(update_fields=[*validated_data, 'updated_at'])
        return instance


class StudentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name']
        read_only_fields = fields


class ItemRequestSerializer(serializers.ModelSerializer):
    student = StudentSummarySerializer(read_only=True)
    tutor = TutorSummarySerializer(read_only=True)
    item = StoreItemSerializer(read_only=True)
    processed_by = serializers.CharField(source='processed_by.username', read_only=True, default=None)

    class Meta:
        model = ItemRequest
        fields = [
            'id', 'student', 'tutor', 'item', 'status', 'points_spent', 'note',
            'processed_by', 'processed_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ItemRequestCreateSerializer(serializers.Serializer):
    item_id = serializers.IntegerField(error_messages={'required': 'Item ID is required'})
    note = serializers.CharField(required=False, allow_blank=True, default='')


class ItemRequestProcessSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[ItemRequest.Status.APPROVED, ItemRequest.Status.REJECTED],
        error_messages={'invalid_choice': 'Invalid status. Must be APPROVED or REJECTED'},
    )
    note = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['status'] == ItemRequest.Status.REJECTED and not attrs.get('note', '').strip():
            raise serializers.ValidationError({'note': 'A note is required when rejecting a request'})
        return attrs
