from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import POINTS_LIMIT, Classroom, RegistrationRequest

User = get_user_model()


class TutorSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name']
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    tutor = TutorSummarySerializer(read_only=True)
    tutor_id = serializers.IntegerField(read_only=True)
    full_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'full_name',
            'role', 'points', 'tutor_id', 'tutor', 'date_joined',
        ]
        read_only_fields = fields

    def get_full_name(self, obj):
        return obj.get_full_name()


class UserCreateSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, style={'input_type': 'password'})
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    role = serializers.ChoiceField(choices=User.Role.choices, default=User.Role.STUDENT)
    tutor_id = serializers.IntegerField(required=False, allow_null=True)


class UserUpdateSerializer(serializers.ModelSerializer):
    tutor_id = serializers.IntegerField(required=False, allow_null=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'first_name', 'last_name', 'tutor_id']

    def validate_email(self, value):
        value = value.lower().strip()
        if User.objects.filter(email__iexact=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError("Email is already in use")
        return value

    def validate_tutor_id(self, value):
        if value is None:
            return value
        if self.instance.role != User.Role.STUDENT:
            raise serializers.ValidationError("Only students can be assigned to a tutor")
        if not User.objects.tutors().filter(pk=value).exists():
            raise serializers.ValidationError("Invalid tutor ID")
        return value


class StudentCreateSerializer(serializers.Serializer):
    """Used by tutors to add a student to their own classroom."""
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, style={'input_type': 'password'})
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')


class PasswordSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True, min_length=6, style={'input_type': 'password'})


class RoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.Role.choices)


class PointsAdjustmentSerializer(serializers.Serializer):
    points = serializers.IntegerField(
        min_value=0,
        max_value=POINTS_LIMIT,
        error_messages={
            'invalid': 'Points must be a valid non-negative number',
            'min_value': 'Points must be a valid non-negative number',
            'max_value': f'Points cannot exceed {POINTS_LIMIT}',
        },
    )
    action = serializers.ChoiceField(
        choices=['add', 'subtract', 'set'],
        error_messages={'invalid_choice': 'Action must be one of: add, subtract, set'},
    )


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        """Carry the identity claims the clients read without an extra lookup"""
        token = super().get_token(user)
        token['id'] = user.id
        token['username'] = user.username
        token['email'] = user.email
        token['role'] = user.role
        token['tutor_id'] = user.tutor_id
        return token


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})


class RegistrationRequestSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=6, style={'input_type': 'password'})
    requested_role = serializers.ChoiceField(
        choices=[(role, role.label) for role in RegistrationRequest.REQUESTABLE_ROLES],
        default=User.Role.STUDENT,
    )

    class Meta:
        model = RegistrationRequest
        fields = [
            'id', 'username', 'email', 'password', 'first_name', 'last_name',
            'requested_role', 'status', 'rejection_reason', 'created_at', 'processed_at',
        ]
        read_only_fields = ['id', 'status', 'rejection_reason', 'created_at', 'processed_at']


class RegistrationRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(
        error_messages={
            'required': 'Rejection reason is required',
            'blank': 'Rejection reason is required',
        },
    )


class ClassmateSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'role', 'points']
        read_only_fields = fields


class ClassroomSerializer(serializers.ModelSerializer):
    tutor = TutorSummarySerializer(read_only=True)

    class Meta:
        model = Classroom
        fields = ['id', 'name', 'description', 'tutor', 'created_at']
        read_only_fields = ['id', 'tutor', 'created_at']
