from rest_framework import serializers

from .models import PointsTransaction


class PointsTransactionSerializer(serializers.ModelSerializer):
    student_username = serializers.CharField(source='student.username', read_only=True)
    tutor_username = serializers.CharField(source='tutor.username', read_only=True, default=None)
    signed_points = serializers.IntegerField(read_only=True)

    class Meta:
        model = PointsTransaction
        fields = [
            'id', 'student', 'student_username', 'tutor', 'tutor_username',
            'points', 'signed_points', 'type', 'reason', 'created_at',
        ]
        read_only_fields = fields


class LeaderboardEntrySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField()
    first_name = serializers.CharField()
    last_name = serializers.CharField()
    current_points = serializers.IntegerField()
    total_earned_points = serializers.IntegerField()
    rank = serializers.IntegerField()


class LeaderboardSerializer(serializers.Serializer):
    leaderboard = LeaderboardEntrySerializer(many=True)
    userRank = LeaderboardEntrySerializer(allow_null=True)
    total = serializers.IntegerField()


class StudentStatsSerializer(serializers.Serializer):
    completedEvents = serializers.IntegerField(source='completed_events')
    approvedRequests = serializers.IntegerField(source='approved_requests')
    currentPoints = serializers.IntegerField(source='current_points')
    totalEarnedPoints = serializers.IntegerField(source='total_earned_points')


class TutorStatsSerializer(serializers.Serializer):
    studentsCount = serializers.IntegerField(source='students_count')
    eventsCount = serializers.IntegerField(source='events_count')
    pointsAwarded = serializers.IntegerField(source='points_awarded')
    completedEvents = serializers.IntegerField(source='completed_events')


class RecomputeResultSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    previous_points = serializers.IntegerField()
    points = serializers.IntegerField()
    changed = serializers.BooleanField()
