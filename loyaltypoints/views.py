from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, OpenApiResponse
from rest_framework import filters, generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.models import User
from core.permissions import IsAdmin, IsStudent, IsTutor

from . import services
from .models import PointsTransaction
from .serializers import (
    LeaderboardSerializer, PointsTransactionSerializer, RecomputeResultSerializer,
    StudentStatsSerializer, TutorStatsSerializer,
)


class PointsTransactionListView(generics.ListAPIView):
    """
    Ledger rows visible to the caller: students see their own history,
    tutors see rows for their students, admins see everything.
    """
    serializer_class = PointsTransactionSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['type', 'student', 'tutor']
    ordering_fields = ['created_at', 'points']
    ordering = ['-created_at']

    def get_queryset(self):
        user = self.request.user
        queryset = PointsTransaction.objects.select_related('student', 'tutor')
        if user.role == User.Role.ADMIN or user.is_superuser:
            return queryset
        if user.role == User.Role.TUTOR:
            return queryset.filter(student__tutor=user)
        return queryset.filter(student=user)


class LeaderboardView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: LeaderboardSerializer})
    def get(self, request):
        entries, user_rank, total = services.build_leaderboard(current_user=request.user)
        return Response({
            'leaderboard': entries,
            'userRank': user_rank,
            'total': total,
        })


class TutorLeaderboardView(APIView):
    permission_classes = [IsAuthenticated, IsTutor]

    @extend_schema(responses={200: LeaderboardSerializer})
    def get(self, request):
        entries, _, total = services.build_leaderboard(limit=0)
        return Response({
            'leaderboard': entries,
            'userRank': None,
            'total': total,
        })


class StudentStatsView(APIView):
    permission_classes = [IsAuthenticated, IsStudent]

    @extend_schema(responses={200: StudentStatsSerializer})
    def get(self, request):
        stats = services.student_stats(request.user)
        return Response(StudentStatsSerializer(stats).data)


class TutorStatsView(APIView):
    permission_classes = [IsAuthenticated, IsTutor]

    @extend_schema(responses={200: TutorStatsSerializer})
    def get(self, request):
        stats = services.tutor_stats(request.user)
        return Response(TutorStatsSerializer(stats).data)


class RecomputeBalanceView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @extend_schema(
        request=None,
        responses={
            200: RecomputeResultSerializer,
            404: OpenApiResponse(description="User not found"),
        },
    )
    def post(self, request, pk):
        user, previous, current = services.recompute_balance(pk)
        return Response({
            'user_id': user.pk,
            'previous_points': previous,
            'points': current,
            'changed': previous != current,
        }, status=status.HTTP_200_OK)
