from django.urls import path

from .views import (
    LeaderboardView, PointsTransactionListView, RecomputeBalanceView,
    StudentStatsView, TutorLeaderboardView, TutorStatsView,
)

urlpatterns = [
    path('transactions/', PointsTransactionListView.as_view(), name='points-transactions'),
    path('leaderboard/', LeaderboardView.as_view(), name='points-leaderboard'),
    path('leaderboard/tutor/', TutorLeaderboardView.as_view(), name='points-leaderboard-tutor'),
    path('stats/student/', StudentStatsView.as_view(), name='points-stats-student'),
    path('stats/tutor/', TutorStatsView.as_view(), name='points-stats-tutor'),
    path('users/<int:pk>/recompute/', RecomputeBalanceView.as_view(), name='points-recompute'),
]
