"""
Tests for points adjustment, the append-only ledger, leaderboards and stats
Run with: pytest test_points.py
"""
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import Forbidden, NotFound, ValidationFailed
from core.models import POINTS_LIMIT
from loyaltypoints.models import PointsTransaction
from loyaltypoints.services import (
    adjust_points, build_leaderboard, compute_new_balance, ledger_balance, record_award, recompute_balance,
)

User = get_user_model()


def make_user(username, role, tutor=None, points=0):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password='secret123',
        role=role,
        tutor=tutor,
        points=points,
    )


class AdjustPointsTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user('admin', User.Role.ADMIN)
        cls.tutor = make_user('tutor', User.Role.TUTOR)
        cls.other_tutor = make_user('other_tutor', User.Role.TUTOR)
        cls.student = make_user('student', User.Role.STUDENT, tutor=cls.tutor)

    def test_add_writes_award(self):
        student = adjust_points(self.tutor, self.student.pk, 40, 'add')
        self.assertEqual(student.points, 40)

        row = PointsTransaction.objects.get()
        self.assertEqual(row.type, PointsTransaction.Type.AWARD)
        self.assertEqual(row.points, 40)
        self.assertEqual(row.tutor, self.tutor)
        self.assertEqual(row.reason, 'Points added by tutor')

    def test_subtract_floors_at_zero_and_records_effective_delta(self):
        adjust_points(self.tutor, self.student.pk, 30, 'add')
        student = adjust_points(self.tutor, self.student.pk, 50, 'subtract')
        self.assertEqual(student.points, 0)

        redeem = PointsTransaction.objects.redemptions().get()
        self.assertEqual(redeem.points, 30)
        self.assertEqual(ledger_balance(student), 0)

    def test_set_records_difference(self):
        adjust_points(self.tutor, self.student.pk, 10, 'add')
        adjust_points(self.tutor, self.student.pk, 25, 'set')
        adjust_points(self.tutor, self.student.pk, 5, 'set')

        self.student.refresh_from_db()
        self.assertEqual(self.student.points, 5)
        self.assertEqual(PointsTransaction.objects.awards().total(), 25)
        self.assertEqual(PointsTransaction.objects.redemptions().total(), 20)

    def test_no_change_writes_no_row(self):
        adjust_points(self.tutor, self.student.pk, 0, 'set')
        adjust_points(self.tutor, self.student.pk, 0, 'add')
        self.assertFalse(PointsTransaction.objects.exists())

    def test_balance_never_negative(self):
        for amount, action in [(5, 'add'), (100, 'subtract'), (7, 'set'), (3, 'subtract'), (50, 'subtract')]:
            student = adjust_points(self.admin, self.student.pk, amount, action)
            self.assertGreaterEqual(student.points, 0)
            self.assertEqual(student.points, ledger_balance(student))

    def test_invalid_input(self):
        with self.assertRaises(ValidationFailed):
            adjust_points(self.tutor, self.student.pk, -1, 'add')
        with self.assertRaises(ValidationFailed):
            adjust_points(self.tutor, self.student.pk, 'abc', 'add')
        with self.assertRaises(ValidationFailed):
            adjust_points(self.tutor, self.student.pk, 5, 'multiply')

    def test_other_tutor_forbidden(self):
        with self.assertRaises(Forbidden):
            adjust_points(self.other_tutor, self.student.pk, 5, 'add')

    def test_tutor_cannot_adjust_tutors(self):
        with self.assertRaises(Forbidden):
            adjust_points(self.tutor, self.other_tutor.pk, 5, 'add')

    def test_missing_user(self):
        with self.assertRaises(NotFound):
            adjust_points(self.admin, 9999, 5, 'add')
        with self.assertRaises(NotFound):
            adjust_points(self.admin, 'abc', 5, 'add')

    def test_balance_is_capped(self):
        adjust_points(self.tutor, self.student.pk, POINTS_LIMIT, 'set')
        with self.assertRaises(ValidationFailed):
            adjust_points(self.tutor, self.student.pk, 1, 'add')
        with self.assertRaises(ValidationFailed):
            adjust_points(self.tutor, self.student.pk, POINTS_LIMIT + 1, 'set')

        self.student.refresh_from_db()
        self.assertEqual(self.student.points, POINTS_LIMIT)
        self.assertEqual(PointsTransaction.objects.count(), 1)

    def test_compute_new_balance(self):
        self.assertEqual(compute_new_balance(10, 5, 'add'), (15, PointsTransaction.Type.AWARD, 5))
        self.assertEqual(compute_new_balance(10, 50, 'subtract'), (0, PointsTransaction.Type.REDEEM, 10))
        self.assertEqual(compute_new_balance(10, 4, 'set'), (4, PointsTransaction.Type.REDEEM, 6))


class LedgerTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.tutor = make_user('tutor', User.Role.TUTOR)
        cls.student = make_user('student', User.Role.STUDENT, tutor=cls.tutor)

    def test_rows_are_append_only(self):
        row = record_award(self.student, 10, 'Homework', actor=self.tutor)

        row.reason = 'Edited'
        with self.assertRaises(TypeError):
            row.save()
        with self.assertRaises(TypeError):
            row.delete()
        with self.assertRaises(TypeError):
            PointsTransaction.objects.filter(pk=row.pk).update(points=1)
        with self.assertRaises(TypeError):
            PointsTransaction.objects.all().delete()

    def test_recompute_repairs_drift(self):
        record_award(self.student, 30, 'Quiz', actor=self.tutor)
        User.objects.filter(pk=self.student.pk).update(points=99)

        student, previous, current = recompute_balance(self.student.pk)
        self.assertEqual((previous, current), (99, 30))
        student.refresh_from_db()
        self.assertEqual(student.points, 30)

    def test_recompute_command(self):
        record_award(self.student, 12, 'Quiz', actor=self.tutor)
        User.objects.filter(pk=self.student.pk).update(points=0)

        call_command('recompute_balances', '--dry-run')
        self.student.refresh_from_db()
        self.assertEqual(self.student.points, 0)

        call_command('recompute_balances')
        self.student.refresh_from_db()
        self.assertEqual(self.student.points, 12)


class LeaderboardTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.tutor = make_user('tutor', User.Role.TUTOR)
        cls.alice = make_user('alice', User.Role.STUDENT, tutor=cls.tutor)
        cls.bob = make_user('bob', User.Role.STUDENT, tutor=cls.tutor)
        cls.carol = make_user('carol', User.Role.STUDENT, tutor=cls.tutor)

        adjust_points(cls.tutor, cls.alice.pk, 50, 'add')
        adjust_points(cls.tutor, cls.alice.pk, 40, 'subtract')
        adjust_points(cls.tutor, cls.bob.pk, 30, 'add')

    def test_ranked_by_total_earned(self):
        entries, user_rank, total = build_leaderboard(current_user=self.bob)

        self.assertEqual([e['username'] for e in entries], ['alice', 'bob', 'carol'])
        self.assertEqual(entries[0]['total_earned_points'], 50)
        self.assertEqual(entries[0]['current_points'], 10)
        self.assertEqual(user_rank['rank'], 2)
        self.assertEqual(total, 3)

    def test_limit(self):
        entries, _, total = build_leaderboard(limit=1)
        self.assertEqual(len(entries), 1)
        self.assertEqual(total, 3)


class PointsApiTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user('admin', User.Role.ADMIN)
        cls.tutor = make_user('tutor', User.Role.TUTOR)
        cls.other_tutor = make_user('other_tutor', User.Role.TUTOR)
        cls.student = make_user('student', User.Role.STUDENT, tutor=cls.tutor)
        cls.other_student = make_user('other_student', User.Role.STUDENT, tutor=cls.other_tutor)

    def test_points_endpoint(self):
        self.client.force_authenticate(self.tutor)
        url = f'/api/core/users/{self.student.pk}/points/'

        response = self.client.post(url, {'points': 25, 'action': 'add'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['points'], 25)

        response = self.client.post(url, {'points': -3, 'action': 'add'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Points must be a valid non-negative number')

        response = self.client.post(url, {'points': 3, 'action': 'double'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_points_endpoint_cross_tutor_is_403(self):
        self.client.force_authenticate(self.tutor)
        response = self.client.post(
            f'/api/core/users/{self.other_student.pk}/points/', {'points': 5, 'action': 'add'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'You can only modify points for your own students')

    def test_points_endpoint_missing_user_is_404(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/core/users/9999/points/', {'points': 5, 'action': 'add'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post('/api/core/users/abc/points/', {'points': 5, 'action': 'add'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_points_endpoint_rejects_oversized_amount(self):
        self.client.force_authenticate(self.tutor)
        response = self.client.post(
            f'/api/core/users/{self.student.pk}/points/', {'points': 10 ** 20, 'action': 'add'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.student.refresh_from_db()
        self.assertEqual(self.student.points, 0)

    def test_students_cannot_adjust(self):
        self.client.force_authenticate(self.student)
        response = self.client.post(
            f'/api/core/users/{self.student.pk}/points/', {'points': 5, 'action': 'add'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_transactions_are_scoped(self):
        adjust_points(self.tutor, self.student.pk, 5, 'add')
        adjust_points(self.other_tutor, self.other_student.pk, 7, 'add')

        self.client.force_authenticate(self.student)
        self.assertEqual(self.client.get('/api/points/transactions/').data['count'], 1)

        self.client.force_authenticate(self.tutor)
        self.assertEqual(self.client.get('/api/points/transactions/').data['count'], 1)

        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/points/transactions/', {'type': 'AWARD'})
        self.assertEqual(response.data['count'], 2)

    def test_leaderboard_endpoint(self):
        adjust_points(self.tutor, self.student.pk, 5, 'add')
        self.client.force_authenticate(self.student)
        response = self.client.get('/api/points/leaderboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['leaderboard'][0]['username'], 'student')
        self.assertEqual(response.data['userRank']['rank'], 1)
        self.assertEqual(response.data['total'], 2)

    def test_stats_endpoints(self):
        adjust_points(self.tutor, self.student.pk, 15, 'add')

        self.client.force_authenticate(self.tutor)
        response = self.client.get('/api/points/stats/tutor/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['studentsCount'], 1)
        self.assertEqual(response.data['pointsAwarded'], 15)

        self.client.force_authenticate(self.student)
        response = self.client.get('/api/points/stats/student/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['currentPoints'], 15)
        self.assertEqual(response.data['totalEarnedPoints'], 15)
        self.assertEqual(response.data['approvedRequests'], 0)

    def test_recompute_endpoint_is_admin_only(self):
        self.client.force_authenticate(self.tutor)
        response = self.client.post(f'/api/points/users/{self.student.pk}/recompute/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/points/users/{self.student.pk}/recompute/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['changed'])

    @override_settings(LEADERBOARD_SIZE=1)
    def test_tutor_leaderboard_lists_every_student(self):
        adjust_points(self.tutor, self.student.pk, 5, 'add')
        self.client.force_authenticate(self.tutor)
        response = self.client.get('/api/points/leaderboard/tutor/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['leaderboard']), 2)
        self.assertEqual(response.data['total'], 2)

        self.client.force_authenticate(self.student)
        response = self.client.get('/api/points/leaderboard/')
        self.assertEqual(len(response.data['leaderboard']), 1)
