"""
Tests for events, participation and attendance awards
Run with: pytest test_events.py
"""
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import AlreadyJoined, Conflict, EventFull, EventNotOpen, Forbidden, NotFound
from events.models import Event, EventParticipant
from events.services import (
    add_participant, join_event, leave_event, remove_participant, update_participant_status,
)
from loyaltypoints.models import PointsTransaction

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


def make_event(created_by, scope=Event.Scope.GROUP, **overrides):
    start = timezone.now() + timedelta(days=3)
    data = {
        'title': 'Reading club',
        'description': 'Weekly reading club',
        'start_datetime': start,
        'end_datetime': start + timedelta(hours=1),
        'capacity': 2,
        'points': 10,
        'scope': scope,
        'created_by': created_by,
    }
    data.update(overrides)
    return Event.objects.create(**data)


class JoinEventTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user('admin', User.Role.ADMIN)
        cls.tutor = make_user('tutor', User.Role.TUTOR)
        cls.other_tutor = make_user('other_tutor', User.Role.TUTOR)
        cls.s1 = make_user('s1', User.Role.STUDENT, tutor=cls.tutor)
        cls.s2 = make_user('s2', User.Role.STUDENT, tutor=cls.tutor)
        cls.s3 = make_user('s3', User.Role.STUDENT, tutor=cls.tutor)
        cls.event = make_event(cls.tutor)

    def test_join_until_capacity(self):
        _, enrolled = join_event(self.s1, self.event.pk)
        self.assertEqual(enrolled, 1)

        participant, enrolled = join_event(self.s2, self.event.pk)
        self.assertEqual(enrolled, 2)
        self.assertEqual(participant.status, EventParticipant.Status.REGISTERED)

        with self.assertRaises(EventFull):
            join_event(self.s3, self.event.pk)
        self.assertEqual(self.event.registered_count(), 2)

    def test_join_twice(self):
        join_event(self.s1, self.event.pk)
        with self.assertRaises(AlreadyJoined):
            join_event(self.s1, self.event.pk)

    def test_join_only_upcoming(self):
        Event.objects.filter(pk=self.event.pk).update(status=Event.Status.COMPLETED)
        with self.assertRaises(EventNotOpen):
            join_event(self.s1, self.event.pk)

    def test_group_events_of_other_tutors_are_hidden(self):
        foreign = make_event(self.other_tutor)
        with self.assertRaises(NotFound):
            join_event(self.s1, foreign.pk)

    def test_global_events_are_open_to_all(self):
        global_event = make_event(self.admin, scope=Event.Scope.GLOBAL)
        _, enrolled = join_event(self.s1, global_event.pk)
        self.assertEqual(enrolled, 1)

    def test_leave_frees_a_seat(self):
        join_event(self.s1, self.event.pk)
        join_event(self.s2, self.event.pk)
        self.assertEqual(leave_event(self.s1, self.event.pk), 1)
        _, enrolled = join_event(self.s3, self.event.pk)
        self.assertEqual(enrolled, 2)

    def test_leave_without_joining(self):
        with self.assertRaises(NotFound):
            leave_event(self.s1, self.event.pk)

    def test_non_numeric_ids_are_not_found(self):
        with self.assertRaises(NotFound):
            join_event(self.s1, 'abc')
        with self.assertRaises(NotFound):
            add_participant(self.tutor, self.event.pk, 'abc')


class AttendanceTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.tutor = make_user('tutor', User.Role.TUTOR)
        cls.other_tutor = make_user('other_tutor', User.Role.TUTOR)
        cls.student = make_user('student', User.Role.STUDENT, tutor=cls.tutor)
        cls.event = make_event(cls.tutor, points=15)

    def test_attended_awards_points_once(self):
        join_event(self.student, self.event.pk)
        update_participant_status(self.tutor, self.event.pk, self.student.pk, EventParticipant.Status.ATTENDED)

        self.student.refresh_from_db()
        self.assertEqual(self.student.points, 15)
        row = PointsTransaction.objects.get()
        self.assertEqual(row.reason, 'Attended event: Reading club')
        self.assertEqual(row.tutor, self.tutor)

        with self.assertRaises(Conflict):
            update_participant_status(self.tutor, self.event.pk, self.student.pk, EventParticipant.Status.ATTENDED)
        self.assertEqual(PointsTransaction.objects.count(), 1)

    def test_absent_awards_nothing(self):
        join_event(self.student, self.event.pk)
        update_participant_status(self.tutor, self.event.pk, self.student.pk, EventParticipant.Status.ABSENT)
        self.student.refresh_from_db()
        self.assertEqual(self.student.points, 0)

    def test_only_owner_manages_participants(self):
        with self.assertRaises(Forbidden):
            add_participant(self.other_tutor, self.event.pk, self.student.pk)

        add_participant(self.tutor, self.event.pk, self.student.pk)
        with self.assertRaises(AlreadyJoined):
            add_participant(self.tutor, self.event.pk, self.student.pk)

        with self.assertRaises(Forbidden):
            remove_participant(self.other_tutor, self.event.pk, self.student.pk)
        remove_participant(self.tutor, self.event.pk, self.student.pk)
        self.assertFalse(EventParticipant.objects.exists())


class EventApiTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user('admin', User.Role.ADMIN)
        cls.tutor = make_user('tutor', User.Role.TUTOR)
        cls.other_tutor = make_user('other_tutor', User.Role.TUTOR)
        cls.student = make_user('student', User.Role.STUDENT, tutor=cls.tutor)
        cls.event = make_event(cls.tutor, capacity=1)
        cls.global_event = make_event(cls.admin, scope=Event.Scope.GLOBAL, title='Open day')
        cls.foreign_event = make_event(cls.other_tutor, title='Chess')

    def test_join_endpoint(self):
        self.client.force_authenticate(self.student)
        response = self.client.post(f'/api/events/{self.event.pk}/join/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['enrolled_students'], 1)
        self.assertEqual(response.data['participant']['status'], 'REGISTERED')

        response = self.client.post(f'/api/events/{self.event.pk}/join/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'already_joined')

    def test_join_full_event_is_400(self):
        EventParticipant.objects.create(event=self.event, user=self.other_tutor)
        self.client.force_authenticate(self.student)
        response = self.client.post(f'/api/events/{self.event.pk}/join/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Event has reached maximum capacity')

    def test_join_missing_event_is_404(self):
        self.client.force_authenticate(self.student)
        response = self.client.post('/api/events/9999/join/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.post('/api/events/abc/join/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_student_listing(self):
        self.client.force_authenticate(self.student)
        response = self.client.get('/api/events/')
        titles = {event['title'] for event in response.data['results']}
        self.assertEqual(titles, {'Reading club', 'Open day'})

    def test_filter_by_scope(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/events/', {'scope': 'GLOBAL'})
        self.assertEqual([e['title'] for e in response.data['results']], ['Open day'])

    def test_tutor_creates_group_event_with_defaults(self):
        self.client.force_authenticate(self.tutor)
        start = (timezone.now() + timedelta(days=1)).isoformat()
        response = self.client.post('/api/events/', {
            'title': 'Math quiz', 'description': 'Quick quiz', 'start_datetime': start, 'type': 'virtual',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['scope'], 'GROUP')
        self.assertEqual(response.data['location'], 'Online')
        self.assertEqual(response.data['capacity'], 20)
        self.assertEqual(response.data['type'], 'VIRTUAL')
        self.assertEqual(response.data['start_datetime'], response.data['end_datetime'])

    def test_admin_creates_global_event(self):
        self.client.force_authenticate(self.admin)
        start = (timezone.now() + timedelta(days=1)).isoformat()
        response = self.client.post('/api/events/', {
            'title': 'Graduation', 'description': 'Ceremony', 'start_datetime': start,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['scope'], 'GLOBAL')

    def test_student_cannot_create(self):
        self.client.force_authenticate(self.student)
        start = (timezone.now() + timedelta(days=1)).isoformat()
        response = self.client.post('/api/events/', {
            'title': 'Party', 'description': 'Party', 'start_datetime': start,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_tutor_cannot_update_global_event(self):
        self.client.force_authenticate(self.tutor)
        response = self.client.patch(f'/api/events/{self.global_event.pk}/', {'title': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Unauthorized: Only admin can update global events')

    def test_mark_attendance_endpoint(self):
        EventParticipant.objects.create(event=self.event, user=self.student)
        self.client.force_authenticate(self.tutor)
        response = self.client.patch(
            f'/api/events/{self.event.pk}/participants/{self.student.pk}/', {'status': 'ATTENDED'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.student.refresh_from_db()
        self.assertEqual(self.student.points, 10)

    def test_participants_listing(self):
        EventParticipant.objects.create(event=self.event, user=self.student)
        self.client.force_authenticate(self.student)
        response = self.client.get(f'/api/events/{self.event.pk}/participants/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['user']['username'], 'student')

    def test_oversized_capacity_and_points_are_rejected(self):
        self.client.force_authenticate(self.tutor)
        start = (timezone.now() + timedelta(days=1)).isoformat()
        for field in ('capacity', 'points'):
            response = self.client.post('/api/events/', {
                'title': 'Big event', 'description': 'Too big', 'start_datetime': start, field: 10 ** 20,
            }, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
