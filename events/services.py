import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from core.exceptions import (
    AlreadyJoined, Conflict, EventFull, EventNotOpen, NotFound, ValidationFailed,
)
from core.permissions import (
    can_create_event, can_delete_event, can_manage_participants, can_update_event,
)
from loyaltypoints.services import record_award

from .models import Event, EventParticipant

logger = logging.getLogger(__name__)
User = get_user_model()

STATUS_TRANSITIONS = {
    EventParticipant.Status.REGISTERED: (EventParticipant.Status.ATTENDED, EventParticipant.Status.ABSENT),
}


def _lock_event(event_id, queryset=None):
    queryset = queryset if queryset is not None else Event.objects.all()
    try:
        return queryset.select_for_update().get(pk=event_id)
    except (Event.DoesNotExist, TypeError, ValueError):
        raise NotFound("Event not found")


def _register(event, user):
    """Insert a REGISTERED participant. The event row must already be locked."""
    if EventParticipant.objects.filter(event=event, user=user).exists():
        raise AlreadyJoined("You have already joined this event")

    if event.registered_count() >= event.capacity:
        raise EventFull("Event has reached maximum capacity")

    try:
        with transaction.atomic():
            return EventParticipant.objects.create(
                event=event,
                user=user,
                status=EventParticipant.Status.REGISTERED,
            )
    except IntegrityError:
        raise AlreadyJoined("You have already joined this event")


def join_event(user, event_id):
    """Register ``user`` for an upcoming event. Returns ``(participant, enrolled_students)``."""
    with transaction.atomic():
        event = _lock_event(event_id, Event.objects.visible_to(user))
        if event.status != Event.Status.UPCOMING:
            raise EventNotOpen("You can only join upcoming events")

        participant = _register(event, user)
        enrolled = event.registered_count()

    logger.info(f"User {user.username} joined event {event.pk} ({enrolled}/{event.capacity})")
    return participant, enrolled


def leave_event(user, event_id):
    with transaction.atomic():
        event = _lock_event(event_id, Event.objects.visible_to(user))
        if event.status != Event.Status.UPCOMING:
            raise EventNotOpen("You can only leave upcoming events")

        try:
            participant = EventParticipant.objects.select_for_update().get(event=event, user=user)
        except EventParticipant.DoesNotExist:
            raise NotFound("You are not registered for this event")
        if participant.status != EventParticipant.Status.REGISTERED:
            raise Conflict("Attendance has already been recorded for this event")

        participant.delete()
        enrolled = event.registered_count()

    logger.info(f"User {user.username} left event {event.pk}")
    return enrolled


def add_participant(actor, event_id, user_id):
    with transaction.atomic():
        event = _lock_event(event_id)
        can_manage_participants(actor, event).enforce()

        try:
            user = User.objects.get(pk=user_id)
        except (User.DoesNotExist, TypeError, ValueError):
            raise NotFound("User not found")

        if EventParticipant.objects.filter(event=event, user=user).exists():
            raise AlreadyJoined("User is already a participant")
        participant = _register(event, user)

    logger.info(f"{actor.username} added user {user.pk} to event {event.pk}")
    return participant


def update_participant_status(actor, event_id, user_id, status):
    """
    Record attendance. Marking a student ATTENDED on an event that carries
    points awards them through the ledger in the same transaction.
    """
    if status not in (EventParticipant.Status.ATTENDED, EventParticipant.Status.ABSENT):
        raise ValidationFailed("Status must be ATTENDED or ABSENT")

    with transaction.atomic():
        event = _lock_event(event_id)
        can_manage_participants(actor, event).enforce()

        try:
            participant = (
                EventParticipant.objects.select_for_update()
                .select_related('user')
                .get(event=event, user_id=user_id)
            )
        except (EventParticipant.DoesNotExist, TypeError, ValueError):
            raise NotFound("Participant not found")

        allowed = STATUS_TRANSITIONS.get(participant.status, ())
        if status not in allowed:
            raise Conflict(f"Participant is already marked {participant.status}")

        participant.status = status
        participant.save(update_fields=['status', 'updated_at'])

        student = participant.user
        if status == EventParticipant.Status.ATTENDED and event.points > 0 and student.is_student:
            student = User.objects.select_for_update().get(pk=student.pk)
            record_award(student, event.points, f"Attended event: {event.title}", actor=actor)
            logger.info(f"Awarded {event.points} points to {student.username} for event {event.pk}")

    logger.info(f"{actor.username} marked user {user_id} {status} for event {event.pk}")
    return participant


def remove_participant(actor, event_id, user_id):
    with transaction.atomic():
        event = _lock_event(event_id)
        can_manage_participants(actor, event).enforce()

        deleted, _ = EventParticipant.objects.filter(event=event, user_id=user_id).delete()
        if not deleted:
            raise NotFound("Participant not found")

    logger.info(f"{actor.username} removed user {user_id} from event {event.pk}")


def create_event(actor, **data):
    scope = Event.Scope.GLOBAL if actor.is_admin or actor.is_superuser else Event.Scope.GROUP
    can_create_event(actor, scope).enforce()

    data.pop('status', None)
    if data.get('end_datetime') is None:
        data['end_datetime'] = data['start_datetime']

    event = Event.objects.create(
        created_by=actor,
        scope=scope,
        status=Event.Status.UPCOMING,
        **data
    )
    logger.info(f"{actor.username} created {scope} event {event.pk}: {event.title}")
    return event


def update_event(actor, event, **data):
    can_update_event(actor, event).enforce()
    for field, value in data.items():
        setattr(event, field, value)
    if event.end_datetime < event.start_datetime:
        raise ValidationFailed("End date must be after the start date")
    event.save()
    logger.info(f"{actor.username} updated event {event.pk}")
    return event


def delete_event(actor, event):
    can_delete_event(actor, event).enforce()
    logger.info(f"{actor.username} deleted event {event.pk}: {event.title}")
    event.delete()
