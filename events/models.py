from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class EventQuerySet(models.QuerySet):
    def visible_to(self, user):
        """GLOBAL events for everyone; GROUP events for their creator and the creator's students."""
        if user.is_admin or user.is_superuser:
            return self
        global_events = models.Q(scope=Event.Scope.GLOBAL)
        if user.is_tutor:
            return self.filter(global_events | models.Q(created_by=user))
        if user.tutor_id:
            return self.filter(global_events | models.Q(scope=Event.Scope.GROUP, created_by_id=user.tutor_id))
        return self.filter(global_events)

    def with_enrollment(self):
        return self.annotate(
            enrolled_students=models.Count(
                'participants',
                filter=models.Q(participants__status=EventParticipant.Status.REGISTERED),
            )
        )


class Event(models.Model):
    class Type(models.TextChoices):
        IN_PERSON = 'IN_PERSON', 'In person'
        VIRTUAL = 'VIRTUAL', 'Virtual'
        HYBRID = 'HYBRID', 'Hybrid'

    class Scope(models.TextChoices):
        GLOBAL = 'GLOBAL', 'Global'
        GROUP = 'GROUP', 'Group'

    class Status(models.TextChoices):
        UPCOMING = 'UPCOMING', 'Upcoming'
        ONGOING = 'ONGOING', 'Ongoing'
        COMPLETED = 'COMPLETED', 'Completed'
        CANCELLED = 'CANCELLED', 'Cancelled'

    title = models.CharField(max_length=255)
    description = models.TextField()
    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField()
    location = models.CharField(max_length=255, default='Online')
    type = models.CharField(max_length=10, choices=Type.choices, default=Type.IN_PERSON)
    capacity = models.PositiveIntegerField(default=20)
    # Awarded to each student marked as attended
    points = models.PositiveIntegerField(default=0)
    tags = models.JSONField(default=list, blank=True)
    scope = models.CharField(max_length=10, choices=Scope.choices, default=Scope.GROUP)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.UPCOMING)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='created_events',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EventQuerySet.as_manager()

    class Meta:
        ordering = ['start_datetime']
        constraints = [
            models.CheckConstraint(condition=models.Q(capacity__gt=0), name='event_capacity_positive'),
            models.CheckConstraint(
                condition=models.Q(end_datetime__gte=models.F('start_datetime')),
                name='event_ends_after_start',
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.get_status_display()})"

    def clean(self):
        if self.start_datetime and self.end_datetime and self.end_datetime < self.start_datetime:
            raise ValidationError({'end_datetime': 'End date must be after the start date'})

    def registered_count(self):
        return self.participants.filter(status=EventParticipant.Status.REGISTERED).count()


class EventParticipant(models.Model):
    class Status(models.TextChoices):
        REGISTERED = 'REGISTERED', 'Registered'
        ATTENDED = 'ATTENDED', 'Attended'
        ABSENT = 'ABSENT', 'Absent'

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='participants')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='event_participations',
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.REGISTERED)
    registered_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['registered_at']
        constraints = [
            models.UniqueConstraint(fields=['event', 'user'], name='unique_event_participant'),
        ]

    def __str__(self):
        return f"{self.user} @ {self.event.title} ({self.get_status_display()})"
