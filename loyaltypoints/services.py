"""
Points ledger operations.

Every balance change goes through this module: a PointsTransaction row is
appended and the cached ``User.points`` balance is moved by the same amount
inside one database transaction. Callers that already hold row locks (the
redemption workflow, attendance awards) use ``record_award`` /
``record_redemption`` directly inside their own ``transaction.atomic()``
block.
"""
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, F, IntegerField, Q, Sum, Value
from django.db.models.functions import Coalesce

from core.exceptions import NotFound, ValidationFailed
from core.models import POINTS_LIMIT
from core.permissions import can_adjust_points

from .models import PointsTransaction

logger = logging.getLogger(__name__)
User = get_user_model()

ADJUST_ACTIONS = ('add', 'subtract', 'set')


def record_award(student, points, reason, actor=None):
    """Append an AWARD row and raise the cached balance. Caller owns the transaction."""
    if points <= 0:
        raise ValidationFailed("Points must be positive.")
    if student.points + points > POINTS_LIMIT:
        raise ValidationFailed(f"Points balance cannot exceed {POINTS_LIMIT}")

    txn = PointsTransaction.objects.create(
        student=student,
        tutor=actor,
        points=points,
        type=PointsTransaction.Type.AWARD,
        reason=reason,
    )
    User.objects.filter(pk=student.pk).update(points=F('points') + points)
    student.refresh_from_db(fields=['points'])
    return txn


def record_redemption(student, points, reason, actor=None):
    """Append a REDEEM row and lower the cached balance. Caller owns the transaction."""
    if points <= 0:
        raise ValidationFailed("Points must be positive.")

    txn = PointsTransaction.objects.create(
        student=student,
        tutor=actor,
        points=points,
        type=PointsTransaction.Type.REDEEM,
        reason=reason,
    )
    User.objects.filter(pk=student.pk).update(points=F('points') - points)
    student.refresh_from_db(fields=['points'])
    return txn


def compute_new_balance(current, amount, action):
    """
    Return ``(new_balance, delta_type, delta_points)`` for an adjustment.

    ``delta_points`` is the effective change, so a subtract floored at zero
    only records what was actually removed.
    """
    if action == 'add':
        new_balance = current + amount
    elif action == 'subtract':
        new_balance = max(0, current - amount)
    elif action == 'set':
        new_balance = amount
    else:
        raise ValidationFailed("Action must be one of: add, subtract, set")

    if new_balance > POINTS_LIMIT:
        raise ValidationFailed(f"Points balance cannot exceed {POINTS_LIMIT}")

    delta = new_balance - current
    delta_type = PointsTransaction.Type.AWARD if delta >= 0 else PointsTransaction.Type.REDEEM
    return new_balance, delta_type, abs(delta)


def adjust_points(actor, user_id, amount, action):
    """Add, subtract or set a student's balance on behalf of a tutor or admin."""
    if action not in ADJUST_ACTIONS:
        raise ValidationFailed("Action must be one of: add, subtract, set")
    try:
        amount = int(amount)
    except (TypeError, ValueError):
        raise ValidationFailed("Points must be a valid non-negative number")
    if amount < 0:
        raise ValidationFailed("Points must be a valid non-negative number")
    if amount > POINTS_LIMIT:
        raise ValidationFailed(f"Points cannot exceed {POINTS_LIMIT}")

    with transaction.atomic():
        try:
            target = User.objects.select_for_update().get(pk=user_id)
        except (User.DoesNotExist, TypeError, ValueError):
            raise NotFound("User not found")

        can_adjust_points(actor, target).enforce()

        new_balance, delta_type, delta_points = compute_new_balance(target.points, amount, action)
        if delta_points > 0:
            reason = f"Points {action}ed by {actor.username}"
            if delta_type == PointsTransaction.Type.AWARD:
                record_award(target, delta_points, reason, actor=actor)
            else:
                record_redemption(target, delta_points, reason, actor=actor)

    logger.info(
        f"Points {action} {amount} for user {target.pk} by {actor.username}: "
        f"new balance {target.points}"
    )
    return target


def ledger_balance(student):
    totals = PointsTransaction.objects.filter(student=student).aggregate(
        awarded=Coalesce(Sum('points', filter=Q(type=PointsTransaction.Type.AWARD)), 0),
        redeemed=Coalesce(Sum('points', filter=Q(type=PointsTransaction.Type.REDEEM)), 0),
    )
    return max(0, totals['awarded'] - totals['redeemed'])


def recompute_balance(student_id):
    """Rebuild the cached balance from the ledger. Returns ``(user, previous, current)``."""
    with transaction.atomic():
        try:
            student = User.objects.select_for_update().get(pk=student_id)
        except (User.DoesNotExist, TypeError, ValueError):
            raise NotFound("User not found")

        previous = student.points
        current = ledger_balance(student)
        if current != previous:
            User.objects.filter(pk=student.pk).update(points=current)
            student.points = current
            logger.warning(
                f"Balance drift for user {student.pk}: cached {previous}, ledger {current}"
            )
    return student, previous, current


def total_earned(student):
    return PointsTransaction.objects.filter(student=student).awards().total()


def leaderboard_queryset():
    """Students annotated with ``total_earned`` (sum of AWARD rows), best first."""
    return (
        User.objects.students()
        .annotate(
            total_earned=Coalesce(
                Sum('points_received__points', filter=Q(points_received__type=PointsTransaction.Type.AWARD)),
                Value(0),
                output_field=IntegerField(),
            )
        )
        .order_by('-total_earned', '-points', 'username')
    )


def build_leaderboard(current_user=None, limit=None):
    """
    Rank every student by total earned points.

    Returns ``(entries, user_rank, total)`` where ``user_rank`` is the
    caller's own entry when the caller is a student.
    """
    limit = limit if limit is not None else settings.LEADERBOARD_SIZE
    entries = []
    user_rank = None
    for rank, student in enumerate(leaderboard_queryset(), start=1):
        entry = {
            'id': student.id,
            'username': student.username,
            'first_name': student.first_name,
            'last_name': student.last_name,
            'current_points': student.points,
            'total_earned_points': student.total_earned,
            'rank': rank,
        }
        entries.append(entry)
        if current_user is not None and student.pk == current_user.pk:
            user_rank = entry

    total = len(entries)
    if limit:
        entries = entries[:limit]
    return entries, user_rank, total


def student_stats(student):
    from events.models import EventParticipant
    from store.models import ItemRequest

    return {
        'completed_events': EventParticipant.objects.filter(
            user=student, status=EventParticipant.Status.ATTENDED
        ).count(),
        'approved_requests': ItemRequest.objects.filter(
            student=student, status=ItemRequest.Status.APPROVED
        ).count(),
        'current_points': student.points,
        'total_earned_points': total_earned(student),
    }


def tutor_stats(tutor):
    from events.models import Event

    events = Event.objects.filter(created_by=tutor).aggregate(
        events_count=Count('id'),
        completed_events=Count('id', filter=Q(status=Event.Status.COMPLETED)),
    )
    return {
        'students_count': User.objects.students().filter(tutor=tutor).count(),
        'events_count': events['events_count'],
        'points_awarded': PointsTransaction.objects.filter(tutor=tutor).awards().total(),
        'completed_events': events['completed_events'],
    }
