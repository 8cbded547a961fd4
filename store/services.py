"""
Redemption requests: a student asks for a store item, the owning tutor (or
an admin) approves or rejects it. Approval is the only point where stock and
points move, and it happens in one transaction with the involved rows locked.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import (
    AlreadyProcessed, InsufficientBalance, NoTutorAssigned, NotFound, OutOfStock, ValidationFailed,
)
from core.permissions import can_process_request, can_submit_request
from loyaltypoints.services import record_redemption

from .models import ItemRequest, StoreItem

logger = logging.getLogger(__name__)
User = get_user_model()

SETTLED_STATUSES = (ItemRequest.Status.APPROVED, ItemRequest.Status.REJECTED)


def submit_request(student, item_id, note=''):
    can_submit_request(student).enforce()

    with transaction.atomic():
        tutor_id = User.objects.filter(pk=student.pk).values_list('tutor_id', flat=True).first()
        if tutor_id is None:
            raise NoTutorAssigned("Student does not have an assigned tutor")

        # Lock order is item then student, the same as process_request
        # Items from other tutors' stores are invisible to this student
        try:
            item = StoreItem.objects.select_for_update().get(pk=item_id, tutor_id=tutor_id)
        except (StoreItem.DoesNotExist, TypeError, ValueError):
            raise NotFound("Item not found")

        student = User.objects.select_for_update().get(pk=student.pk)
        if student.tutor_id != tutor_id:
            raise NotFound("Item not found")

        if item.available_quantity <= 0:
            raise OutOfStock("Item is out of stock")
        if student.points < item.points_required:
            raise InsufficientBalance("Not enough points to request this item")

        item_request = ItemRequest.objects.create(
            student=student,
            tutor_id=student.tutor_id,
            item=item,
            status=ItemRequest.Status.PENDING,
            points_spent=item.points_required,
            note=note or '',
        )

    logger.info(
        f"Student {student.username} requested item {item.pk} ({item.name}) "
        f"for {item_request.points_spent} points, request {item_request.pk}"
    )
    return item_request


def process_request(actor, request_id, status, note=None):
    if status not in SETTLED_STATUSES:
        raise ValidationFailed("Invalid status. Must be APPROVED or REJECTED")

    with transaction.atomic():
        try:
            item_request = ItemRequest.objects.select_for_update().get(pk=request_id)
        except (ItemRequest.DoesNotExist, TypeError, ValueError):
            raise NotFound("Request not found")

        can_process_request(actor, item_request).enforce()

        if item_request.status != ItemRequest.Status.PENDING:
            raise AlreadyProcessed("Request has already been processed")

        if status == ItemRequest.Status.APPROVED:
            item = StoreItem.objects.select_for_update().get(pk=item_request.item_id)
            student = User.objects.select_for_update().get(pk=item_request.student_id)

            if item.available_quantity <= 0:
                raise OutOfStock("Item is out of stock")
            if student.points < item_request.points_spent:
                raise InsufficientBalance("Student does not have enough points")

            record_redemption(
                student,
                item_request.points_spent,
                f"Redeemed for item: {item.name}",
                actor=actor,
            )
            StoreItem.objects.filter(pk=item.pk).update(available_quantity=F('available_quantity') - 1)

        item_request.status = status
        if note is not None:
            item_request.note = note
        item_request.processed_by = actor
        item_request.processed_at = timezone.now()
        item_request.save(update_fields=['status', 'note', 'processed_by', 'processed_at', 'updated_at'])

    logger.info(f"Request {item_request.pk} {status.lower()} by {actor.username}")
    return item_request
