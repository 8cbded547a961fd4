"""
Account use cases: creating users, role changes and the self-service
registration review.

Side effects that belong to a use case (a tutor's classroom, hashing a
password) happen here explicitly rather than in model signals.
"""
import logging

from django.contrib.auth.hashers import make_password
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from .exceptions import AlreadyProcessed, Conflict, NotFound, ValidationFailed
from .models import Classroom, RegistrationRequest, User

logger = logging.getLogger(__name__)


def ensure_classroom(tutor):
    classroom, created = Classroom.objects.get_or_create(
        tutor=tutor,
        defaults={
            'name': f"{tutor.get_full_name()}'s Classroom",
            'description': f"Classroom for {tutor.get_full_name()}'s students",
        },
    )
    if created:
        logger.info(f"Created classroom {classroom.pk} for tutor {tutor.username}")
    return classroom


def check_identity_available(username, email, exclude_user=None):
    """Raise Conflict when the username or email belongs to another user."""
    users = User.objects.filter(Q(username=username) | Q(email__iexact=email))
    if exclude_user is not None:
        users = users.exclude(pk=exclude_user.pk)
    if users.exists():
        raise Conflict("User with this email or username already exists")


def _resolve_tutor(tutor):
    if tutor is None:
        return None
    if not isinstance(tutor, User):
        try:
            tutor = User.objects.get(pk=tutor)
        except (User.DoesNotExist, TypeError, ValueError):
            raise ValidationFailed("Invalid tutor ID")
    if tutor.role != User.Role.TUTOR:
        raise ValidationFailed("Invalid tutor ID")
    return tutor


def create_user(username, email, password, role=User.Role.STUDENT, first_name='', last_name='',
                tutor=None, require_tutor=True, password_is_hashed=False):
    """
    Create an account of any role.

    Students must be given a tutor unless ``require_tutor`` is False (accounts
    approved from a registration request get one assigned later). Tutors get
    their classroom in the same transaction.
    """
    if role not in User.Role.values:
        raise ValidationFailed("Invalid role")

    email = (email or '').lower().strip()
    username = (username or '').strip()
    if not username or not email or not password:
        raise ValidationFailed("Username, email and password are required")

    tutor = _resolve_tutor(tutor) if role == User.Role.STUDENT else None
    if role == User.Role.STUDENT and tutor is None and require_tutor:
        raise ValidationFailed("Students must be assigned to a tutor")

    check_identity_available(username, email)

    with transaction.atomic():
        try:
            user = User.objects.create_user(
                username=username,
                email=email,
                password=None if password_is_hashed else password,
                first_name=first_name or '',
                last_name=last_name or '',
                role=role,
                tutor=tutor,
                is_staff=role == User.Role.ADMIN,
            )
        except IntegrityError:
            raise Conflict("User with this email or username already exists")

        if password_is_hashed:
            user.password = password
            user.save(update_fields=['password'])

        if role == User.Role.TUTOR:
            ensure_classroom(user)

    logger.info(f"Created {role} account {user.username} (id {user.pk})")
    return user


def create_tutor(username, email, password, first_name='', last_name=''):
    return create_user(
        username, email, password,
        role=User.Role.TUTOR, first_name=first_name, last_name=last_name,
    )


def create_student_for_tutor(tutor, username, email, password, first_name='', last_name=''):
    return create_user(
        username, email, password,
        role=User.Role.STUDENT, first_name=first_name, last_name=last_name, tutor=tutor,
    )


def change_role(actor, user, role):
    if role not in User.Role.values:
        raise ValidationFailed("Invalid role")
    if actor.pk == user.pk and role != User.Role.ADMIN:
        raise ValidationFailed("You cannot change your own role")
    if user.role == role:
        return user

    with transaction.atomic():
        user = User.objects.select_for_update().get(pk=user.pk)
        if user.role == User.Role.TUTOR and user.students.exists():
            raise Conflict("Reassign this tutor's students before changing their role")

        previous = user.role
        user.role = role
        user.is_staff = role == User.Role.ADMIN
        if role != User.Role.STUDENT:
            user.tutor = None
        user.save(update_fields=['role', 'is_staff', 'tutor'])

        if role == User.Role.TUTOR:
            ensure_classroom(user)

    logger.info(f"{actor.username} changed role of {user.username} from {previous} to {role}")
    return user


def promote_to_tutor(actor, user):
    return change_role(actor, user, User.Role.TUTOR)


def assign_tutor(user, tutor):
    if user.role != User.Role.STUDENT:
        raise ValidationFailed("Only students can be assigned to a tutor")
    user.tutor = _resolve_tutor(tutor)
    user.save(update_fields=['tutor'])
    return user


def set_password(user, password):
    if not password or len(password) < 6:
        raise ValidationFailed("Password must be at least 6 characters long")
    user.set_password(password)
    user.save(update_fields=['password'])
    logger.info(f"Password changed for user {user.pk}")
    return user


def delete_user(actor, user):
    if actor.pk == user.pk:
        raise ValidationFailed("You cannot delete your own account")
    if user.role == User.Role.TUTOR and user.students.exists():
        raise Conflict("Reassign this tutor's students before deleting the account")
    logger.info(f"{actor.username} deleted user {user.username} (id {user.pk})")
    user.delete()


# --------------------------------------------------------------------------
# Self-service registration
# --------------------------------------------------------------------------

def submit_registration(username, email, password, first_name, last_name, requested_role=User.Role.STUDENT):
    email = (email or '').lower().strip()
    username = (username or '').strip()

    if requested_role not in RegistrationRequest.REQUESTABLE_ROLES:
        raise ValidationFailed("Invalid role requested")

    check_identity_available(username, email)
    pending = RegistrationRequest.objects.filter(
        Q(username=username) | Q(email__iexact=email),
        status=RegistrationRequest.Status.PENDING,
    )
    if pending.exists():
        raise Conflict("A registration request with this email or username is already pending")

    registration = RegistrationRequest.objects.create(
        username=username,
        email=email,
        password=make_password(password),
        first_name=first_name,
        last_name=last_name,
        requested_role=requested_role,
    )
    logger.info(f"Registration request {registration.pk} submitted for {username} as {requested_role}")
    return registration


def _lock_pending_registration(request_id):
    try:
        registration = RegistrationRequest.objects.select_for_update().get(pk=request_id)
    except (RegistrationRequest.DoesNotExist, TypeError, ValueError):
        raise NotFound("Registration request not found")
    if registration.status != RegistrationRequest.Status.PENDING:
        raise AlreadyProcessed("Registration request has already been processed")
    return registration


def approve_registration(actor, request_id):
    with transaction.atomic():
        registration = _lock_pending_registration(request_id)
        user = create_user(
            registration.username,
            registration.email,
            registration.password,
            role=registration.requested_role,
            first_name=registration.first_name,
            last_name=registration.last_name,
            require_tutor=False,
            password_is_hashed=True,
        )
        registration.status = RegistrationRequest.Status.APPROVED
        registration.processed_at = timezone.now()
        registration.save(update_fields=['status', 'processed_at'])

    logger.info(f"{actor.username} approved registration {registration.pk}")
    return registration, user


def reject_registration(actor, request_id, reason):
    if not reason or not reason.strip():
        raise ValidationFailed("Rejection reason is required")

    with transaction.atomic():
        registration = _lock_pending_registration(request_id)
        registration.status = RegistrationRequest.Status.REJECTED
        registration.rejection_reason = reason.strip()
        registration.processed_at = timezone.now()
        registration.save(update_fields=['status', 'rejection_reason', 'processed_at'])

    logger.info(f"{actor.username} rejected registration {registration.pk}: {reason}")
    return registration
