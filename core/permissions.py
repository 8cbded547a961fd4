from rest_framework import permissions

from .exceptions import Forbidden
from .models import User


class IsAdmin(permissions.BasePermission):
    """
    Allows access only to admin users.
    """
    message = 'Unauthorized: Admin access required'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and
                    (request.user.role == User.Role.ADMIN or request.user.is_superuser))


class IsTutor(permissions.BasePermission):
    """
    Allows access only to tutor users.
    """
    message = 'Unauthorized: Only tutors can access this endpoint'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and
                    request.user.role == User.Role.TUTOR)


class IsStudent(permissions.BasePermission):
    """
    Allows access only to student users.
    """
    message = 'Unauthorized: Only students can access this endpoint'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and
                    request.user.role == User.Role.STUDENT)


class IsTutorOrAdmin(permissions.BasePermission):
    """
    Allows access only to tutor or admin users.
    """
    message = 'Unauthorized: Only admin or tutor can perform this action'

    def has_permission(self, request, view):
        return bool(
            request.user and
            request.user.is_authenticated and
            request.user.role in (User.Role.TUTOR, User.Role.ADMIN)
        )


# --------------------------------------------------------------------------
# Per-operation authorization decisions
# --------------------------------------------------------------------------

class Decision:
    """Outcome of an authorization check: allowed, or denied with a reason."""

    __slots__ = ('allowed', 'reason')

    def __init__(self, allowed, reason=''):
        self.allowed = allowed
        self.reason = reason

    def __bool__(self):
        return self.allowed

    def __repr__(self):
        return 'Allow' if self.allowed else f'Deny({self.reason!r})'

    @classmethod
    def allow(cls):
        return cls(True)

    @classmethod
    def deny(cls, reason):
        return cls(False, reason)

    def enforce(self):
        if not self.allowed:
            raise Forbidden(self.reason)
        return self


def _is_admin(actor):
    return actor.role == User.Role.ADMIN or actor.is_superuser


def can_view_user(actor, target):
    if _is_admin(actor) or actor.pk == target.pk:
        return Decision.allow()
    if actor.role == User.Role.TUTOR and target.role == User.Role.STUDENT and target.tutor_id == actor.pk:
        return Decision.allow()
    return Decision.deny('Unauthorized: Cannot access this user')


def can_adjust_points(actor, target):
    if _is_admin(actor):
        return Decision.allow()
    if actor.role != User.Role.TUTOR:
        return Decision.deny('Unauthorized: Only admin or tutor can modify points')
    if target.role != User.Role.STUDENT or target.tutor_id != actor.pk:
        return Decision.deny('You can only modify points for your own students')
    return Decision.allow()


def can_submit_request(actor):
    if actor.role != User.Role.STUDENT:
        return Decision.deny('Unauthorized: Only students can request items')
    return Decision.allow()


def can_view_request(actor, item_request):
    if _is_admin(actor):
        return Decision.allow()
    if actor.role == User.Role.TUTOR and item_request.tutor_id == actor.pk:
        return Decision.allow()
    if item_request.student_id == actor.pk:
        return Decision.allow()
    return Decision.deny('Unauthorized to view this request')


def can_process_request(actor, item_request):
    if _is_admin(actor):
        return Decision.allow()
    if actor.role != User.Role.TUTOR:
        return Decision.deny('Unauthorized: Only admin or tutor can update requests')
    if item_request.tutor_id != actor.pk:
        return Decision.deny('Unauthorized: This request belongs to another tutor')
    return Decision.allow()


def can_manage_item(actor, item):
    if _is_admin(actor):
        return Decision.allow()
    if actor.role == User.Role.TUTOR and item.tutor_id == actor.pk:
        return Decision.allow()
    return Decision.deny('You can only manage your own store items')


def can_create_event(actor, scope):
    if scope == 'GLOBAL' and not _is_admin(actor):
        return Decision.deny('Unauthorized: Only admin can create global events')
    if scope == 'GROUP' and actor.role != User.Role.TUTOR:
        return Decision.deny('Unauthorized: Only tutors can create group events')
    return Decision.allow()


def can_update_event(actor, event):
    if _is_admin(actor):
        return Decision.allow()
    if event.scope == 'GLOBAL':
        return Decision.deny('Unauthorized: Only admin can update global events')
    if event.created_by_id != actor.pk:
        return Decision.deny('Unauthorized: You can only update your own group events')
    return Decision.allow()


def can_delete_event(actor, event):
    if _is_admin(actor) or event.created_by_id == actor.pk:
        return Decision.allow()
    return Decision.deny('Unauthorized: You can only delete your own events')


def can_manage_participants(actor, event):
    if _is_admin(actor) or event.created_by_id == actor.pk:
        return Decision.allow()
    return Decision.deny('You do not have permission to manage participants of this event')


def can_view_participants(actor, event, is_participant):
    if _is_admin(actor) or event.created_by_id == actor.pk or is_participant:
        return Decision.allow()
    if actor.role == User.Role.TUTOR:
        return Decision.allow()
    return Decision.deny("You do not have permission to view this event's participants")
