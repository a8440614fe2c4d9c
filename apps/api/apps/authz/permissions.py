"""
Role-based permissions shared by the dialysis operations endpoints.

- Admin: everything, including permanent delete and discard review
- Nurse / Technician: clinical operations (sessions, notes, inventory)
- Reception: read everything, book / reschedule / cancel appointments
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices

CLINICAL_ROLES = {RoleChoices.ADMIN, RoleChoices.NURSE, RoleChoices.TECHNICIAN}
ALL_ROLES = CLINICAL_ROLES | {RoleChoices.RECEPTION}


def _user_roles(request):
    if not request.user or not request.user.is_authenticated:
        return set()
    return set(request.user.user_roles.values_list('role__name', flat=True))


class IsAdmin(permissions.BasePermission):
    """Only Admin role users."""

    def has_permission(self, request, view):
        return RoleChoices.ADMIN in _user_roles(request)


class IsAdminOrReadOnly(permissions.BasePermission):
    """Any staff role may read; only Admin may write (master data)."""

    def has_permission(self, request, view):
        user_roles = _user_roles(request)
        if request.method in permissions.SAFE_METHODS:
            return bool(user_roles & ALL_ROLES)
        return RoleChoices.ADMIN in user_roles


class IsClinicalStaff(permissions.BasePermission):
    """
    Clinical staff may write; Reception is read-only.
    """

    def has_permission(self, request, view):
        user_roles = _user_roles(request)
        if request.method in permissions.SAFE_METHODS:
            return bool(user_roles & ALL_ROLES)
        return bool(user_roles & CLINICAL_ROLES)


class CanBookAppointments(permissions.BasePermission):
    """
    Every staff role may read and book appointments.

    Status changes other than cancel are clinical and are checked
    again by the view.
    """

    def has_permission(self, request, view):
        return bool(_user_roles(request) & ALL_ROLES)
