"""
DRF permission classes for the inventory module.

Roles:
- Reception: NO inventory access
- Nurse / Technician: read, receive stock, consume, request discards
- Admin: full access, including discard review
"""
from rest_framework import permissions

from apps.authz.models import RoleChoices
from apps.authz.permissions import _user_roles

INVENTORY_ROLES = {RoleChoices.ADMIN, RoleChoices.NURSE, RoleChoices.TECHNICIAN}


class IsInventoryStaff(permissions.BasePermission):
    """
    Allow access only to clinical roles or superusers.
    """

    message = 'Access to inventory requires a clinical role or admin privileges.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.user.is_superuser:
            return True
        return bool(_user_roles(request) & INVENTORY_ROLES)


class IsInventoryAdmin(permissions.BasePermission):
    """Item master changes and discard review are admin only."""

    message = 'This inventory action requires the admin role.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.user.is_superuser:
            return True
        return RoleChoices.ADMIN in _user_roles(request)
