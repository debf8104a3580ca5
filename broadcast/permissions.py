"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import SAFE_METHODS, BasePermission

STAFF_ROLES = {"admin", "doctor", "nurse", "pharmacist", "technician"}
DISPLAY_ADMIN_ROLES = {"admin", "technician"}


class IsStaffRole(BasePermission):
    """Any hospital staff member; these may raise and handle emergency codes."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in STAFF_ROLES)


class IsDisplayAdmin(BasePermission):
    """Administrators and technicians manage the public display fleet."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        return bool(user.is_superuser or getattr(user, "role", None) in DISPLAY_ADMIN_ROLES)


class IsDisplayAdminOrStaffReadOnly(BasePermission):
    """Staff may look at a display; only display admins may change it."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        if request.method in SAFE_METHODS:
            return IsStaffRole().has_permission(request, view)
        return IsDisplayAdmin().has_permission(request, view)
