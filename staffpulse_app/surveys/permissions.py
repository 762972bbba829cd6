from __future__ import annotations

from .errors import AccessDenied
from .services.access import has_access


def can_view_location(admin_id, location_id) -> bool:
    return has_access(admin_id, location_id)


def require_location_access(admin_id, location_id) -> None:
    if not can_view_location(admin_id, location_id):
        raise AccessDenied("You do not have permission to view this location.")


def can_reveal_identity(user) -> bool:
    """Only platform administrators (superusers) may reveal identities."""
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    return bool(user.is_superuser)


def require_can_reveal_identity(user) -> None:
    if not can_reveal_identity(user):
        raise AccessDenied("You do not have permission to reveal respondent identity.")
