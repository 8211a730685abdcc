"""
Explicit caller capabilities passed into every core operation.

The core never looks up the current user itself. The transport layer
resolves the session and hands an ``AuthContext`` to each call; the
booking, catalog and review managers only ask it questions.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from booking_core.errors import AuthorizationError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    GUEST = "guest"


class Permission(str, Enum):
    BOOKINGS_READ = "bookings:read"
    BOOKINGS_WRITE = "bookings:write"
    SERVICES_READ = "services:read"
    SERVICES_WRITE = "services:write"
    REVIEWS_READ = "reviews:read"
    REVIEWS_MODERATE = "reviews:moderate"
    STATS_READ = "stats:read"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.STAFF: frozenset({
        Permission.BOOKINGS_READ,
        Permission.SERVICES_READ,
        Permission.REVIEWS_READ,
    }),
    Role.GUEST: frozenset(),
}


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity and capability of the caller."""

    role: Role = Role.GUEST
    user_id: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def guest(cls, email: Optional[str] = None) -> "AuthContext":
        return cls(role=Role.GUEST, email=email)

    @classmethod
    def admin(cls, user_id: str = "admin", email: Optional[str] = None) -> "AuthContext":
        return cls(role=Role.ADMIN, user_id=user_id, email=email)

    @classmethod
    def staff(cls, user_id: str, email: Optional[str] = None) -> "AuthContext":
        return cls(role=Role.STAFF, user_id=user_id, email=email)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def has_permission(self, permission: Permission) -> bool:
        return permission in ROLE_PERMISSIONS[self.role]

    def owns(self, customer_email: str) -> bool:
        """True when the caller's email matches the customer's (case-insensitive)."""
        if not self.email:
            return False
        return self.email.strip().lower() == customer_email.strip().lower()


def require_admin(auth: Optional[AuthContext], action: str = "perform this action") -> AuthContext:
    """Return ``auth`` if it carries the admin capability, else raise."""
    if auth is None or not auth.is_admin:
        logger.info("Admin capability required to %s", action)
        raise AuthorizationError(f"Only admins can {action}")
    return auth


def require_permission(
    auth: Optional[AuthContext], permission: Permission, action: str = "perform this action"
) -> AuthContext:
    if auth is None or not auth.has_permission(permission):
        logger.info("Permission %s required to %s", permission.value, action)
        raise AuthorizationError(f"Not authorized to {action}")
    return auth


def require_owner_or_permission(
    auth: Optional[AuthContext],
    customer_email: str,
    permission: Permission,
    action: str = "access this booking",
) -> AuthContext:
    """Allow the owning customer (by email) or any role holding ``permission``."""
    if auth is not None and (auth.has_permission(permission) or auth.owns(customer_email)):
        return auth
    raise AuthorizationError(f"Not authorized to {action}")
