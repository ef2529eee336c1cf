# orderhub/auth/policy.py
"""
Role-based access policy.

Every guarded endpoint names an action; the action maps to the roles allowed to
perform it. Ownership rules ("a customer may read their own order") are checked
with :meth:`AccessPolicy.require_self_or` once the target row is known. Services
below the API layer assume the call is already authorized.
"""
from typing import Dict, FrozenSet, Optional
from fastapi import HTTPException, status
import logging

from orderhub.models.auth.user import User
from orderhub.models.shared.enums import UserRole

logger = logging.getLogger(__name__)

STAFF = frozenset({UserRole.ADMIN, UserRole.RESTAURANT_OWNER, UserRole.RESTAURANT_STAFF})
EVERYONE = frozenset(UserRole)

ACTION_ROLES: Dict[str, FrozenSet[UserRole]] = {
    "order:create": frozenset({UserRole.CUSTOMER}) | STAFF,
    "order:read": EVERYONE,
    "order:list": STAFF,
    "order:update": frozenset({UserRole.CUSTOMER}) | STAFF,
    "order:delete": frozenset({UserRole.CUSTOMER}) | STAFF,
    "order:transition": STAFF | {UserRole.DRIVER},
    "delivery:assign": STAFF,
    "delivery:drivers": STAFF,
    "delivery:location": frozenset({UserRole.DRIVER}),
    "delivery:track": EVERYONE,
    "delivery:active": STAFF | {UserRole.DRIVER},
    "vehicle:manage": frozenset({UserRole.DRIVER, UserRole.ADMIN}),
    "payment:initialize": EVERYONE,
    "payment:verify": EVERYONE,
    "payment:read": EVERYONE,
    "payment:refund": frozenset({UserRole.ADMIN, UserRole.RESTAURANT_OWNER}),
}


class AccessPolicy:
    def __init__(self, user: User):
        self.user = user

    def can(self, action: str) -> bool:
        allowed = ACTION_ROLES.get(action)
        if allowed is None:
            logger.warning(f"Unknown action checked: {action}")
            return False
        return self.user.role in allowed

    def require(self, action: str, custom_message: Optional[str] = None):
        if not self.can(action):
            message = custom_message or f"Insufficient permissions for {action}"
            logger.warning(f"Permission check failed for user {self.user.id}: {message}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)

    @property
    def is_staff(self) -> bool:
        return self.user.role in STAFF

    def require_self_or(self, owner_id: Optional[int], *roles: UserRole):
        """Allow the owner of a row, admins, and any of ``roles``"""
        if owner_id is not None and owner_id == self.user.id:
            return
        if self.user.role == UserRole.ADMIN or self.user.role in roles:
            return
        logger.warning(f"User {self.user.id} denied access to a row owned by {owner_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this resource")
