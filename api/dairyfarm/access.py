import enum
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .constants import Collections
from .db import get_db
from .errors import AuthenticationError, AuthorizationError, NotFoundError
from .security import IdentityProvider
from .store import DocumentStore


class Role(str, enum.Enum):
    admin = "admin"
    farmer = "farmer"


PERMISSION_NAMES = (
    "canViewCows",
    "canAddCows",
    "canEditCows",
    "canDeleteCows",
    "canViewMilkRecords",
    "canAddMilkRecords",
    "canEditMilkRecords",
    "canViewFeedRecords",
    "canAddFeedRecords",
    "canEditFeedRecords",
    "canViewHealthRecords",
    "canAddHealthRecords",
    "canEditHealthRecords",
    "canViewChicken",
    "canAddChicken",
    "canEditChicken",
    "canDeleteChicken",
    "canViewStats",
    "canManageUsers",
    "canManageSystem",
    "canViewSalesData",
    "canEditSalesData",
)

ROLE_CAPABILITIES = {
    Role.admin: frozenset(PERMISSION_NAMES),
    Role.farmer: frozenset({
        "canViewCows",
        "canViewMilkRecords",
        "canAddMilkRecords",
        "canViewFeedRecords",
        "canAddFeedRecords",
        "canViewChicken",
        "canViewStats",
    }),
}


def default_permissions(role) -> Dict[str, bool]:
    granted = ROLE_CAPABILITIES[Role(role)]
    return {name: name in granted for name in PERMISSION_NAMES}


@dataclass
class AccessContext:
    user_id: str
    role: Role
    assigned_farm: Optional[str]
    permissions: Dict[str, bool] = field(default_factory=dict)
    user: dict = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin

    def scope_farm(self, requested: Optional[str]) -> Optional[str]:
        """Farm filter for listings: farmers are pinned to their own farm."""
        if self.is_admin:
            return requested or None
        if not self.assigned_farm:
            raise AuthorizationError("No farm assigned to this account")
        return self.assigned_farm

    def ensure_record_access(self, doc: dict, farm_field: str = "farmLocation") -> None:
        if self.is_admin:
            return
        if not self.assigned_farm or doc.get(farm_field) != self.assigned_farm:
            raise AuthorizationError()


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing token")
    return authorization.split(" ", 1)[1]


def get_current_subject(token: str = Depends(get_bearer_token), db: Session = Depends(get_db)) -> str:
    return IdentityProvider(db).verify(token)


def resolve_access(store: DocumentStore, subject_id: str) -> AccessContext:
    user = store.get_by_id(Collections.USERS, subject_id)
    if not user:
        raise NotFoundError("User not found")
    if not user.get("isActive", True):
        raise AuthorizationError("Account is disabled")
    try:
        role = Role(user.get("role"))
    except ValueError:
        raise AuthorizationError("Invalid user role")
    return AccessContext(
        user_id=subject_id,
        role=role,
        assigned_farm=user.get("assignedFarm"),
        permissions=user.get("permissions") or default_permissions(role),
        user=user,
    )


def get_access_context(
    subject_id: str = Depends(get_current_subject),
    store: DocumentStore = Depends(get_store),
) -> AccessContext:
    return resolve_access(store, subject_id)


def require_any_role(ctx: AccessContext = Depends(get_access_context)) -> AccessContext:
    return ctx


def require_admin(ctx: AccessContext = Depends(get_access_context)) -> AccessContext:
    if not ctx.is_admin:
        raise AuthorizationError()
    return ctx
