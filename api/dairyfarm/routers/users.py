from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..access import AccessContext, PERMISSION_NAMES, Role, default_permissions, get_store, require_admin
from ..constants import Collections
from ..db import get_db
from ..errors import NotFoundError, ValidationError
from ..schemas import PermissionsUpdate, UserCreate, UserUpdate, ok
from ..security import IdentityProvider
from ..services.accounts import deprovision_user, provision_user
from ..store import DocumentStore

router = APIRouter()


def _get_user(store: DocumentStore, user_id: str) -> dict:
    user = store.get_by_id(Collections.USERS, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _check_permissions(permissions: dict) -> None:
    unknown = set(permissions) - set(PERMISSION_NAMES)
    if unknown:
        raise ValidationError(f"Unknown permissions: {', '.join(sorted(unknown))}")


@router.get("")
def list_users(
    farm: Optional[str] = None,
    role: Optional[Role] = None,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    filters = {"assignedFarm": farm, "role": role.value if role else None}
    return ok({"users": store.list(Collections.USERS, filters)})


@router.get("/farm/{farm_location}")
def list_users_by_farm(
    farm_location: str,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return ok({"users": store.list(Collections.USERS, {"assignedFarm": farm_location})})


@router.get("/{user_id}")
def get_user(
    user_id: str,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return ok({"user": _get_user(store, user_id)})


@router.post("", status_code=201)
def create_user(
    payload: UserCreate,
    _: AccessContext = Depends(require_admin),
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
):
    if payload.permissions:
        _check_permissions(payload.permissions)
    user = provision_user(
        IdentityProvider(db),
        store,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        assigned_farm=payload.assigned_farm,
        phone=payload.phone,
        permissions=payload.permissions,
    )
    return ok({"user": user}, "User created successfully")


@router.put("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    current = _get_user(store, user_id)
    changes = payload.to_doc(partial=True)
    if payload.permissions:
        _check_permissions(payload.permissions)
    elif payload.role and payload.role.value != current.get("role"):
        # A role change without explicit permissions resets to the role defaults.
        changes["permissions"] = default_permissions(payload.role)
    user = store.update(Collections.USERS, user_id, changes)
    return ok({"user": user}, "User updated successfully")


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    ctx: AccessContext = Depends(require_admin),
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
):
    if user_id == ctx.user_id:
        raise ValidationError("You cannot delete your own account")
    deprovision_user(IdentityProvider(db), store, user_id)
    return ok(message="User deleted successfully")


@router.put("/{user_id}/permissions")
def update_permissions(
    user_id: str,
    payload: PermissionsUpdate,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    _check_permissions(payload.permissions)
    current = _get_user(store, user_id)
    permissions = {**(current.get("permissions") or {}), **payload.permissions}
    user = store.update(Collections.USERS, user_id, {"permissions": permissions})
    return ok({"user": user}, "Permissions updated successfully")
