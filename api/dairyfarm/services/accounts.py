import logging
from typing import Dict, Optional

from ..access import Role, default_permissions
from ..constants import Collections
from ..errors import NotFoundError
from ..security import IdentityProvider
from ..store import DocumentStore

logger = logging.getLogger(__name__)


def provision_user(
    identities: IdentityProvider,
    store: DocumentStore,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: Role,
    assigned_farm: Optional[str] = None,
    phone: Optional[str] = None,
    permissions: Optional[Dict[str, bool]] = None,
    is_active: bool = True,
) -> dict:
    """Create the identity and its profile document under the same id."""
    role = Role(role)
    subject_id = identities.create_identity(email, password)
    try:
        return store.create(
            Collections.USERS,
            {
                "email": email.lower(),
                "firstName": first_name,
                "lastName": last_name,
                "phone": phone,
                "role": role.value,
                "assignedFarm": assigned_farm,
                "permissions": permissions or default_permissions(role),
                "isActive": is_active,
            },
            doc_id=subject_id,
        )
    except Exception:
        try:
            identities.delete_identity(subject_id)
        except Exception:
            logger.exception("Failed to remove orphaned identity %s", subject_id)
        raise


def deprovision_user(identities: IdentityProvider, store: DocumentStore, user_id: str) -> None:
    """Remove the profile, then the identity.

    The profile removal is authoritative; an identity that cannot be removed
    is logged and left behind.
    """
    if not store.delete(Collections.USERS, user_id):
        raise NotFoundError("User not found")
    try:
        identities.delete_identity(user_id)
    except Exception:
        logger.exception("Failed to delete identity for user %s", user_id)


def admin_exists(store: DocumentStore) -> bool:
    return store.count(Collections.USERS, {"role": Role.admin.value}) > 0
