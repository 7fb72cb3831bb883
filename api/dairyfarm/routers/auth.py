from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ..access import AccessContext, Role, get_access_context, get_current_subject, get_store
from ..constants import Collections
from ..db import get_db
from ..errors import AuthorizationError, NotFoundError
from ..schemas import ChangePassword, ProfileUpdate, RegisterIn, ok
from ..security import IdentityProvider
from ..services.accounts import admin_exists, provision_user
from ..store import DocumentStore

router = APIRouter()


@router.post("/login")
def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
):
    identities = IdentityProvider(db)
    identity = identities.authenticate(form.username, form.password)
    user = store.get_by_id(Collections.USERS, identity.id)
    if not user:
        raise NotFoundError("User not found")
    if not user.get("isActive"):
        raise AuthorizationError("Account pending approval")
    token = identities.issue_token(identity)
    body = ok({"user": user, "token": token}, "Login successful")
    body.update({"access_token": token, "token_type": "bearer"})
    return body


@router.post("/register", status_code=201)
def register(
    payload: RegisterIn,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
):
    # The first account bootstraps the system; later ones wait for an admin.
    first_account = not admin_exists(store)
    user = provision_user(
        IdentityProvider(db),
        store,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        role=Role.admin if first_account else Role.farmer,
        is_active=first_account,
    )
    message = "Registration successful" if first_account else "Registration received, awaiting approval"
    return ok({"user": user}, message)


@router.get("/verify")
def verify(ctx: AccessContext = Depends(get_access_context)):
    return ok({"valid": True, "user": ctx.user})


@router.post("/logout")
def logout(subject_id: str = Depends(get_current_subject), db: Session = Depends(get_db)):
    IdentityProvider(db).revoke_tokens(subject_id)
    return ok(message="Logged out successfully")


@router.put("/change-password")
def change_password(
    payload: ChangePassword,
    ctx: AccessContext = Depends(get_access_context),
    db: Session = Depends(get_db),
):
    IdentityProvider(db).change_secret(ctx.user_id, payload.current_password, payload.new_password)
    return ok(message="Password changed successfully")


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    ctx: AccessContext = Depends(get_access_context),
    store: DocumentStore = Depends(get_store),
):
    user = store.update(Collections.USERS, ctx.user_id, payload.to_doc(partial=True))
    return ok({"user": user}, "Profile updated successfully")
