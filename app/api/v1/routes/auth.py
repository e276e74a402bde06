from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.schemas.auth import (
    LoginRequest, RefreshRequest, RegisterRequest, ProfileUpdate,
    ChangePasswordRequest, ForgotPasswordRequest, ResetPasswordRequest,
)
from app.models.user import User
from app.core.errors import ok
from app.api.deps import get_current_user
from app.services import account_service

router = APIRouter(tags=["auth"])

@router.post("/auth/register", status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    user = account_service.register(db, body)
    return ok(account_service.user_to_dict(user), message="Account created")


@router.post("/auth/login")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = account_service.authenticate(db, body.email, body.password)
    return ok(account_service.issue_tokens(user).model_dump())


@router.post("/auth/refresh")
def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    user = account_service.refresh(db, body.refresh_token)
    return ok(account_service.issue_tokens(user).model_dump())

@router.get("/auth/me")
def me(me: User = Depends(get_current_user)):
    """Return current user info including role."""
    return ok(account_service.user_to_dict(me))


@router.get("/user/profile")
def get_profile(me: User = Depends(get_current_user)):
    return ok(account_service.user_to_dict(me))


@router.patch("/user/profile")
def update_profile(body: ProfileUpdate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    user = account_service.update_profile(db, me, name=body.name, phone=body.phone)
    return ok(account_service.user_to_dict(user), message="Profile updated")


@router.post("/auth/change-password")
def change_password(body: ChangePasswordRequest,
                    db: Session = Depends(get_db),
                    me: User = Depends(get_current_user)):
    account_service.change_password(db, me, body.oldPassword, body.newPassword)
    return ok(message="Password changed")


@router.post("/auth/forgot-password")
def forgot_password(body: ForgotPasswordRequest, db: Session = Depends(get_db)):
    account_service.request_password_reset(db, body.email)
    return ok(message=account_service.FORGOT_MESSAGE)


@router.post("/auth/reset-password")
def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    account_service.reset_password(db, body.token, body.password)
    return ok(message="Password has been reset successfully. You can now log in with your new password.")
