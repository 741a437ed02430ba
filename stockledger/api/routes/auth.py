from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from stockledger.api.deps import get_current_user, require_permission
from stockledger.core.config import settings
from stockledger.core.security import create_access_token
from stockledger.db.database import get_db
from stockledger.models.user import User
from stockledger.schemas.auth import LoginRequest, TokenResponse, UserCreate, UserOut
from stockledger.services.audit import record_audit
from stockledger.services.users import authenticate, create_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _issue_token(db: Session, identity: str, password: str, event_type: str) -> TokenResponse:
    user = authenticate(db, identity, password)
    if not user:
        record_audit(db, "auth.login.failed", actor_name=identity[:120], details={"identity": identity})
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    record_audit(
        db,
        event_type,
        actor_name=user.username,
        actor_user_id=user.id,
        entity_type="user",
        entity_id=str(user.id),
    )
    db.commit()
    return TokenResponse(
        access_token=create_access_token(str(user.id), user.role.value),
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("/token", response_model=TokenResponse)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    return _issue_token(db, form_data.username, form_data.password, "auth.token.success")


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return _issue_token(db, payload.identity, payload.password, "auth.login.success")


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserCreate,
    admin_user: User = Depends(require_permission("users:manage")),
    db: Session = Depends(get_db),
):
    user = create_user(
        db,
        email=payload.email,
        username=payload.username,
        password=payload.password,
        role=payload.role,
        full_name=payload.full_name,
        actor=admin_user,
    )
    db.commit()
    db.refresh(user)
    return user
