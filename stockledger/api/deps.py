from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from stockledger.core.security import decode_access_token
from stockledger.db.database import get_db
from stockledger.models.user import User, UserRole
from stockledger.services.catalog import InventoryCatalog
from stockledger.services.ledger import AdjustmentLedger

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

ROLE_PERMISSIONS: dict[UserRole, set[str]] = {
    UserRole.ADMIN: {
        "users:manage",
        "catalog:view",
        "catalog:manage",
        "adjustments:view",
        "adjustments:create",
        "adjustments:approve",
    },
    UserRole.STOCK_MANAGER: {
        "catalog:view",
        "catalog:manage",
        "adjustments:view",
        "adjustments:create",
        "adjustments:approve",
    },
    UserRole.STOREKEEPER: {"catalog:view", "adjustments:view", "adjustments:create"},
}


def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    raw_token = (token or "").strip()
    if not raw_token:
        raw_token = (request.headers.get("x-access-token") or "").strip()
    # Tolerate a duplicated "Bearer " prefix.
    while raw_token.lower().startswith("bearer "):
        raw_token = raw_token[7:].strip()
    if not raw_token:
        raise credentials_exception

    user_id = decode_access_token(raw_token)
    if user_id is None:
        raise credentials_exception

    user = db.get(User, user_id)
    if not user:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is disabled")
    return user


def require_permission(permission: str):
    def checker(current_user: User = Depends(get_current_user)) -> User:
        permissions = ROLE_PERMISSIONS.get(current_user.role, set())
        if permission not in permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {permission}",
            )
        return current_user

    return checker


def get_catalog(db: Session = Depends(get_db)) -> InventoryCatalog:
    return InventoryCatalog(db)


def get_ledger(db: Session = Depends(get_db), catalog: InventoryCatalog = Depends(get_catalog)) -> AdjustmentLedger:
    return AdjustmentLedger(db, catalog=catalog)
