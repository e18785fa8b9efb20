from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from ceramisys.core.config import settings
from ceramisys.core.exceptions import PermissionDeniedError
from ceramisys.database import get_db
from ceramisys.models import User, UserSession

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def verify_password(plain_password, hashed_password):
    """Checks a plain password against the stored bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt, expire


async def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="بيانات الدخول غير صالحة",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = db.query(User).filter(User.id == int(user_id), User.is_active == True).first()
    if user is None:
        raise credentials_exception

    # The token must still belong to an open session
    session = db.query(UserSession).filter(
        UserSession.user_id == user.id,
        UserSession.token == token,
        UserSession.is_active == True,
        UserSession.expires_at > datetime.utcnow(),
    ).first()
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="انتهت الجلسة، يرجى تسجيل الدخول مرة أخرى",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_roles(*role_names: str):
    """Dependency factory: the caller's role name must be one of ``role_names``."""

    async def checker(current_user: User = Depends(get_current_user)):
        if current_user.role_name not in role_names:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="ليس لديك صلاحية لتنفيذ هذه العملية",
            )
        return current_user

    return checker


def require_permissions(*permissions: str):
    """Dependency factory: the caller's role must hold every permission, or ``all``."""

    async def checker(current_user: User = Depends(get_current_user)):
        granted = set(current_user.permissions)
        if "all" not in granted and not set(permissions).issubset(granted):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="ليس لديك صلاحية لتنفيذ هذه العملية",
            )
        return current_user

    return checker


def resolve_company_id(current_user: User, company_id: Optional[int] = None) -> Optional[int]:
    """
    Company a request works on. System users may pick any company (``None``
    means all of them); everybody else is pinned to their own.
    """
    if current_user.can_access_all_companies:
        return company_id
    if company_id is not None and company_id != current_user.company_id:
        raise PermissionDeniedError("ليس لديك صلاحية للوصول إلى بيانات هذه الشركة")
    return current_user.company_id


def ensure_company_access(current_user: User, company_id: int) -> None:
    if not current_user.can_access_all_companies and company_id != current_user.company_id:
        raise PermissionDeniedError("ليس لديك صلاحية للوصول إلى بيانات هذه الشركة")
