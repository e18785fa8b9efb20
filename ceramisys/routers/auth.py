import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ceramisys.core.exceptions import AuthenticationError, CeramiSysError
from ceramisys.crud.users import get_user_by_username
from ceramisys.database import get_db
from ceramisys.models import User, UserSession
from ceramisys.schemas.users import LoginRequest, Token, UserRead
from ceramisys.security import verify_password, create_access_token, get_current_user, oauth2_scheme
from ceramisys.utils.responses import ok

router = APIRouter()
logger = logging.getLogger(__name__)


async def _read_credentials(request: Request) -> LoginRequest:
    """Accepts the OAuth2 password form as well as a JSON body."""
    try:
        if request.headers.get("content-type", "").startswith("application/json"):
            payload = await request.json()
        else:
            form = await request.form()
            payload = {"username": form.get("username"), "password": form.get("password")}
        return LoginRequest.model_validate(payload)
    except (ValidationError, ValueError):
        raise CeramiSysError("اسم المستخدم وكلمة المرور مطلوبان")


@router.post("/login")
async def login_for_access_token(request: Request, db: Session = Depends(get_db)):
    credentials = await _read_credentials(request)

    user = get_user_by_username(db, username=credentials.username)
    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning("Failed login for %s", credentials.username)
        raise AuthenticationError("اسم المستخدم أو كلمة المرور غير صحيحة")

    access_token, expires_at = create_access_token(
        data={"sub": str(user.id), "company_id": user.company_id, "role": user.role_name},
    )
    db.add(UserSession(user_id=user.id, token=access_token, is_active=True, expires_at=expires_at))
    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    token = Token(access_token=access_token, expires_at=expires_at, user=UserRead.model_validate(user))
    logger.info("User %s logged in", user.username)

    body = ok(token, "تم تسجيل الدخول بنجاح")
    # OAuth2 clients read the token from the top level
    body["access_token"] = access_token
    body["token_type"] = "bearer"
    return body


@router.post("/logout")
def logout(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    db.query(UserSession).filter(
        UserSession.user_id == current_user.id,
        UserSession.token == token,
    ).update({UserSession.is_active: False}, synchronize_session=False)
    db.commit()
    return ok(None, "تم تسجيل الخروج بنجاح")


@router.get("/me")
def read_user_me(current_user: User = Depends(get_current_user)):
    return ok(UserRead.model_validate(current_user))
