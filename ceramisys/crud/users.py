from sqlalchemy.orm import Session

from ceramisys.core.exceptions import NotFoundError, ConflictError, BusinessRuleError
from ceramisys.models import User, Role, Company
from ceramisys.security import get_password_hash


def get_user_by_username(db: Session, username: str):
    """Active user by username."""
    return db.query(User).filter(User.username == username, User.is_active == True).first()


def get_user(db: Session, user_id: int):
    return db.query(User).filter(User.id == user_id).first()


def get_role(db: Session, role_id: int):
    return db.query(Role).filter(Role.id == role_id).first()


def get_role_by_name(db: Session, name: str):
    return db.query(Role).filter(Role.name == name).first()


def get_roles(db: Session):
    return db.query(Role).order_by(Role.id).all()


def get_users(db: Session, company_id=None, skip: int = 0, limit: int = 100):
    query = db.query(User)
    if company_id is not None:
        query = query.filter(User.company_id == company_id)
    return query.order_by(User.id).offset(skip).limit(limit).all()


def _check_refs(db: Session, role_id=None, company_id=None) -> None:
    if role_id is not None and not get_role(db, role_id):
        raise NotFoundError("الدور غير موجود")
    if company_id is not None and not db.query(Company).filter(Company.id == company_id).first():
        raise NotFoundError("الشركة غير موجودة")


def create_user(db: Session, user_in) -> User:
    if db.query(User).filter(User.username == user_in.username).first():
        raise ConflictError("اسم المستخدم موجود بالفعل")
    _check_refs(db, user_in.role_id, user_in.company_id)

    new_user = User(
        username=user_in.username,
        full_name=user_in.full_name,
        email=user_in.email,
        role_id=user_in.role_id,
        company_id=user_in.company_id,
        is_system_user=user_in.is_system_user,
        is_active=user_in.is_active,
        password_hash=get_password_hash(user_in.password),
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return new_user


def update_user(db: Session, user_id: int, user_in) -> User:
    user_db = get_user(db, user_id)
    if not user_db:
        raise NotFoundError("المستخدم غير موجود")

    update_data = user_in.model_dump(exclude_unset=True)
    _check_refs(db, update_data.get("role_id"), update_data.get("company_id"))

    if "password" in update_data:
        password_raw = update_data.pop("password")
        if password_raw:
            user_db.password_hash = get_password_hash(password_raw)

    for field, value in update_data.items():
        setattr(user_db, field, value)

    db.commit()
    db.refresh(user_db)
    return user_db


def deactivate_user(db: Session, user_id: int) -> User:
    """Soft delete: the user is deactivated and every open session is closed."""
    user_db = get_user(db, user_id)
    if not user_db:
        raise NotFoundError("المستخدم غير موجود")
    if not user_db.is_active:
        raise BusinessRuleError("هذا المستخدم معطل بالفعل")

    user_db.is_active = False
    for session in user_db.sessions:
        session.is_active = False
    db.commit()
    db.refresh(user_db)
    return user_db
