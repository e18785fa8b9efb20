from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from ceramisys.core.config import settings

# check_same_thread is only needed for SQLite
connect_args = (
    {"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {}
)

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Shared declarative base for every model
Base = declarative_base()


# Dependency: one session per request
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
