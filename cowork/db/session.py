from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session, SessionTransaction
from ..config import get_settings

settings = get_settings()

DATABASE_URL = settings.sqlalchemy_url

engine = create_engine(DATABASE_URL, future=True, echo=False)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
Base = declarative_base()


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def unit_of_work(db: Session) -> SessionTransaction:
    """Transaction for one multi-step operation; nested when one is already open."""

    return db.begin_nested() if db.in_transaction() else db.begin()
