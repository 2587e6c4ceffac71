from sqlalchemy.orm import Session, sessionmaker

from pos.database.engine import engine


def make_session_factory(bind) -> sessionmaker:
    """Sessions flush explicitly and keep loaded state after commit."""
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


SessionLocal = make_session_factory(engine)


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = ["SessionLocal", "get_db", "make_session_factory"]
