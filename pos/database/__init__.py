from pos.database.base import Base
from pos.database.engine import build_engine, engine, ensure_sqlite_schema, init_db
from pos.database.session import SessionLocal

__all__ = ["Base", "SessionLocal", "build_engine", "engine", "ensure_sqlite_schema", "init_db"]
