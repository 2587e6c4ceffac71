import importlib
import logging
import sqlite3

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from pos.config import get_settings
from pos.database.base import Base

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def is_memory_url(url) -> bool:
    url = make_url(url)
    if url.get_backend_name() != "sqlite":
        return False
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def _sqlite_connect_listener(memory: bool):
    def on_connect(dbapi_connection, _connection_record):
        # pysqlite's implicit BEGIN breaks SAVEPOINT; "begin" below emits it instead.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_SECONDS * 1000}")
            if memory:
                return
            try:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            except sqlite3.DatabaseError:
                logger.warning("WAL journal mode unavailable; using the default journal")
        finally:
            cursor.close()

    return on_connect


def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str) -> Engine:
    """Engine for ``database_url``; sqlite gets pragmas and a shared in-memory pool."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    memory = is_memory_url(url)
    kwargs = {}
    if memory:
        kwargs["poolclass"] = StaticPool
    built = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
        pool_pre_ping=True,
        **kwargs,
    )
    event.listen(built, "connect", _sqlite_connect_listener(memory))
    event.listen(built, "begin", _emit_begin)
    return built


engine = build_engine(get_settings().DATABASE_URL)


# Columns that older database files may lack, with their DDL.
_SQLITE_COLUMN_DEFAULTS = {
    "products": {
        "min_stock": "INTEGER NOT NULL DEFAULT 10",
        "image_url": "TEXT",
        "updated_at": "DATETIME",
    },
    "customers": {
        "total_spent": "REAL NOT NULL DEFAULT 0",
        "visit_count": "INTEGER NOT NULL DEFAULT 0",
        "updated_at": "DATETIME",
    },
    "sale_items": {
        "original_price": "REAL",
        "bulk_discount": "REAL NOT NULL DEFAULT 0",
        "cost": "REAL NOT NULL DEFAULT 0",
        "discount": "REAL NOT NULL DEFAULT 0",
    },
    "stock_movements": {
        "reference_number": "TEXT",
        "unit_cost": "REAL",
    },
}

# Backfills run once, right after the column is added.
_SQLITE_BACKFILLS = {
    ("products", "updated_at"): (
        "UPDATE products SET updated_at = created_at WHERE updated_at IS NULL"
    ),
    ("customers", "updated_at"): (
        "UPDATE customers SET updated_at = created_at WHERE updated_at IS NULL"
    ),
    ("sale_items", "original_price"): (
        "UPDATE sale_items SET original_price = price WHERE original_price IS NULL"
    ),
    ("sale_items", "cost"): (
        "UPDATE sale_items SET cost = COALESCE("
        "(SELECT products.cost FROM products WHERE products.id = sale_items.product_id), 0)"
    ),
}


def _quote(identifier: str) -> str:
    return '"{}"'.format(identifier.replace('"', '""'))


def _table_columns(conn, table_name: str) -> set:
    # noinspection SqlNoDataSourceInspection
    rows = conn.exec_driver_sql(f"PRAGMA table_info({_quote(table_name)})").mappings()
    return {row["name"] for row in rows}


def ensure_sqlite_schema(bind=None) -> list:
    """Add missing columns to existing sqlite tables and backfill them.

    Returns the ``(table, column)`` pairs that were added.
    """
    bind = bind or engine
    if bind.dialect.name != "sqlite":
        return []

    added = []
    with bind.begin() as conn:
        for table_name, columns in _SQLITE_COLUMN_DEFAULTS.items():
            existing = _table_columns(conn, table_name)
            if not existing:
                continue
            for column_name, ddl in columns.items():
                if column_name in existing:
                    continue
                # noinspection SqlNoDataSourceInspection
                conn.exec_driver_sql(
                    f"ALTER TABLE {_quote(table_name)} ADD COLUMN {_quote(column_name)} {ddl}"
                )
                added.append((table_name, column_name))
        for key in added:
            backfill = _SQLITE_BACKFILLS.get(key)
            if backfill:
                conn.exec_driver_sql(backfill)

    for table_name, column_name in added:
        logger.info("Added missing column %s.%s", table_name, column_name)
    return added


def init_db(bind=None) -> None:
    bind = bind or engine
    importlib.import_module("pos.models")
    Base.metadata.create_all(bind=bind)
    ensure_sqlite_schema(bind)


__all__ = ["build_engine", "engine", "ensure_sqlite_schema", "init_db", "is_memory_url"]
