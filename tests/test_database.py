import unittest

from sqlalchemy import func, inspect, select, text
from sqlalchemy.pool import StaticPool

from pos.database import build_engine, ensure_sqlite_schema, init_db
from pos.database.engine import is_memory_url
from pos.database.session import make_session_factory
from pos.models import Category


class EngineTest(unittest.TestCase):
    def test_memory_urls(self):
        self.assertTrue(is_memory_url("sqlite://"))
        self.assertTrue(is_memory_url("sqlite:///:memory:"))
        self.assertTrue(is_memory_url("sqlite:///file:pos?mode=memory&uri=true"))
        self.assertFalse(is_memory_url("sqlite:///./pos.db"))
        self.assertFalse(is_memory_url("postgresql://localhost/pos"))

    def test_memory_engine_shares_one_connection_with_foreign_keys(self):
        engine = build_engine("sqlite://")
        try:
            self.assertIsInstance(engine.pool, StaticPool)
            with engine.connect() as conn:
                self.assertEqual(conn.execute(text("PRAGMA foreign_keys")).scalar(), 1)
        finally:
            engine.dispose()

    def test_released_savepoint_stays_inside_outer_transaction(self):
        engine = build_engine("sqlite://")
        init_db(engine)
        db = make_session_factory(engine)()
        try:
            with db.begin_nested():
                db.add(Category(name="Snacks"))
            with self.assertRaises(ValueError):
                with db.begin_nested():
                    db.add(Category(name="Spare"))
                    db.flush()
                    raise ValueError("discard")
            self.assertEqual(db.scalar(select(func.count(Category.id))), 1)

            db.rollback()
            self.assertEqual(db.scalar(select(func.count(Category.id))), 0)
        finally:
            db.close()
            engine.dispose()


class EnsureSchemaTest(unittest.TestCase):
    def setUp(self):
        self.engine = build_engine("sqlite://")

    def tearDown(self):
        self.engine.dispose()

    def _create_legacy_tables(self):
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    "CREATE TABLE products ("
                    "id VARCHAR(36) PRIMARY KEY, name TEXT, cost REAL, created_at DATETIME)"
                )
            )
            conn.execute(
                text(
                    "CREATE TABLE sale_items ("
                    "id VARCHAR(36) PRIMARY KEY, sale_id VARCHAR(36), product_id VARCHAR(36), "
                    "quantity INTEGER, price REAL, subtotal REAL)"
                )
            )
            conn.execute(
                text(
                    "INSERT INTO products (id, name, cost, created_at) "
                    "VALUES ('p1', 'Water', 600, '2026-01-01 00:00:00')"
                )
            )
            conn.execute(
                text(
                    "INSERT INTO sale_items (id, sale_id, product_id, quantity, price, subtotal) "
                    "VALUES ('i1', 's1', 'p1', 2, 1000, 2000)"
                )
            )

    def test_adds_missing_columns_and_backfills(self):
        self._create_legacy_tables()

        added = ensure_sqlite_schema(self.engine)

        self.assertIn(("products", "min_stock"), added)
        self.assertIn(("sale_items", "cost"), added)
        with self.engine.connect() as conn:
            product = conn.execute(text("SELECT min_stock, updated_at FROM products")).one()
            item = conn.execute(
                text("SELECT cost, original_price, discount FROM sale_items")
            ).one()
        self.assertEqual(product[0], 10)
        self.assertEqual(product[1], "2026-01-01 00:00:00")
        self.assertEqual(tuple(item), (600, 1000, 0))
        self.assertEqual(ensure_sqlite_schema(self.engine), [])

    def test_init_db_creates_all_tables(self):
        init_db(self.engine)
        tables = set(inspect(self.engine).get_table_names())
        self.assertTrue(
            {
                "categories",
                "suppliers",
                "products",
                "bulk_pricing",
                "customers",
                "sales",
                "sale_items",
                "stock_movements",
            }
            <= tables
        )
        self.assertEqual(ensure_sqlite_schema(self.engine), [])


if __name__ == "__main__":
    unittest.main()
