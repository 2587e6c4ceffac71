import unittest
from datetime import timedelta

from pos.core.errors import RecordNotFoundError
from pos.services.stock_service import (
    add_stock_movement,
    list_stock_movements,
    stock_movement_summary,
)

from support import NOW, make_session, seed_shop


class StockServiceTest(unittest.TestCase):
    def setUp(self):
        self.db = make_session()
        self.shop = seed_shop(self.db, quantity=5)

    def tearDown(self):
        self.db.close()

    def test_stock_in_adds_quantity(self):
        movement = add_stock_movement(
            self.db,
            self.shop.product.id,
            "stock_in",
            20,
            supplier_id=self.shop.supplier.id,
            unit_cost=550,
            reference_number="PO-1",
        )
        self.assertEqual(movement.type, "stock_in")
        self.assertEqual(self.shop.product.quantity, 25)

    def test_stock_out_clamps_at_zero(self):
        with self.assertLogs("pos.services.stock_service", level="WARNING"):
            add_stock_movement(self.db, self.shop.product.id, "stock_out", 8, reason="damaged")
        self.assertEqual(self.shop.product.quantity, 0)

    def test_invalid_movements(self):
        cases = [
            ("transfer", 1, None),
            ("stock_in", 0, None),
            ("stock_in", 1, -5),
        ]
        for movement_type, quantity, unit_cost in cases:
            with self.subTest(movement_type=movement_type, quantity=quantity):
                with self.assertRaises(ValueError):
                    add_stock_movement(
                        self.db,
                        self.shop.product.id,
                        movement_type,
                        quantity,
                        unit_cost=unit_cost,
                    )
        with self.assertRaises(RecordNotFoundError):
            add_stock_movement(self.db, "missing", "stock_in", 1)
        self.assertEqual(self.shop.product.quantity, 5)

    def test_listing_and_summary(self):
        product_id = self.shop.product.id
        add_stock_movement(self.db, product_id, "stock_in", 10, created_at=NOW - timedelta(days=5))
        add_stock_movement(self.db, product_id, "stock_out", 3, created_at=NOW - timedelta(days=2))
        add_stock_movement(self.db, product_id, "stock_in", 4, created_at=NOW - timedelta(days=1))

        movements = list_stock_movements(self.db, product_id=product_id)
        self.assertEqual([m.quantity for m in movements], [4, 3, 10])
        self.assertEqual(len(list_stock_movements(self.db, movement_type="stock_out")), 1)
        self.assertEqual(
            len(list_stock_movements(self.db, start=NOW - timedelta(days=3), end=NOW)),
            2,
        )

        summary = stock_movement_summary(self.db, product_id=product_id)
        self.assertEqual(summary["total_stock_in"], 14)
        self.assertEqual(summary["total_stock_out"], 3)
        self.assertEqual(summary["net_movement"], 11)
        self.assertEqual(summary["movement_count"], 3)


if __name__ == "__main__":
    unittest.main()
