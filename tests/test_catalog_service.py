import unittest

from pos.core.errors import RecordNotFoundError
from pos.services import catalog_service
from pos.services.sales_service import build_cart, record_sale

from support import make_session, seed_shop


class CatalogServiceTest(unittest.TestCase):
    def setUp(self):
        self.db = make_session()
        self.shop = seed_shop(self.db)

    def tearDown(self):
        self.db.close()

    def test_category_names_are_unique(self):
        with self.assertRaises(ValueError):
            catalog_service.create_category(self.db, {"name": "drinks"})

    def test_delete_category_in_use_is_refused(self):
        with self.assertRaises(ValueError):
            catalog_service.delete_category(self.db, self.shop.category.id)
        spare = catalog_service.create_category(self.db, {"name": "Spare"})
        catalog_service.delete_category(self.db, spare.id)
        self.assertIsNone(catalog_service.find_category_by_name(self.db, "Spare"))

    def test_delete_supplier_in_use_is_refused(self):
        with self.assertRaises(ValueError):
            catalog_service.delete_supplier(self.db, self.shop.supplier.id)

    def test_product_defaults_and_lookup(self):
        product = catalog_service.create_product(
            self.db,
            {"name": "Chips", "category_id": self.shop.category.id, "price": 1200, "cost": 800},
        )
        self.assertEqual(product.quantity, 0)
        self.assertEqual(product.min_stock, 10)
        found = catalog_service.find_product_by_barcode(self.db, "8830001")
        self.assertEqual(found.id, self.shop.product.id)

    def test_create_product_validates_references(self):
        with self.assertRaises(RecordNotFoundError):
            catalog_service.create_product(
                self.db,
                {"name": "Ghost", "category_id": "missing", "price": 1, "cost": 1},
            )
        with self.assertRaises(ValueError):
            catalog_service.create_product(
                self.db,
                {"name": "Bad", "category_id": self.shop.category.id, "price": -1, "cost": 1},
            )

    def test_low_stock_list(self):
        catalog_service.create_product(
            self.db,
            {
                "name": "Chips",
                "category_id": self.shop.category.id,
                "price": 1200,
                "cost": 800,
                "quantity": 10,
            },
        )
        names = [product.name for product in catalog_service.list_low_stock_products(self.db)]
        self.assertEqual(names, ["Chips"])

    def test_search_products(self):
        self.assertEqual(len(catalog_service.list_products(self.db, search="wat")), 1)
        self.assertEqual(len(catalog_service.list_products(self.db, search="8830")), 1)
        self.assertEqual(catalog_service.list_products(self.db, search="tea"), [])

    def test_delete_sold_product_is_refused(self):
        cart = build_cart(self.db, [{"product_id": self.shop.product.id, "quantity": 1}])
        record_sale(self.db, cart, "Cash")
        with self.assertRaises(ValueError):
            catalog_service.delete_product(self.db, self.shop.product.id)


class BulkTierServiceTest(unittest.TestCase):
    def setUp(self):
        self.db = make_session()
        self.shop = seed_shop(self.db)
        self.product_id = self.shop.product.id

    def tearDown(self):
        self.db.close()

    def test_tiers_created_with_product(self):
        tiers = catalog_service.list_bulk_pricing(self.db, self.product_id)
        self.assertEqual([tier.min_quantity for tier in tiers], [10, 20])
        self.assertEqual(
            catalog_service.product_pricing_summary(self.shop.product),
            "Buy 10+ for up to 20% off",
        )

    def test_add_tier_validation(self):
        cases = [
            {"min_quantity": 30, "bulk_price": 1000},
            {"min_quantity": 10, "bulk_price": 850},
            {"min_quantity": 0, "bulk_price": 500},
        ]
        for values in cases:
            with self.subTest(values=values):
                with self.assertRaises(ValueError):
                    catalog_service.add_bulk_tier(self.db, self.product_id, values)

        catalog_service.add_bulk_tier(self.db, self.product_id, {"min_quantity": 50, "bulk_price": 700})
        tiers = catalog_service.list_bulk_pricing(self.db, self.product_id)
        self.assertEqual([tier.min_quantity for tier in tiers], [10, 20, 50])

    def test_add_tier_for_missing_product(self):
        with self.assertRaises(RecordNotFoundError):
            catalog_service.add_bulk_tier(self.db, "missing", {"min_quantity": 5, "bulk_price": 1})

    def test_price_cannot_drop_below_tier_price(self):
        with self.assertRaises(ValueError):
            catalog_service.update_product(self.db, self.product_id, {"price": 850})

    def test_replace_and_delete_tiers(self):
        records = catalog_service.replace_bulk_tiers(
            self.db,
            self.product_id,
            [{"min_quantity": 6, "bulk_price": 950}],
        )
        self.assertEqual([(tier.min_quantity, tier.bulk_price) for tier in records], [(6, 950)])
        catalog_service.delete_bulk_tier(self.db, records[0].id)
        self.assertEqual(catalog_service.list_bulk_pricing(self.db, self.product_id), [])

    def test_update_tier(self):
        tier = catalog_service.list_bulk_pricing(self.db, self.product_id)[0]
        updated = catalog_service.update_bulk_tier(self.db, tier.id, {"bulk_price": 950})
        self.assertEqual(updated.bulk_price, 950)
        with self.assertRaises(ValueError):
            catalog_service.update_bulk_tier(self.db, tier.id, {"min_quantity": 20})

    def test_update_tier_rejects_explicit_zero(self):
        tier = catalog_service.list_bulk_pricing(self.db, self.product_id)[0]
        for values in ({"bulk_price": 0}, {"min_quantity": 0}, {"bulk_price": 0, "min_quantity": 0}):
            with self.subTest(values=values):
                with self.assertRaises(ValueError):
                    catalog_service.update_bulk_tier(self.db, tier.id, values)
        self.db.refresh(tier)
        self.assertEqual((tier.min_quantity, tier.bulk_price), (10, 900))


class DefaultCategoryTest(unittest.TestCase):
    def test_fallback_category_created_on_demand(self):
        db = make_session()
        try:
            category = catalog_service.get_default_category(db)
            self.assertEqual(category.name, "General")
            self.assertEqual(catalog_service.get_default_category(db).id, category.id)
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
