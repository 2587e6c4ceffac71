import unittest

from pos.core.errors import InsufficientStockError
from pos.services.pricing_service import Cart, CartProduct, PriceTier

WATER = CartProduct(
    product_id="p-water",
    name="Water",
    unit_price=1000,
    cost=600,
    stock=30,
    tiers=(PriceTier(10, 900), PriceTier(20, 800)),
)
CHIPS = CartProduct(product_id="p-chips", name="Chips", unit_price=1200, cost=800, stock=5)


class CartTest(unittest.TestCase):
    def setUp(self):
        self.cart = Cart()

    def test_adding_same_product_increments_quantity(self):
        self.cart.add_product(WATER)
        self.cart.add_product(WATER)
        self.assertEqual(len(self.cart), 1)
        self.assertEqual(self.cart.get_line("p-water").quantity, 2)
        self.assertEqual(self.cart.get_line("p-water").discount, 0)

    def test_quantity_change_reprices_line(self):
        self.cart.add_product(WATER)
        line = self.cart.update_quantity("p-water", 12)
        self.assertEqual(line.effective_unit_price, 900)
        self.assertEqual(line.subtotal, 10800)

        line = self.cart.update_quantity("p-water", 9)
        self.assertEqual(line.effective_unit_price, 1000)
        self.assertEqual(line.subtotal, 9000)

    def test_totals_stack_bulk_and_manual_discounts(self):
        self.cart.add_product(WATER, 12)
        self.cart.update_discount("p-water", 800)
        self.cart.add_product(CHIPS, 2)

        totals = self.cart.totals()
        self.assertEqual(totals.original_total, 14400)
        self.assertEqual(totals.bulk_total, 13200)
        self.assertEqual(totals.final_total, 12400)
        self.assertEqual(totals.bulk_savings, 1200)
        self.assertEqual(totals.manual_savings, 800)
        self.assertEqual(totals.total_savings, 2000)
        self.assertEqual(totals.item_count, 14)

        water = totals.lines[0]
        self.assertEqual(water.subtotal, water.effective_unit_price * water.quantity - water.discount)
        self.assertEqual(water.applied_tier.min_quantity, 10)
        self.assertEqual(water.next_tier.min_quantity, 20)
        self.assertIsNone(totals.lines[1].applied_tier)

    def test_discount_bounds(self):
        self.cart.add_product(WATER, 2)
        with self.assertRaises(ValueError):
            self.cart.update_discount("p-water", -1)
        with self.assertRaises(ValueError):
            self.cart.update_discount("p-water", 2001)
        self.cart.update_discount("p-water", 2000)
        self.assertEqual(self.cart.totals().final_total, 0)

    def test_discount_clamped_when_quantity_drops(self):
        self.cart.add_product(WATER, 2)
        self.cart.update_discount("p-water", 1500)
        line = self.cart.update_quantity("p-water", 1)
        self.assertEqual(line.discount, 1000)
        self.assertEqual(line.subtotal, 0)

    def test_stock_limits(self):
        self.cart.add_product(CHIPS, 5)
        with self.assertRaises(InsufficientStockError):
            self.cart.add_product(CHIPS)
        with self.assertRaises(InsufficientStockError):
            self.cart.update_quantity("p-chips", 6)
        self.assertEqual(self.cart.get_line("p-chips").quantity, 5)

    def test_zero_quantity_removes_line(self):
        self.cart.add_product(WATER)
        self.assertIsNone(self.cart.update_quantity("p-water", 0))
        self.assertTrue(self.cart.is_empty)
        with self.assertRaises(LookupError):
            self.cart.get_line("p-water")

    def test_empty_cart_totals(self):
        totals = self.cart.totals()
        self.assertEqual(totals.final_total, 0)
        self.assertEqual(totals.discount_percentage, 0)
        self.assertEqual(totals.lines, [])


if __name__ == "__main__":
    unittest.main()
