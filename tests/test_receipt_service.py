import unittest

from pos.config import Settings
from pos.services.receipt_service import (
    build_receipt,
    format_line,
    render_escpos,
    render_text_receipt,
    truncate,
)
from pos.services.sales_service import build_cart, record_sale

from support import NOW, make_session, seed_shop


class ReceiptLayoutTest(unittest.TestCase):
    def test_format_line_fills_width(self):
        line = format_line("TOTAL", "10,000 MMK", 32)
        self.assertEqual(len(line), 32)
        self.assertTrue(line.startswith("TOTAL"))
        self.assertTrue(line.endswith("10,000 MMK"))

    def test_format_line_truncates_left_side(self):
        line = format_line("A very long product description here", "900 MMK", 20)
        self.assertEqual(len(line), 20)
        self.assertIn("...", line)
        self.assertTrue(line.endswith("900 MMK"))

    def test_truncate(self):
        self.assertEqual(truncate("Water", 10), "Water")
        self.assertEqual(truncate("Mineral Water", 8), "Miner...")
        self.assertEqual(truncate("Water", 2), "Wa")


class ReceiptRenderTest(unittest.TestCase):
    def setUp(self):
        self.db = make_session()
        self.shop = seed_shop(self.db)
        self.sale = record_sale(
            self.db,
            build_cart(
                self.db,
                [{"product_id": self.shop.product.id, "quantity": 12, "discount": 800}],
            ),
            "Cash",
            customer_id=self.shop.customer.id,
            note="Deliver tomorrow",
            created_at=NOW,
        )
        self.settings = Settings(
            SHOP_NAME="Mingalar Store",
            SHOP_PHONE="09-123",
            CURRENCY_CODE="MMK",
            RECEIPT_FOOTER="Come again",
        )

    def tearDown(self):
        self.db.close()

    def test_build_receipt(self):
        receipt = build_receipt(self.db, self.sale.id, settings=self.settings)

        self.assertEqual(receipt.receipt_number, self.sale.id[:8].upper())
        self.assertEqual(receipt.customer_name, "Daw Hla")
        self.assertEqual(receipt.total, 10000)
        [line] = receipt.lines
        self.assertEqual(line.name, "Water")
        self.assertEqual(line.price, 900)
        self.assertEqual(line.discount, 800)

    def test_text_receipt(self):
        receipt = build_receipt(self.db, self.sale.id, settings=self.settings)
        text = render_text_receipt(receipt, width=32)
        lines = text.splitlines()

        self.assertEqual(lines[0].strip(), "Mingalar Store")
        self.assertIn(format_line("TOTAL", "10,000 MMK", 32), lines)
        self.assertIn("  12 x 900 MMK", text)
        self.assertIn("Note: Deliver tomorrow", text)
        self.assertIn("Come again", text)
        self.assertTrue(all(len(line) <= 32 for line in lines))

    def test_escpos_receipt(self):
        receipt = build_receipt(self.db, self.sale.id, settings=self.settings)
        payload = render_escpos(receipt, width=32)

        self.assertTrue(payload.startswith(b"\x1b@"))
        self.assertTrue(payload.endswith(b"\x1dV\x00"))
        self.assertIn(b"\x1b!\x10", payload)
        self.assertIn(b"Mingalar Store", payload)
        self.assertIn(b"TOTAL", payload)


if __name__ == "__main__":
    unittest.main()
