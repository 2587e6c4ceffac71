import unittest

from fastapi import FastAPI
from fastapi.testclient import TestClient

import pos.models  # noqa: F401
from pos.database.base import Base
from pos.database.engine import build_engine
from pos.database.session import make_session_factory
from pos.dependencies import get_db
from pos.routers import (
    categories_router,
    customers_router,
    data_router,
    expenses_router,
    health_router,
    products_router,
    reports_router,
    sales_router,
    stock_router,
    suppliers_router,
)


def _build_app(session_factory):
    app = FastAPI()
    for router in (
        health_router,
        categories_router,
        suppliers_router,
        products_router,
        customers_router,
        sales_router,
        stock_router,
        expenses_router,
        reports_router,
        data_router,
    ):
        app.include_router(router)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


class ApiTest(unittest.TestCase):
    def setUp(self):
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(bind=self.engine)
        self.client = TestClient(_build_app(make_session_factory(self.engine)))

    def tearDown(self):
        self.client.close()
        self.engine.dispose()

    def _create_product(self, **overrides):
        category = self.client.post("/categories", json={"name": "Snacks"}).json()
        payload = {
            "name": "Chips",
            "barcode": "8830002",
            "category_id": category["id"],
            "price": 500,
            "cost": 300,
            "quantity": 30,
            "bulk_pricing": [{"min_quantity": 10, "bulk_price": 450}],
        }
        payload.update(overrides)
        response = self.client.post("/products", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertTrue(response.json()["database"]["ok"])
        self.assertEqual(response.json()["database"]["sales"], 0)

    def test_product_endpoints(self):
        product = self._create_product()
        self.assertEqual(product["category_name"], "Snacks")
        self.assertEqual(product["min_stock"], 10)
        self.assertEqual(len(product["bulk_pricing"]), 1)
        self.assertTrue(product["bulk_pricing_summary"])

        by_barcode = self.client.get("/products/barcode/8830002")
        self.assertEqual(by_barcode.json()["id"], product["id"])
        self.assertEqual(self.client.get("/products/barcode/0000").status_code, 404)
        self.assertEqual(self.client.get("/products/missing").status_code, 404)

        tier = self.client.post(
            f"/products/{product['id']}/bulk-pricing",
            json={"min_quantity": 20, "bulk_price": 400},
        )
        self.assertEqual(tier.status_code, 201, tier.text)
        bad_tier = self.client.post(
            f"/products/{product['id']}/bulk-pricing",
            json={"min_quantity": 30, "bulk_price": 600},
        )
        self.assertEqual(bad_tier.status_code, 400)

    def test_duplicate_category_is_rejected(self):
        self.client.post("/categories", json={"name": "Snacks"})
        response = self.client.post("/categories", json={"name": "snacks"})
        self.assertEqual(response.status_code, 400)

    def test_quote_and_sale_flow(self):
        product = self._create_product()
        lines = [{"productId": product["id"], "quantity": 10, "discount": 100}]

        quote = self.client.post("/sales/quote", json={"items": lines})
        self.assertEqual(quote.status_code, 200, quote.text)
        self.assertEqual(quote.json()["final_total"], 4400)
        self.assertEqual(quote.json()["lines"][0]["applied_tier"]["min_quantity"], 10)

        sale = self.client.post("/sales", json={"items": lines, "paymentMethod": "cash"})
        self.assertEqual(sale.status_code, 201, sale.text)
        body = sale.json()
        self.assertEqual(body["total"], 4400)
        self.assertEqual(body["payment_method"], "Cash")
        self.assertEqual(body["items"][0]["product_name"], "Chips")

        stock = self.client.get(f"/products/{product['id']}").json()
        self.assertEqual(stock["quantity"], 20)

        receipt = self.client.get(f"/sales/{body['id']}/receipt")
        self.assertEqual(receipt.status_code, 200)
        self.assertIn("TOTAL", receipt.text)
        escpos = self.client.get(f"/sales/{body['id']}/receipt", params={"format": "escpos"})
        self.assertTrue(escpos.content.startswith(b"\x1b@"))

        self.assertEqual(self.client.delete(f"/sales/{body['id']}").status_code, 204)
        stock = self.client.get(f"/products/{product['id']}").json()
        self.assertEqual(stock["quantity"], 30)

    def test_sale_errors(self):
        product = self._create_product(quantity=3)
        too_many = self.client.post(
            "/sales",
            json={
                "items": [{"product_id": product["id"], "quantity": 5}],
                "payment_method": "Cash",
            },
        )
        self.assertEqual(too_many.status_code, 400)
        self.assertIn("Not enough stock", too_many.json()["detail"])

        debt = self.client.post(
            "/sales",
            json={
                "items": [{"product_id": product["id"], "quantity": 1}],
                "payment_method": "Debt",
            },
        )
        self.assertEqual(debt.status_code, 400)

        empty = self.client.post("/sales", json={"items": [], "payment_method": "Cash"})
        self.assertEqual(empty.status_code, 422)

    def test_stock_movements(self):
        product = self._create_product()
        response = self.client.post(
            "/stock/movements",
            json={"product_id": product["id"], "movement_type": "stock_in", "quantity": 5},
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["type"], "stock_in")

        summary = self.client.get("/stock/summary", params={"product_id": product["id"]})
        self.assertEqual(summary.json()["total_stock_in"], 5)
        listed = self.client.get("/stock/movements", params={"type": "stock_in"})
        self.assertEqual(len(listed.json()), 1)

    def test_reports(self):
        self._create_product()
        value = self.client.get("/reports/inventory-value").json()
        self.assertEqual(value["cost_value"], 9000)

        workbook = self.client.get("/reports/inventory.xlsx")
        self.assertEqual(workbook.status_code, 200)
        self.assertTrue(workbook.content.startswith(b"PK"))

    def test_export_and_import(self):
        self._create_product()
        document = self.client.get("/data/export").json()
        self.assertEqual(document["integrity"]["recordCounts"]["products"], 1)

        preview = self.client.post("/data/import/preview", json={"document": document})
        self.assertEqual(preview.status_code, 200, preview.text)
        self.assertTrue(preview.json()["validation"]["checksum_valid"])

        asked = self.client.post(
            "/data/import", json={"document": document, "conflict_resolution": "ask"}
        ).json()
        self.assertFalse(asked["success"])
        self.assertEqual(len(asked["conflicts"]), 3)

        skipped = self.client.post(
            "/data/import", json={"document": document, "conflict_resolution": "skip"}
        ).json()
        self.assertTrue(skipped["success"])
        self.assertEqual(skipped["skipped"], 3)

    def test_export_by_data_type(self):
        self._create_product()
        document = self.client.get("/data/export", params={"data_type": "products"}).json()
        self.assertEqual(document["dataType"], "products")
        self.assertEqual(
            list(document["data"]), ["categories", "suppliers", "products", "bulkPricing"]
        )

        response = self.client.get("/data/export", params={"data_type": "everything"})
        self.assertEqual(response.status_code, 400)

    def test_expense_endpoints(self):
        category = self.client.post("/expenses/categories", json={"name": "Rent"})
        self.assertEqual(category.status_code, 201, category.text)
        category_id = category.json()["id"]

        created = self.client.post(
            "/expenses",
            json={"category_id": category_id, "amount": 150000, "description": "March rent"},
        )
        self.assertEqual(created.status_code, 201, created.text)
        expense = created.json()
        self.assertEqual(expense["category_name"], "Rent")

        rejected = self.client.post(
            "/expenses",
            json={"category_id": category_id, "amount": 0, "description": "Nothing"},
        )
        self.assertEqual(rejected.status_code, 422)

        updated = self.client.put(f"/expenses/{expense['id']}", json={"amount": 160000})
        self.assertEqual(updated.json()["amount"], 160000)

        summary = self.client.get("/expenses/summary").json()
        self.assertEqual(summary["total"], 160000)
        self.assertEqual(summary["by_category"][0]["category_name"], "Rent")

        in_use = self.client.delete(f"/expenses/categories/{category_id}")
        self.assertEqual(in_use.status_code, 400)

        self.assertEqual(self.client.delete(f"/expenses/{expense['id']}").status_code, 204)
        self.assertEqual(self.client.get(f"/expenses/{expense['id']}").status_code, 404)
        self.assertEqual(self.client.get("/expenses").json(), [])


if __name__ == "__main__":
    unittest.main()
