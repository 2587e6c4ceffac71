import json
import tempfile
import unittest
import uuid
from pathlib import Path
from unittest.mock import patch

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from pos.database.base import Base
from pos.database.engine import build_engine
from pos.database.session import make_session_factory
from pos.models.category import Category
from pos.models.customer import Customer
from pos.models.product import Product
from pos.models.stock_movement import StockMovement
from pos.services import catalog_service, customer_service, expense_service
from pos.services.export_service import build_export_document
from pos.services.import_service import (
    ImportOptions,
    ImportWatchService,
    generate_import_summary,
    import_document,
    load_import_file,
    preview_import,
    validate_import_document,
)
from pos.services.sales_service import build_cart, record_sale

from support import NOW, make_session, seed_shop


def _document(**sections):
    return {"version": "2.0", "dataType": "all", "data": sections}


def _product_count(db):
    return db.execute(select(func.count(Product.id))).scalar_one()


class ImportRoundTripTest(unittest.TestCase):
    def setUp(self):
        self.source = make_session()
        self.shop = seed_shop(self.source)
        record_sale(
            self.source,
            build_cart(self.source, [{"product_id": self.shop.product.id, "quantity": 12}]),
            "Cash",
            customer_id=self.shop.customer.id,
            created_at=NOW,
        )
        self.document = build_export_document(self.source, now=NOW)
        self.target = make_session()

    def tearDown(self):
        self.source.close()
        self.target.close()

    def test_round_trip_preserves_records(self):
        result = import_document(self.target, self.document)

        self.assertTrue(result.success)
        self.assertEqual(result.imported, 7)
        self.assertEqual(result.errors, 0)

        product = catalog_service.get_product(self.target, self.shop.product.id)
        self.assertEqual(product.quantity, 38)
        self.assertEqual(product.category.name, "Drinks")
        self.assertEqual(product.supplier.name, "Golden Valley")
        self.assertEqual(len(product.bulk_pricing), 2)

        customer = customer_service.get_customer(self.target, self.shop.customer.id)
        self.assertEqual(customer.total_spent, 10800)
        self.assertEqual(customer.visit_count, 1)

        history = customer_service.customer_purchase_history(self.target, customer.id)
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].items[0].quantity, 12)

    def test_reimport_with_skip(self):
        import_document(self.target, self.document)
        result = import_document(
            self.target, self.document, ImportOptions(conflict_resolution="skip")
        )
        self.assertTrue(result.success)
        self.assertEqual(result.imported, 0)
        self.assertEqual(result.skipped, 7)
        self.assertTrue(all(c.matched_by == "uuid" for c in result.conflicts))

    def test_reimport_with_update_does_not_duplicate_sales(self):
        import_document(self.target, self.document)
        result = import_document(self.target, self.document)
        self.assertEqual(result.imported, 0)
        self.assertEqual(result.counts["sales"].skipped, 1)
        self.assertEqual(result.counts["products"].updated, 1)
        product = catalog_service.get_product(self.target, self.shop.product.id)
        self.assertEqual(product.quantity, 38)

    def test_ask_reports_conflicts_without_importing(self):
        import_document(self.target, self.document)
        result = import_document(
            self.target, self.document, ImportOptions(conflict_resolution="ask")
        )
        self.assertFalse(result.success)
        self.assertEqual(len(result.conflicts), 7)
        self.assertEqual(result.imported, 0)
        self.assertIn("conflict", generate_import_summary(result))

    def test_dry_run_leaves_database_untouched(self):
        result = import_document(self.target, self.document, ImportOptions(dry_run=True))
        self.assertTrue(result.success)
        self.assertTrue(result.dry_run)
        self.assertEqual(result.imported, 7)
        self.assertEqual(_product_count(self.target), 0)
        self.assertIn("dry run", generate_import_summary(result))

    def test_validation_and_preview(self):
        validation = validate_import_document(self.document)
        self.assertTrue(validation.is_valid)
        self.assertTrue(validation.checksum_valid)
        self.assertEqual(validation.record_counts["products"], 1)

        preview = preview_import(self.source, self.document)
        self.assertEqual(len(preview["sample_data"]["bulkPricing"]), 2)
        self.assertTrue(all(c.conflict_type == "duplicate" for c in preview["conflicts"]))

    def test_tampered_document_warns(self):
        self.document["data"]["customers"][0]["name"] = "Changed"
        validation = validate_import_document(self.document)
        self.assertFalse(validation.checksum_valid)
        self.assertTrue(any("Checksum" in warning for warning in validation.warnings))

    def test_load_import_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "backup.json"
            path.write_text(json.dumps(self.document), encoding="utf-8")
            self.assertEqual(load_import_file(path)["version"], "2.0")

            broken = Path(tmp) / "broken.json"
            broken.write_text("{not json", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_import_file(broken)

            csv_path = Path(tmp) / "backup.csv"
            csv_path.write_text("name,price\n", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_import_file(csv_path)
            with self.assertRaises(FileNotFoundError):
                load_import_file(Path(tmp) / "missing.json")


class ImportMatchingTest(unittest.TestCase):
    def setUp(self):
        self.db = make_session()
        self.shop = seed_shop(self.db)

    def tearDown(self):
        self.db.close()

    def test_update_by_name_keeps_category(self):
        document = _document(products=[{"name": "water", "price": 1100, "cost": 650}])
        result = import_document(self.db, document)

        self.assertEqual(result.updated, 1)
        self.assertEqual(result.conflicts[0].matched_by, "name")
        product = catalog_service.get_product(self.db, self.shop.product.id)
        self.assertEqual(product.price, 1100)
        self.assertEqual(product.category.name, "Drinks")
        self.assertEqual(product.supplier.name, "Golden Valley")

    def test_match_by_barcode(self):
        document = _document(
            products=[{"name": "Mineral Water", "barcode": "8830001", "price": 1000, "cost": 600}]
        )
        result = import_document(self.db, document, ImportOptions(conflict_resolution="skip"))
        self.assertEqual(result.skipped, 1)
        self.assertEqual(result.conflicts[0].matched_by, "barcode")

    def test_match_customer_by_phone(self):
        document = _document(customers=[{"name": "Hla Hla", "phone": "09-222"}])
        result = import_document(self.db, document, ImportOptions(conflict_resolution="skip"))
        self.assertEqual(result.conflicts[0].matched_by, "phone")

    def test_tier_is_remapped_onto_product_matched_by_name(self):
        file_product_id = str(uuid.uuid4())
        document = _document(
            products=[{"id": file_product_id, "name": "Water", "price": 1000, "cost": 600}],
            bulkPricing=[{"product_id": file_product_id, "min_quantity": 50, "bulk_price": 700}],
        )
        result = import_document(self.db, document)

        self.assertEqual(result.counts["bulkPricing"].imported, 1)
        tiers = catalog_service.list_bulk_pricing(self.db, self.shop.product.id)
        self.assertEqual([tier.min_quantity for tier in tiers], [10, 20, 50])

    def test_stock_movements_are_ledger_only(self):
        document = _document(
            stockMovements=[
                {"product_id": self.shop.product.id, "movement_type": "stock_in", "quantity": 5}
            ]
        )
        result = import_document(self.db, document)

        self.assertEqual(result.imported, 1)
        movement = self.db.execute(select(StockMovement)).scalars().one()
        self.assertEqual(movement.type, "stock_in")
        self.assertEqual(self.shop.product.quantity, 50)


class ImportValidationTest(unittest.TestCase):
    def setUp(self):
        self.db = make_session()

    def tearDown(self):
        self.db.close()

    def test_product_without_category_uses_default(self):
        result = import_document(
            self.db, _document(products=[{"name": "Rice", "price": 2000, "cost": 1500}])
        )
        self.assertEqual(result.imported, 1)
        [product] = catalog_service.list_products(self.db)
        self.assertEqual(product.category.name, "General")
        self.assertEqual(product.min_stock, 10)

    def test_category_name_creates_category(self):
        import_document(
            self.db,
            _document(products=[{"name": "Rice", "price": 2000, "cost": 1500, "category": "Grains"}]),
        )
        self.assertIsNotNone(catalog_service.find_category_by_name(self.db, "grains"))

    def test_invalid_records_are_skipped(self):
        document = _document(
            products=[
                {"name": "No cost", "price": 100},
                {"name": "Bad price", "price": "abc", "cost": 50},
                {"name": "Good", "price": 100, "cost": 50},
            ]
        )
        result = import_document(self.db, document)

        self.assertEqual(result.imported, 1)
        self.assertEqual(result.skipped, 2)
        self.assertEqual(
            [issue.code for issue in result.issues],
            ["MISSING_REQUIRED_FIELDS", "INVALID_DATA_TYPES"],
        )

    def test_missing_product_reference(self):
        document = _document(
            stockMovements=[{"product_id": str(uuid.uuid4()), "type": "stock_in", "quantity": 1}]
        )
        result = import_document(self.db, document)

        self.assertEqual(result.errors, 1)
        self.assertEqual(result.issues[0].code, "MISSING_REFERENCE")

    def test_unusable_documents(self):
        cases = [
            [],
            {"version": "2.0"},
            _document(products=[]),
        ]
        for document in cases:
            with self.subTest(document=document):
                result = import_document(self.db, document)
                self.assertFalse(result.success)

    def test_invalid_options(self):
        with self.assertRaises(ValueError):
            ImportOptions(conflict_resolution="merge")
        with self.assertRaises(ValueError):
            ImportOptions(batch_size=0)

    def test_rejected_product_leaves_no_category_or_supplier(self):
        document = _document(
            products=[
                {
                    "name": "Ghost",
                    "price": -5,
                    "cost": 1,
                    "category": "Phantom",
                    "supplier": "Ghost Co",
                }
            ]
        )
        result = import_document(self.db, document)

        self.assertEqual(result.errors, 1)
        self.assertEqual(result.issues[0].code, "PROCESSING_ERROR")
        self.assertEqual(_product_count(self.db), 0)
        self.assertIsNone(catalog_service.find_category_by_name(self.db, "Phantom"))
        self.assertIsNone(catalog_service.find_supplier_by_name(self.db, "Ghost Co"))

    def test_bad_record_does_not_undo_its_neighbours(self):
        document = _document(
            products=[
                {"name": "Rice", "price": 2000, "cost": 1500, "category": "Grains"},
                {"name": "Ghost", "price": -5, "cost": 1, "category": "Phantom"},
                {"name": "Oil", "price": 5000, "cost": 4000, "category": "Grains"},
            ]
        )
        result = import_document(self.db, document)

        self.assertEqual(result.imported, 2)
        self.assertEqual(result.errors, 1)
        self.assertEqual(
            sorted(product.name for product in catalog_service.list_products(self.db)),
            ["Oil", "Rice"],
        )
        self.assertEqual(
            self.db.execute(select(Category.name)).scalars().all(), ["Grains"]
        )

    def test_database_error_on_one_record_is_counted(self):
        create_customer = customer_service.create_customer

        def flaky_create(db, values, **kwargs):
            if values["name"] == "Broken":
                raise OperationalError("INSERT INTO customers", {}, Exception("disk I/O error"))
            return create_customer(db, values, **kwargs)

        document = _document(
            customers=[{"name": "U Ba"}, {"name": "Broken"}, {"name": "Daw Mya"}]
        )
        with patch("pos.services.customer_service.create_customer", side_effect=flaky_create):
            result = import_document(self.db, document)

        self.assertTrue(result.success)
        self.assertEqual(result.counts["customers"].imported, 2)
        self.assertEqual(result.counts["customers"].errors, 1)
        self.assertEqual(result.issues[0].code, "PROCESSING_ERROR")
        self.assertEqual(
            self.db.execute(select(func.count(Customer.id))).scalar_one(), 2
        )

    def test_fractional_quantities_are_invalid(self):
        document = _document(
            products=[
                {"name": "Rice", "price": 2000, "cost": 1500, "quantity": 2.5},
                {"name": "Oil", "price": 5000, "cost": 4000, "quantity": 3.0},
            ],
            customers=[{"name": "U Ba"}],
            bulkPricing=[
                {"product_id": str(uuid.uuid4()), "min_quantity": 0.5, "bulk_price": 10}
            ],
            stockMovements=[{"product_id": str(uuid.uuid4()), "type": "stock_in", "quantity": 0.5}],
        )
        result = import_document(self.db, document)

        self.assertEqual(result.counts["products"].imported, 1)
        self.assertEqual(result.counts["products"].skipped, 1)
        self.assertEqual(result.counts["customers"].imported, 1)
        self.assertEqual(result.counts["bulkPricing"].skipped, 1)
        self.assertEqual(result.counts["stockMovements"].skipped, 1)
        self.assertEqual(
            [issue.code for issue in result.issues],
            ["INVALID_DATA_TYPES"] * 3,
        )
        [product] = catalog_service.list_products(self.db)
        self.assertEqual(product.name, "Oil")
        self.assertEqual(product.quantity, 3)

    def test_zero_quantity_movement_is_an_error(self):
        product_id = str(uuid.uuid4())
        document = _document(
            products=[{"id": product_id, "name": "Rice", "price": 2000, "cost": 1500}],
            stockMovements=[{"product_id": product_id, "type": "stock_in", "quantity": 0.0}],
        )
        result = import_document(self.db, document)

        self.assertEqual(result.counts["products"].imported, 1)
        self.assertEqual(result.counts["stockMovements"].errors, 1)
        self.assertEqual(result.issues[0].code, "PROCESSING_ERROR")

    def test_non_string_identifiers_are_invalid(self):
        document = _document(
            customers=[{"id": 42, "name": "U Ba"}, {"name": "Daw Mya"}],
            sales=[{"total": 100, "payment_method": "Cash", "customer_id": ["c-1"]}],
            saleItems=[{"sale_id": {"id": "s-1"}, "product_id": "p-1", "quantity": 1, "price": 1}],
        )
        preview = preview_import(self.db, document)
        self.assertEqual(preview["conflicts"], [])

        result = import_document(self.db, document)

        self.assertEqual(result.counts["customers"].imported, 1)
        self.assertEqual(result.counts["customers"].skipped, 1)
        self.assertEqual(result.counts["sales"].skipped, 1)
        self.assertEqual(
            [issue.code for issue in result.issues],
            ["INVALID_DATA_TYPES", "INVALID_DATA_TYPES"],
        )
        self.assertEqual(
            self.db.execute(select(func.count(Customer.id))).scalar_one(), 1
        )


class ExpenseImportTest(unittest.TestCase):
    def setUp(self):
        self.source = make_session()
        rent = expense_service.get_or_create_expense_category(self.source, "Rent")
        self.expense = expense_service.create_expense(
            self.source,
            {"category_id": rent.id, "amount": 150000, "description": "March rent", "date": NOW},
        )
        self.document = build_export_document(self.source, now=NOW)
        self.target = make_session()

    def tearDown(self):
        self.source.close()
        self.target.close()

    def test_round_trip(self):
        result = import_document(self.target, self.document)

        self.assertEqual(result.counts["expenseCategories"].imported, 1)
        self.assertEqual(result.counts["expenses"].imported, 1)
        expense = expense_service.get_expense(self.target, self.expense.id)
        self.assertEqual(expense.amount, 150000)
        self.assertEqual(expense.category.name, "Rent")

    def test_reimport_updates_in_place(self):
        import_document(self.target, self.document)
        self.document["data"]["expenses"][0]["amount"] = 160000
        result = import_document(self.target, self.document)

        self.assertEqual(result.counts["expenses"].updated, 1)
        [expense] = expense_service.list_expenses(self.target)
        self.assertEqual(expense.amount, 160000)

    def test_category_resolved_by_name(self):
        document = _document(
            expenses=[
                {"amount": 5000, "description": "Bus fare", "category": "Transport"},
                {"amount": 300, "description": "Tea"},
                {"amount": -1, "description": "Refund", "category": "Refunds"},
            ]
        )
        result = import_document(self.target, document)

        self.assertEqual(result.counts["expenses"].imported, 2)
        self.assertEqual(result.counts["expenses"].errors, 1)
        self.assertEqual(
            [category.name for category in expense_service.list_expense_categories(self.target)],
            ["Transport"],
        )


class ImportWatchServiceTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.watch_dir = Path(self.tmp.name)
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(bind=self.engine)
        self.session_factory = make_session_factory(self.engine)
        self.service = ImportWatchService(
            self.watch_dir, options=ImportOptions(), session_factory=self.session_factory
        )
        source = make_session()
        try:
            seed_shop(source)
            self.document = build_export_document(source, now=NOW)
        finally:
            source.close()

    def tearDown(self):
        self.tmp.cleanup()
        self.engine.dispose()

    def _write(self, name, payload):
        path = self.watch_dir / name
        path.write_text(payload, encoding="utf-8")
        return path

    def _product_count(self):
        db = self.session_factory()
        try:
            return _product_count(db)
        finally:
            db.close()

    def test_imports_a_settled_file_once(self):
        path = self._write("backup.json", json.dumps(self.document))

        self.assertEqual(self.service.scan_once(), [])
        self.assertEqual(self.service.scan_once(), [path])
        self.assertEqual(self.service.scan_once(), [])
        self.assertEqual(self._product_count(), 1)

    def test_copy_of_an_imported_export_is_skipped(self):
        self._write("backup.json", json.dumps(self.document))
        self.service.scan_once()
        self.service.scan_once()

        self._write("backup-copy.json", json.dumps(self.document, indent=2))
        with patch(
            "pos.services.import_service.import_document", wraps=import_document
        ) as importer:
            self.assertEqual(self.service.scan_once(), [])
            self.assertEqual(self.service.scan_once(), [])
        importer.assert_not_called()

    def test_unreadable_file_is_retried_only_after_it_changes(self):
        path = self._write("broken.json", "{not json")
        with patch(
            "pos.services.import_service.load_import_file", wraps=load_import_file
        ) as loader:
            for _ in range(4):
                self.assertEqual(self.service.scan_once(), [])
            self.assertEqual(loader.call_count, 1)

            self._write("broken.json", json.dumps(self.document))
            self.assertEqual(self.service.scan_once(), [])
            self.assertEqual(self.service.scan_once(), [path])
        self.assertEqual(loader.call_count, 2)
        self.assertEqual(self._product_count(), 1)


if __name__ == "__main__":
    unittest.main()
