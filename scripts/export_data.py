import argparse
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running this script directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from sqlalchemy.exc import SQLAlchemyError

from pos.core.constants import EXPORT_DATA_TYPES
from pos.core.logging import setup_logging
from pos.database import SessionLocal, init_db
from pos.services.export_service import export_to_file
from pos.services.report_service import (
    build_inventory_workbook,
    build_sale_items_workbook,
    build_sales_workbook,
    save_workbook,
)

_REPORTS = {
    "sales": (build_sales_workbook, "sales_list.xlsx"),
    "sale-items": (build_sale_items_workbook, "sales_items.xlsx"),
    "inventory": (build_inventory_workbook, "inventory.xlsx"),
}


def parse_args():
    parser = argparse.ArgumentParser(
        description="Export POS data as a JSON backup and optional xlsx reports."
    )
    parser.add_argument("--output-dir", default=None, help="Directory for exported files.")
    parser.add_argument("--filename", default=None, help="Override the JSON file name.")
    parser.add_argument(
        "--data-type",
        choices=sorted(EXPORT_DATA_TYPES),
        default="all",
        help="Which sections to export.",
    )
    parser.add_argument(
        "--reports",
        nargs="*",
        choices=sorted(_REPORTS),
        default=[],
        help="Spreadsheet reports to write alongside the JSON export.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run.")
    return parser.parse_args()


def main():
    args = parse_args()
    setup_logging(level=args.log_level)
    init_db()

    db = SessionLocal()
    try:
        result = export_to_file(db, args.output_dir, args.filename, data_type=args.data_type)
        print(f"Exported {result.record_count} record(s) to {result.path} ({result.file_size} bytes)")
        for name in args.reports:
            builder, filename = _REPORTS[name]
            path = save_workbook(builder(db), result.path.parent / filename)
            print(f"Wrote {name} report to {path}")
    except (OSError, SQLAlchemyError) as exc:
        raise SystemExit(f"Export failed: {exc}") from exc
    finally:
        db.close()


if __name__ == "__main__":
    main()
