import argparse
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running this script directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from sqlalchemy.exc import SQLAlchemyError

from pos.core.constants import CONFLICT_RESOLUTIONS
from pos.core.logging import setup_logging
from pos.services.import_service import ImportOptions, generate_import_summary, import_file


def parse_args():
    parser = argparse.ArgumentParser(
        description="Import a JSON data export into the POS database."
    )
    parser.add_argument("--path", required=True, help="Path to the .json export file.")
    parser.add_argument(
        "--conflicts",
        choices=CONFLICT_RESOLUTIONS,
        default="update",
        help="How to treat records that already exist (default: update).",
    )
    parser.add_argument("--batch-size", type=int, default=100)
    parser.add_argument("--dry-run", action="store_true", help="Validate without saving.")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run.")
    return parser.parse_args()


def main():
    args = parse_args()
    setup_logging(level=args.log_level)
    try:
        options = ImportOptions(
            conflict_resolution=args.conflicts,
            batch_size=args.batch_size,
            dry_run=args.dry_run,
        )
        result = import_file(args.path, options)
    except (OSError, ValueError, SQLAlchemyError) as exc:
        raise SystemExit(f"Import failed: {exc}") from exc

    print(generate_import_summary(result))
    if not result.success:
        raise SystemExit(1)
    if args.dry_run:
        print("Dry run complete, no changes committed.")


if __name__ == "__main__":
    main()
