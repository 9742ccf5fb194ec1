"""Import a JSON export of legacy in-memory links into the database.

The export is an object keyed by link id, or a list of records each
carrying an ``id``. Records use the legacy field names (``expiresAt``,
``createdAt``) or their snake_case equivalents.
"""

import argparse
import json
import os
import sys

from dotenv import load_dotenv

from app.db import SessionLocal
from app.errors import SigningError, ValidationError
from app.services.migration import InMemoryLinkStore, legacy_link_from_dict, legacy_migration


def parse_args():
    parser = argparse.ArgumentParser(description="Migrate legacy secure links into the database.")
    parser.add_argument("export_file", help="Path to the JSON export")
    parser.add_argument(
        "--admin-key",
        default=None,
        help="Admin key (defaults to the ADMIN_KEY environment variable)",
    )
    return parser.parse_args()


def load_store(path: str) -> InMemoryLinkStore:
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        records = list(data.items())
    elif isinstance(data, list):
        records = []
        for index, item in enumerate(data):
            if not isinstance(item, dict) or not item.get("id"):
                raise ValidationError(
                    f"Record {index} is not an object with an id", reason="invalid_record"
                )
            records.append((str(item["id"]), item))
    else:
        raise ValidationError("Export must be an object or a list", reason="invalid_export")
    for link_id, record in records:
        if not isinstance(record, dict):
            raise ValidationError(f"Record {link_id} is not an object", reason="invalid_record")
    return InMemoryLinkStore(
        legacy_link_from_dict(link_id, record) for link_id, record in records
    )


def main():
    load_dotenv()
    args = parse_args()
    try:
        store = load_store(args.export_file)
    except SigningError as exc:
        print(f"Invalid export: {exc.message}", file=sys.stderr)
        sys.exit(1)

    db = SessionLocal()
    try:
        result = legacy_migration.migrate(
            db, store, args.admin_key or os.getenv("ADMIN_KEY")
        )
    except SigningError as exc:
        print(f"Migration failed: {exc.message}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(f"Migrated: {result.migrated_count}")
    print(f"Skipped (already present): {result.skipped_count}")
    print(f"Errors: {result.error_count}")
    for error in result.errors or []:
        print(f"  {error}")
    if result.error_count:
        sys.exit(2)


if __name__ == "__main__":
    main()
