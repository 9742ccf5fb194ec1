import argparse
import json
import sys

from dotenv import load_dotenv

from app.db import SessionLocal
from app.services.maintenance import maintenance


def parse_args():
    parser = argparse.ArgumentParser(description="Show database connectivity and table statistics.")
    parser.add_argument("--json", action="store_true", help="Print the raw health report as JSON.")
    return parser.parse_args()


def _print_block(title: str, values: dict) -> None:
    print(title)
    for key, value in values.items():
        print(f"  {key}: {value}")


def main():
    load_dotenv()
    args = parse_args()
    db = SessionLocal()
    try:
        report = maintenance.health_check(db)
    finally:
        db.close()

    if args.json:
        print(json.dumps(report, default=str, indent=2))
    else:
        print(f"Database connected: {report['database_connected']}")
        _print_block("Secure links:", report["stats"]["secure_links"])
        _print_block("Signed contracts:", report["stats"]["signed_contracts"])
        _print_block("Audit logs:", report["stats"]["audit_logs"])
    if not report["database_connected"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
