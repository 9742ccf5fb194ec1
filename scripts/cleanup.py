import argparse
import sys

from dotenv import load_dotenv

from app.config import settings
from app.db import SessionLocal
from app.services.maintenance import maintenance


def parse_args():
    parser = argparse.ArgumentParser(
        description="Delete expired links and old audit entries, then repair unreadable audit details."
    )
    parser.add_argument("--dry-run", action="store_true", help="Only count what would be deleted.")
    parser.add_argument("--keep-audit-days", type=int, default=settings.audit_retention_days)
    parser.add_argument("--link-grace-days", type=int, default=settings.link_retention_days)
    parser.add_argument("--quiet", action="store_true")
    return parser.parse_args()


def main():
    load_dotenv()
    args = parse_args()
    db = SessionLocal()
    try:
        health = maintenance.health_check(db)
        if not health["database_connected"]:
            print("Cannot connect to the database.", file=sys.stderr)
            sys.exit(1)

        result = maintenance.cleanup(
            db,
            link_grace_days=args.link_grace_days,
            audit_retention_days=args.keep_audit_days,
            dry_run=args.dry_run,
        )
        verb = "would be deleted" if args.dry_run else "deleted"
        print(f"Secure links {verb}: {result['deleted_links']}")
        print(f"Audit entries older than {args.keep_audit_days} days {verb}: {result['deleted_logs']}")

        if not args.dry_run:
            repaired = maintenance.cleanup_audit_logs(db)
            print(
                f"Unreadable audit entries deleted: {repaired['deleted_count']}, "
                f"corrected: {repaired['corrected_count']}"
            )
            reconciled = maintenance.reconcile_used_flags(db)
            print(f"Signed links flagged as used: {reconciled}")

        if not args.quiet:
            stats = maintenance.health_check(db)["stats"]
            print("Remaining rows:")
            print(f"  secure_links: {stats['secure_links']['total']}")
            print(f"  signed_contracts: {stats['signed_contracts']['total']}")
            print(f"  audit_logs: {stats['audit_logs']['total']}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
