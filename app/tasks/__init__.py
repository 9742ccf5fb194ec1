from app.tasks.maintenance import (
    run_audit_log_cleanup,
    run_cleanup,
    run_reconcile_used_flags,
)

__all__ = [
    "run_audit_log_cleanup",
    "run_cleanup",
    "run_reconcile_used_flags",
]
