from datetime import timedelta

from celery import Celery

from app.config import settings


def get_celery_config() -> dict:
    return {
        "broker_url": settings.celery_broker_url,
        "result_backend": settings.celery_result_backend,
        "timezone": settings.celery_timezone,
    }


def build_beat_schedule() -> dict:
    return {
        "database_cleanup": {
            "task": "app.tasks.maintenance.run_cleanup",
            "schedule": timedelta(hours=max(settings.cleanup_interval_hours, 1)),
        },
        "audit_log_cleanup": {
            "task": "app.tasks.maintenance.run_audit_log_cleanup",
            "schedule": timedelta(hours=max(settings.audit_repair_interval_hours, 1)),
        },
        "reconcile_used_flags": {
            "task": "app.tasks.maintenance.run_reconcile_used_flags",
            "schedule": timedelta(minutes=max(settings.reconcile_interval_minutes, 5)),
        },
    }


celery_app = Celery("contract_signing")
celery_app.conf.update(get_celery_config())
celery_app.conf.beat_schedule = build_beat_schedule()
celery_app.autodiscover_tasks(["app.tasks"])
