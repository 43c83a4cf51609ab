from consultbook.db.session import SessionLocal
from consultbook.services.hold_service import sweep_expired_holds
from consultbook.tasks.celery_app import celery_app


@celery_app.task(name="holds.sweep_expired")
def sweep_expired_holds_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        return {"swept": sweep_expired_holds(db=db)}
    finally:
        db.close()
