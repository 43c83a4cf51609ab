from datetime import UTC, date, datetime, timedelta

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from consultbook.db.base import Base
from consultbook.db.models import Appointment, AppointmentStatus, ConsultantProfile, HeldSlot, User, UserRole
from consultbook.services.hold_service import sweep_expired_holds
from consultbook.tasks.completions import complete_past_appointments
from consultbook.tasks.reminders import send_due_reminders

DAY = date(2030, 1, 7)
# 10:30 on DAY in Asia/Kolkata (UTC+05:30)
NOW = datetime(2030, 1, 7, 5, 0, tzinfo=UTC)


def _build_session() -> Session:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    return TestSession()


def _seed_consultant_and_client(db: Session) -> tuple[User, ConsultantProfile]:
    consultant = User(email="task-consultant@example.com", hashed_password="x", role=UserRole.CONSULTANT.value)
    client = User(email="task-client@example.com", hashed_password="x", role=UserRole.CLIENT.value)
    db.add_all([consultant, client])
    db.flush()
    profile = ConsultantProfile(user_id=consultant.id, display_name="Consultant", description=None)
    db.add(profile)
    db.flush()
    return client, profile


def _appointment(profile: ConsultantProfile, client: User, day: date, start: str, end: str, status: str) -> Appointment:
    return Appointment(
        consultant_id=profile.id,
        client_id=client.id,
        date=day,
        start_time=start,
        end_time=end,
        status=status,
    )


def test_complete_past_appointments_completes_only_finished_active_ones():
    db = _build_session()
    client, profile = _seed_consultant_and_client(db)
    yesterday = _appointment(profile, client, DAY - timedelta(days=1), "15:00", "16:00", "confirmed")
    finished_today = _appointment(profile, client, DAY, "09:00", "10:00", "upcoming")
    running = _appointment(profile, client, DAY, "10:00", "11:00", "upcoming")
    later = _appointment(profile, client, DAY, "14:00", "15:00", "confirmed")
    cancelled = _appointment(profile, client, DAY, "08:00", "09:00", "cancelled")
    db.add_all([yesterday, finished_today, running, later, cancelled])
    db.commit()

    completed = complete_past_appointments(db=db, now=NOW)

    assert completed == 2
    statuses = {item.start_time: item.status for item in db.scalars(select(Appointment).where(Appointment.date == DAY))}
    assert statuses == {
        "08:00": AppointmentStatus.CANCELLED.value,
        "09:00": AppointmentStatus.COMPLETED.value,
        "10:00": AppointmentStatus.UPCOMING.value,
        "14:00": AppointmentStatus.CONFIRMED.value,
    }
    assert db.get(Appointment, yesterday.id).status == AppointmentStatus.COMPLETED.value
    db.close()


def test_send_due_reminders_flags_only_appointments_inside_window():
    db = _build_session()
    client, profile = _seed_consultant_and_client(db)
    soon = _appointment(profile, client, DAY, "10:40", "11:40", "upcoming")
    far = _appointment(profile, client, DAY, "13:00", "14:00", "confirmed")
    cancelled_soon = _appointment(profile, client, DAY, "10:35", "11:35", "cancelled")
    db.add_all([soon, far, cancelled_soon])
    db.commit()

    first_run = send_due_reminders(db=db, now=NOW)
    second_run = send_due_reminders(db=db, now=NOW)

    assert first_run == 1
    assert second_run == 0
    assert db.get(Appointment, soon.id).reminder_sent is True
    assert db.get(Appointment, far.id).reminder_sent is False
    assert db.get(Appointment, cancelled_soon.id).reminder_sent is False
    db.close()


def test_sweep_expired_holds_removes_only_expired_rows():
    db = _build_session()
    client, profile = _seed_consultant_and_client(db)
    db.add_all(
        [
            HeldSlot(
                consultant_id=profile.id,
                holder_id=client.id,
                date=DAY,
                start_time="11:00",
                end_time="12:00",
                expires_at=NOW - timedelta(minutes=1),
            ),
            HeldSlot(
                consultant_id=profile.id,
                holder_id=client.id,
                date=DAY,
                start_time="12:00",
                end_time="13:00",
                expires_at=NOW + timedelta(minutes=5),
            ),
        ]
    )
    db.commit()

    swept = sweep_expired_holds(db=db, now=NOW)

    remaining = db.scalars(select(HeldSlot)).all()
    assert swept == 1
    assert [hold.start_time for hold in remaining] == ["12:00"]
    db.close()
