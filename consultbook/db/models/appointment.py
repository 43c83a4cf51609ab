import datetime as dt
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, String, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from consultbook.db.base import Base


class AppointmentStatus(str, Enum):
    UPCOMING = "upcoming"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (AppointmentStatus.UPCOMING.value, AppointmentStatus.CONFIRMED.value)
TERMINAL_STATUSES = (AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value)

_ACTIVE_STATUS_SQL = text("status IN ('upcoming', 'confirmed')")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("client_id", "idempotency_key", name="uq_appointments_client_idempotency_key"),
        Index(
            "uq_appointments_active_slot",
            "consultant_id",
            "date",
            "start_time",
            unique=True,
            sqlite_where=_ACTIVE_STATUS_SQL,
            postgresql_where=_ACTIVE_STATUS_SQL,
        ),
        Index("ix_appointments_consultant_date", "consultant_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    consultant_id: Mapped[int] = mapped_column(
        ForeignKey("consultant_profiles.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    client_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AppointmentStatus.UPCOMING.value)
    reason: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    notes: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    cancelled_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    consultant = relationship("ConsultantProfile", back_populates="appointments")
    client = relationship("User", back_populates="appointments")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def confirm(self) -> None:
        self.status = AppointmentStatus.CONFIRMED.value

    def complete(self) -> None:
        self.status = AppointmentStatus.COMPLETED.value

    def cancel(self) -> None:
        self.status = AppointmentStatus.CANCELLED.value
        self.cancelled_at = dt.datetime.now(dt.UTC)

    def move_to(self, new_date: dt.date, start_time: str, end_time: str) -> None:
        self.date = new_date
        self.start_time = start_time
        self.end_time = end_time
        self.status = AppointmentStatus.UPCOMING.value
        self.reminder_sent = False
