import datetime as dt

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from consultbook.db.base import Base


class HeldSlot(Base):
    """Time-bounded reservation of a slot while its holder finishes checkout."""

    __tablename__ = "held_slots"
    __table_args__ = (
        Index("ix_held_slots_consultant_date", "consultant_id", "date"),
        Index("uq_held_slots_slot", "consultant_id", "date", "start_time", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    consultant_id: Mapped[int] = mapped_column(
        ForeignKey("consultant_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    holder_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    expires_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    consultant = relationship("ConsultantProfile")
    holder = relationship("User")
