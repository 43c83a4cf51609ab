from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from consultbook.db.base import Base


class ConsultantAvailability(Base):
    """Stored availability document of one consultant.

    ``working_hours`` maps weekday names to ``{"enabled": bool, "slots": [{"start", "end"}]}``.
    Rows written before multi-range days existed hold ``{"enabled", "start", "end"}`` instead;
    readers normalize them through ``availability_service.normalize_working_hours``.
    """

    __tablename__ = "consultant_availability"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    consultant_id: Mapped[int] = mapped_column(
        ForeignKey("consultant_profiles.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    working_hours: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    default_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    buffer_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    max_sessions_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    time_off: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    consultant = relationship("ConsultantProfile", back_populates="availability")
