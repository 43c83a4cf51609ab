from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from consultbook.db.base import Base


class ConsultantProfile(Base):
    __tablename__ = "consultant_profiles"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    user = relationship("User", back_populates="consultant_profile")
    availability = relationship(
        "ConsultantAvailability",
        back_populates="consultant",
        uselist=False,
        cascade="all, delete-orphan",
    )
    appointments = relationship("Appointment", back_populates="consultant", cascade="all, delete-orphan")
