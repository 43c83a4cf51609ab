from consultbook.db.models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus
from consultbook.db.models.consultant_availability import ConsultantAvailability
from consultbook.db.models.consultant_profile import ConsultantProfile
from consultbook.db.models.held_slot import HeldSlot
from consultbook.db.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "ConsultantProfile",
    "ConsultantAvailability",
    "Appointment",
    "AppointmentStatus",
    "ACTIVE_STATUSES",
    "HeldSlot",
]
