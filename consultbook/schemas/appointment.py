import datetime as dt

from pydantic import BaseModel, Field

from consultbook.db.models.appointment import AppointmentStatus
from consultbook.schemas.availability import SlotSelection


class AppointmentCreateRequest(SlotSelection):
    consultant_id: int
    reason: str = Field(default="", max_length=500)


class AppointmentRescheduleRequest(SlotSelection):
    pass


class AppointmentStatusRequest(BaseModel):
    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    id: int
    consultant_id: int
    client_id: int
    date: dt.date
    start_time: str
    end_time: str
    status: AppointmentStatus
    reason: str
    created_at: dt.datetime
    cancelled_at: dt.datetime | None

    model_config = {"from_attributes": True}


class ConsultantAppointmentResponse(AppointmentResponse):
    client_email: str
