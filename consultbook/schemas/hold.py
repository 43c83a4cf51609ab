import datetime as dt

from pydantic import BaseModel

from consultbook.schemas.availability import SlotSelection


class HoldCreateRequest(SlotSelection):
    consultant_id: int


class HoldResponse(BaseModel):
    id: int
    consultant_id: int
    holder_id: int
    date: dt.date
    start_time: str
    end_time: str
    expires_at: dt.datetime
    remaining_seconds: int
    time_left: str
    is_urgent: bool
    expired: bool
