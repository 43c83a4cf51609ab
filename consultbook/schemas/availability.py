import datetime as dt

from pydantic import BaseModel, Field

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class TimeRange(BaseModel):
    start: str = Field(pattern=HHMM_PATTERN, examples=["09:00"])
    end: str = Field(pattern=HHMM_PATTERN, examples=["17:00"])


class DaySchedule(BaseModel):
    enabled: bool = False
    slots: list[TimeRange] = Field(default_factory=list)


def _office_day() -> DaySchedule:
    return DaySchedule(enabled=True, slots=[TimeRange(start="09:00", end="17:00")])


class WorkingHoursConfig(BaseModel):
    monday: DaySchedule = Field(default_factory=_office_day)
    tuesday: DaySchedule = Field(default_factory=_office_day)
    wednesday: DaySchedule = Field(default_factory=_office_day)
    thursday: DaySchedule = Field(default_factory=_office_day)
    friday: DaySchedule = Field(default_factory=_office_day)
    saturday: DaySchedule = Field(default_factory=DaySchedule)
    sunday: DaySchedule = Field(default_factory=DaySchedule)

    def for_weekday(self, weekday: str) -> DaySchedule:
        return getattr(self, weekday)


class SessionSettings(BaseModel):
    default_duration_minutes: int = 60
    buffer_minutes: int = 15
    max_sessions_per_day: int = 8


class TimeOffPeriod(BaseModel):
    start_date: dt.date
    end_date: dt.date
    reason: str = Field(default="", max_length=200)

    def covers(self, day: dt.date) -> bool:
        return self.start_date <= day <= self.end_date


class AvailabilityDocument(BaseModel):
    working_hours: WorkingHoursConfig = Field(default_factory=WorkingHoursConfig)
    session_settings: SessionSettings = Field(default_factory=SessionSettings)
    time_off: list[TimeOffPeriod] = Field(default_factory=list)


class AvailabilityResponse(AvailabilityDocument):
    consultant_id: int
    is_default: bool


class BookableSlot(BaseModel):
    date: dt.date
    start_time: str
    end_time: str
    duration_minutes: int

    model_config = {"frozen": True}

    def as_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)


class SlotPreviewRequest(AvailabilityDocument):
    date: dt.date


class SlotSelection(BaseModel):
    date: dt.date
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
