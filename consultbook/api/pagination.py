from datetime import date
from typing import Annotated

from fastapi import Query

LimitParam = Annotated[int, Query(ge=1, le=100)]
OffsetParam = Annotated[int, Query(ge=0)]
DayParam = Annotated[date, Query(alias="date", description="Calendar day in the consultant's timezone")]
