from pydantic import BaseModel, model_validator
from typing import List
from datetime import time
import datetime

class TimeWindow(BaseModel):
    """Half-open [start, end) interval on a single day."""

    start: time
    end: time

    @model_validator(mode="after")
    def check_order(self):
        if self.end <= self.start:
            raise ValueError("window end must be after its start")
        return self

    def contains(self, start: time, end: time) -> bool:
        return self.start <= start and end <= self.end

class AvailabilityResponse(BaseModel):
    doctor_id: int
    date: datetime.date
    consultation_duration_minutes: int
    windows: List[TimeWindow]
    available_slots: List[TimeWindow]
