"""Timing data model."""

from pydantic import BaseModel


class TimerEntry(BaseModel):
    """Start/end timestamps (epoch seconds) and derived duration of a labelled stage."""

    start_time: float
    end_time: float | None = None
    duration_ms: float | None = None
