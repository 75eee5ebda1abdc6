"""
Data model layer for the weekly class timetable allocator.

Every domain object is a plain Python dataclass. Inputs are frozen: a
generation run never mutates the classes, rooms or slots it was given.

Design note: flat entities with ID references.
  A ClassOffering points at its instructor and cohort by id rather than
  embedding them. InstructorAvailability records are kept as a separate
  list and grouped per instructor on demand, so "no records" naturally
  means "available for every slot".

Duration note:
  One course credit maps to one duration-hour. TimeSlot.duration_hours is
  derived from the HH:MM start/end strings rather than stored, so a slot
  can never disagree with its own clock times.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class RoomType(str, Enum):
    ORDINARY = "ordinary"
    LAB      = "lab"


class Preference(str, Enum):
    AVAILABLE   = "available"
    PREFERRED   = "preferred"
    UNAVAILABLE = "unavailable"


def hours_of(hhmm: str) -> float:
    """'09:30' -> 9.5"""
    h, m = hhmm.split(":")
    return int(h) + int(m) / 60


@dataclass(frozen=True)
class ClassOffering:
    """One course taught by one instructor to one cohort in one term."""
    id:                      str
    course_id:               str
    instructor_id:           str
    academic_year:           str
    term:                    str
    required_duration_hours: float
    requires_lab:            bool          = False
    cohort_id:               Optional[str] = None
    course_code:             str           = ""


@dataclass(frozen=True)
class Room:
    id:          str
    capacity:    int      = 0
    type:        RoomType = RoomType.ORDINARY
    building_id: str      = ""


@dataclass(frozen=True)
class TimeSlot:
    """One weekly slot, e.g. Tuesday 09:00-11:00."""
    id:          str
    day_of_week: int   # 1 = Monday ... 7 = Sunday
    start:       str   # HH:MM
    end:         str   # HH:MM

    @property
    def duration_hours(self) -> float:
        return hours_of(self.end) - hours_of(self.start)


@dataclass(frozen=True)
class InstructorAvailability:
    instructor_id: str
    day_of_week:   int
    start:         str
    end:           str
    preference:    Preference = Preference.AVAILABLE


@dataclass(frozen=True)
class Session:
    """One placed class: the only output record of a generation run."""
    class_id:      str
    room_id:       str
    slot_id:       str
    academic_year: str
    term:          str


@dataclass(frozen=True)
class OperationalWindow:
    open:     str             = "07:30"
    close:    str             = "18:00"
    weekdays: Tuple[int, ...] = (1, 2, 3, 4, 5)

    def admits(self, slot: TimeSlot) -> bool:
        # HH:MM strings order the same way as the times they spell
        return (
            slot.day_of_week in self.weekdays
            and slot.start >= self.open
            and slot.end <= self.close
        )


@dataclass
class OracleParams:
    # none | http | chat | cpsat
    kind:            str   = "none"
    url:             str   = ""
    model:           str   = ""
    api_key_env:     str   = "ORACLE_API_KEY"
    timeout_seconds: float = 30.0
    # CP-SAT only: 0 = use all available cores
    num_workers:     int   = 0


@dataclass
class GenerationSettings:
    seed:   Optional[int]     = None
    window: OperationalWindow = field(default_factory=OperationalWindow)
    oracle: OracleParams      = field(default_factory=OracleParams)


@dataclass
class Problem:
    academic_year: str                          = ""
    term:          str                          = ""
    classes:       List[ClassOffering]          = field(default_factory=list)
    rooms:         List[Room]                   = field(default_factory=list)
    timeslots:     List[TimeSlot]               = field(default_factory=list)
    availability:  List[InstructorAvailability] = field(default_factory=list)
    settings:      GenerationSettings           = field(default_factory=GenerationSettings)
    meta:          Dict[str, Any]               = field(default_factory=dict)

    def availability_by_instructor(self) -> Dict[str, List[InstructorAvailability]]:
        grouped: Dict[str, List[InstructorAvailability]] = defaultdict(list)
        for rec in self.availability:
            grouped[rec.instructor_id].append(rec)
        return dict(grouped)

    def get_room(self, rid: str) -> Optional[Room]:
        return next((r for r in self.rooms if r.id == rid), None)
