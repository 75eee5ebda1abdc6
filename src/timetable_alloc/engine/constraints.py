"""
Hard-constraint checks for a candidate (class, room, slot) triple.

All functions are pure: they read the ledger but never write to it.
first_violation() evaluates the checks in a fixed order and stops at the
first failure, so cheap rejections (duration) happen before set lookups.

  duration       slot length equals required hours (+/- 0.1 h)
  availability   instructor has a covering, non-unavailable window
  instructor     (instructor, slot) not yet reserved
  cohort         (cohort, slot) not yet reserved; skipped without cohort
  lab            lab classes need a lab room
  room           (room, slot) not yet reserved
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from timetable_alloc.models import (ClassOffering, InstructorAvailability,
    Preference, Room, RoomType, TimeSlot)
from .ledger import ResourceLedger

DURATION_TOLERANCE_HOURS = 0.1

Availability = Mapping[str, Sequence[InstructorAvailability]]


def duration_matches(cls: ClassOffering, slot: TimeSlot) -> bool:
    return abs(slot.duration_hours - cls.required_duration_hours) <= DURATION_TOLERANCE_HOURS


def instructor_available(
    records: Optional[Sequence[InstructorAvailability]], slot: TimeSlot
) -> bool:
    """No records at all means available for every slot."""
    if not records:
        return True
    return any(
        rec.day_of_week == slot.day_of_week
        and rec.start <= slot.start
        and rec.end >= slot.end
        and rec.preference != Preference.UNAVAILABLE
        for rec in records
    )


def room_suits(cls: ClassOffering, room: Room) -> bool:
    return room.type == RoomType.LAB if cls.requires_lab else True


def slot_violation(
    cls: ClassOffering,
    slot: TimeSlot,
    ledger: ResourceLedger,
    availability: Availability,
) -> Optional[str]:
    """Room-independent part of the check sequence (a-d)."""
    if not duration_matches(cls, slot):
        return "duration"
    if not instructor_available(availability.get(cls.instructor_id), slot):
        return "availability"
    if ledger.instructor_busy(cls.instructor_id, slot.id):
        return "instructor"
    if ledger.cohort_busy(cls.cohort_id, slot.id):
        return "cohort"
    return None


def first_violation(
    cls: ClassOffering,
    room: Room,
    slot: TimeSlot,
    ledger: ResourceLedger,
    availability: Availability,
) -> Optional[str]:
    reason = slot_violation(cls, slot, ledger, availability)
    if reason:
        return reason
    if not room_suits(cls, room):
        return "lab"
    if ledger.room_busy(room.id, slot.id):
        return "room"
    return None


def is_feasible(
    cls: ClassOffering,
    room: Room,
    slot: TimeSlot,
    ledger: ResourceLedger,
    availability: Availability,
) -> bool:
    return first_violation(cls, room, slot, ledger, availability) is None
