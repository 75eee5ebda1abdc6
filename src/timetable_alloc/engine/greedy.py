"""
Greedy fallback allocator: shuffled first-fit over the slot x room space.

Rooms and slots are each shuffled once per run (random.Random.shuffle is a
Fisher-Yates permutation, so every ordering is equally likely) to spread
load instead of always filling low-id resources first. Classes are then
taken strictly in input order; for each one the first (slot, room) pair in
shuffled order that passes every hard constraint is committed.

No backtracking: a class that finds nothing is left unscheduled and the run
moves on. Runtime is bounded by classes x slots x rooms.

Passing the same seeded Random gives the same schedule; a different seed
gives a different, equally valid one.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence, TypeVar

from timetable_alloc.models import ClassOffering, Room, Session, TimeSlot
from .constraints import Availability, duration_matches, is_feasible, slot_violation
from .ledger import ResourceLedger
from .result import AllocationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


def shuffled(items: Sequence[T], rng: random.Random) -> List[T]:
    """Uniform random permutation of a copy of items."""
    out = list(items)
    rng.shuffle(out)
    return out


def allocate(
    classes:      Sequence[ClassOffering],
    rooms:        Sequence[Room],
    slots:        Sequence[TimeSlot],
    availability: Availability,
    *,
    academic_year: str,
    term:          str,
    rng:           Optional[random.Random] = None,
    ledger:        Optional[ResourceLedger] = None,
) -> AllocationResult:
    rng    = rng or random.Random()
    ledger = ledger if ledger is not None else ResourceLedger()

    room_order = shuffled(rooms, rng)
    slot_order = shuffled(slots, rng)

    result = AllocationResult()

    for cls in classes:
        placed = False
        for slot in slot_order:
            # cheapest rejection first
            if not duration_matches(cls, slot):
                continue
            if slot_violation(cls, slot, ledger, availability):
                continue
            for room in room_order:
                if not is_feasible(cls, room, slot, ledger, availability):
                    continue
                result.sessions.append(Session(
                    class_id      = cls.id,
                    room_id       = room.id,
                    slot_id       = slot.id,
                    academic_year = academic_year,
                    term          = term,
                ))
                ledger.commit(cls, room.id, slot.id)
                placed = True
                break
            if placed:
                break

        if not placed:
            logger.warning(
                "Could not find a valid slot for class %s (course %s)",
                cls.id, cls.course_code or cls.course_id,
            )
            result.unscheduled.append(cls.id)

    logger.debug(
        "greedy: placed %d of %d classes, %d ledger keys",
        len(result.sessions), len(classes), len(ledger),
    )
    return result
