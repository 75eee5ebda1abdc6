"""
In-process generation oracle built on the OR-Tools CP-SAT solver.

It consumes the same JSON payload a remote oracle would receive and answers
in the same {"sessions": [...]} shape, so its proposals go through the
adapter's validation like any other oracle's.

Model:
  x[c,s,r] = 1  iff  class c is placed in slot s, room r
  Variables are only created for compatible triples (duration, lab,
  instructor availability), so those checks never appear as constraints.

  sum_{s,r} x[c,s,r]          <= 1   each class placed at most once
  sum_c     x[c,s,r]          <= 1   room/slot
  sum_{c in I, r} x[c,s,r]    <= 1   instructor/slot
  sum_{c in K, r} x[c,s,r]    <= 1   cohort/slot
  maximise  sum x                    as many classes as possible

add_at_most_one is used for every "<= 1" row; it has a dedicated
propagator that is faster than a linear sum.
Reference: OR-Tools CP-SAT Python API
https://developers.google.com/optimization/reference/python/sat/python/cp_model
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Tuple

from ortools.sat.python import cp_model

from timetable_alloc.models import (ClassOffering, InstructorAvailability,
    Preference, Room, RoomType, TimeSlot)
from .constraints import duration_matches, instructor_available, room_suits

logger = logging.getLogger(__name__)


def _status_str(s: object) -> str:
    """Convert a CP-SAT solver status value to a readable string."""
    mapping = {
        int(cp_model.OPTIMAL):       "OPTIMAL",
        int(cp_model.FEASIBLE):      "FEASIBLE",
        int(cp_model.INFEASIBLE):    "INFEASIBLE",
        int(cp_model.MODEL_INVALID): "MODEL_INVALID",
    }
    return mapping.get(int(s), "UNKNOWN")  # type: ignore[call-overload]


def _from_payload(payload: Dict[str, Any]):
    classes = [
        ClassOffering(
            id                      = c["id"],
            course_id               = c.get("courseId", ""),
            instructor_id           = c["instructorId"],
            academic_year           = "",
            term                    = "",
            required_duration_hours = float(c["durationHours"]),
            requires_lab            = bool(c.get("requiresLab", False)),
            cohort_id               = c.get("cohortId"),
        )
        for c in payload["classes"]
    ]
    rooms = [
        Room(id=r["id"], capacity=int(r.get("capacity", 0)), type=RoomType(r["type"]))
        for r in payload["rooms"]
    ]
    slots = [
        TimeSlot(id=s["id"], day_of_week=int(s["day"]), start=s["start"], end=s["end"])
        for s in payload["slots"]
    ]
    availability: Dict[str, List[InstructorAvailability]] = defaultdict(list)
    for a in payload.get("availability", []):
        availability[a["instructorId"]].append(InstructorAvailability(
            instructor_id = a["instructorId"],
            day_of_week   = int(a["day"]),
            start         = a["start"],
            end           = a["end"],
            preference    = Preference(a.get("preference", "available")),
        ))
    return classes, rooms, slots, availability


class CpSatOracle:

    def __init__(self, num_workers: int = 0) -> None:
        self.num_workers = num_workers

    def propose(self, payload: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        classes, rooms, slots, availability = _from_payload(payload)

        model = cp_model.CpModel()
        x: Dict[Tuple[int, int, int], cp_model.IntVar] = {}
        for c, cls in enumerate(classes):
            for s, slot in enumerate(slots):
                if not duration_matches(cls, slot):
                    continue
                if not instructor_available(availability.get(cls.instructor_id), slot):
                    continue
                for r, room in enumerate(rooms):
                    if room_suits(cls, room):
                        x[c, s, r] = model.new_bool_var(f"x_c{c}_s{s}_r{r}")

        by_class:      Dict[int, list]             = defaultdict(list)
        by_room_slot:  Dict[Tuple[int, int], list] = defaultdict(list)
        by_instructor: Dict[Tuple[str, int], list] = defaultdict(list)
        by_cohort:     Dict[Tuple[str, int], list] = defaultdict(list)
        for (c, s, r), var in x.items():
            cls = classes[c]
            by_class[c].append(var)
            by_room_slot[s, r].append(var)
            by_instructor[cls.instructor_id, s].append(var)
            if cls.cohort_id:
                by_cohort[cls.cohort_id, s].append(var)

        for group in (by_class, by_room_slot, by_instructor, by_cohort):
            for row in group.values():
                if len(row) > 1:
                    model.add_at_most_one(row)

        model.maximize(sum(x.values()))

        solver = cp_model.CpSolver()
        # leave headroom so the answer arrives before the adapter gives up
        solver.parameters.max_time_in_seconds = max(0.1, timeout * 0.8)
        solver.parameters.num_workers         = self.num_workers
        status = solver.solve(model)
        name   = _status_str(status)
        logger.debug("cpsat: %s, %d variables, %.3fs", name, len(x), solver.wall_time)

        if name not in ("OPTIMAL", "FEASIBLE"):
            return {"sessions": []}

        return {
            "sessions": [
                {
                    "classId": classes[c].id,
                    "roomId":  rooms[r].id,
                    "slotId":  slots[s].id,
                }
                for (c, s, r), var in x.items()
                if solver.value(var) == 1
            ]
        }
