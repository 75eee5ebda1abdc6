"""
Pre-generation checks that run before any allocation is attempted.

Errors are preconditions: an empty class, room or eligible-slot list makes
the run impossible and nothing is written. Warnings point at classes that
are certain to end up unscheduled, so the coordinator sees a plain-English
reason instead of just a count.
"""

from __future__ import annotations

from typing import List, Set, Tuple

from timetable_alloc.models import Problem, RoomType
from .constraints import DURATION_TOLERANCE_HOURS


class PrecheckError(ValueError):
    """Raised by ensure_ok() when hard errors are present."""


def precheck(problem: Problem) -> Tuple[List[str], List[str]]:
    """Return (errors, warnings). errors = run cannot start."""
    errors:   List[str] = []
    warnings: List[str] = []

    if not problem.classes:
        errors.append(
            f"No classes to schedule for {problem.academic_year} "
            f"term {problem.term}."
        )
    if not problem.rooms:
        errors.append("No rooms available.")
    if not problem.timeslots:
        errors.append("No eligible time slots (weekday, 07:30-18:00 window).")

    has_lab = any(r.type == RoomType.LAB for r in problem.rooms)
    durations = [s.duration_hours for s in problem.timeslots]
    known_instructors: Set[str] = {c.instructor_id for c in problem.classes}

    for c in problem.classes:
        label = c.course_code or c.course_id
        if c.requires_lab and problem.rooms and not has_lab:
            warnings.append(
                f"Class '{c.id}' ({label}) requires a lab but no lab room "
                f"exists, so it will be unscheduled."
            )
        if durations and not any(
            abs(d - c.required_duration_hours) <= DURATION_TOLERANCE_HOURS
            for d in durations
        ):
            warnings.append(
                f"Class '{c.id}' ({label}) needs {c.required_duration_hours:g}h "
                f"but no eligible slot has that length, so it will be unscheduled."
            )

    orphans = sorted({
        a.instructor_id for a in problem.availability
        if a.instructor_id not in known_instructors
    })
    if orphans:
        warnings.append(
            f"Availability records reference instructor(s) with no class "
            f"this term: {orphans}"
        )

    if len(problem.classes) > len(problem.rooms) * len(problem.timeslots) > 0:
        warnings.append(
            f"Only {len(problem.rooms)} room(s) x {len(problem.timeslots)} "
            f"slot(s) for {len(problem.classes)} classes, so the schedule "
            f"will be partial."
        )

    return errors, warnings


def ensure_ok(problem: Problem) -> List[str]:
    """Raise PrecheckError on errors, otherwise return the warnings."""
    errors, warnings = precheck(problem)
    if errors:
        raise PrecheckError("\n".join(errors))
    return warnings
