"""
Oracle adapter: ask an external generator for a timetable, trust nothing.

The adapter serialises the problem, calls the oracle on a daemon thread
bounded by a timeout, parses whatever comes back and replays every
proposed (class, room, slot) triple through a fresh ResourceLedger and the
same constraint checks the greedy allocator uses. One bad triple rejects
the whole proposal: oracle output and greedy output are never merged.

Every failure is returned as an OracleOutcome tagged with an OracleFailure
reason. Exceptions raised by the oracle are converted at this boundary so
the caller's fallback is a plain `if not outcome.ok`.

Accepted response shapes:
  [{"classId": ..., "roomId": ..., "slotId": ...}, ...]
  {"sessions" | "timetable" | "schedule": [ ...same... ]}
Strings and bytes are JSON-decoded first. snake_case keys are accepted.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Dict, List, NamedTuple, Optional, Protocol, Tuple

from timetable_alloc.models import Problem, Session
from .constraints import first_violation
from .ledger import ResourceLedger
from .result import OracleFailure, OracleOutcome

logger = logging.getLogger(__name__)

RESPONSE_KEYS = ("sessions", "timetable", "schedule")

HARD_CONSTRAINTS = [
    "No instructor can be in two places at once.",
    "No room can have two classes at once.",
    "No cohort can attend two classes at once.",
    "Lab courses (requiresLab: true) MUST be in lab rooms.",
    "Each class duration must match its credits: 1 credit = 1 hour "
    "(slot durationHours within 0.1 of the class durationHours).",
    "Instructors may only teach inside their availability windows "
    "(no windows listed = always available).",
    "Only the listed slots may be used (weekdays, 07:30-18:00).",
]


class Oracle(Protocol):
    def propose(self, payload: Dict[str, Any], timeout: float) -> Any:
        ...


class Proposed(NamedTuple):
    class_id: str
    room_id:  str
    slot_id:  str


def build_payload(problem: Problem) -> Dict[str, Any]:
    """Problem description sent to the oracle (camelCase JSON)."""
    return {
        "scope": {"academicYear": problem.academic_year, "term": problem.term},
        "classes": [
            {
                "id":            c.id,
                "courseId":      c.course_id,
                "code":          c.course_code,
                "instructorId":  c.instructor_id,
                "cohortId":      c.cohort_id,
                "durationHours": c.required_duration_hours,
                "requiresLab":   c.requires_lab,
            }
            for c in problem.classes
        ],
        "rooms": [
            {"id": r.id, "capacity": r.capacity, "type": r.type.value,
             "buildingId": r.building_id}
            for r in problem.rooms
        ],
        "slots": [
            {"id": s.id, "day": s.day_of_week, "start": s.start, "end": s.end,
             "durationHours": round(s.duration_hours, 2)}
            for s in problem.timeslots
        ],
        "availability": [
            {"instructorId": a.instructor_id, "day": a.day_of_week,
             "start": a.start, "end": a.end, "preference": a.preference.value}
            for a in problem.availability
        ],
        "constraints": list(HARD_CONSTRAINTS),
    }


def _field(item: Dict[str, Any], camel: str, snake: str) -> Optional[str]:
    value = item.get(camel, item.get(snake))
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    return str(value)


def parse_proposal(raw: Any) -> Optional[List[Proposed]]:
    """Return the proposed triples, or None if raw has an unknown shape."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return None

    if isinstance(raw, dict):
        items = next((raw[k] for k in RESPONSE_KEYS if k in raw), None)
    else:
        items = raw
    if not isinstance(items, list):
        return None

    out: List[Proposed] = []
    for item in items:
        if not isinstance(item, dict):
            return None
        cid = _field(item, "classId", "class_id")
        rid = _field(item, "roomId",  "room_id")
        sid = _field(item, "slotId",  "slot_id")
        if cid is None or rid is None or sid is None:
            return None
        out.append(Proposed(cid, rid, sid))
    return out


def validate_proposal(
    proposal: List[Proposed], problem: Problem
) -> Tuple[List[Session], List[str]]:
    """Replay proposal through a fresh ledger. Returns (sessions, problems)."""
    classes = {c.id: c for c in problem.classes}
    rooms   = {r.id: r for r in problem.rooms}
    slots   = {s.id: s for s in problem.timeslots}
    availability = problem.availability_by_instructor()

    ledger   = ResourceLedger()
    seen:     set           = set()
    sessions: List[Session] = []
    problems: List[str]     = []

    for p in proposal:
        cls, room, slot = classes.get(p.class_id), rooms.get(p.room_id), slots.get(p.slot_id)
        if cls is None or room is None or slot is None:
            problems.append(f"{p}: unknown or ineligible id")
            continue
        if p.class_id in seen:
            problems.append(f"class '{p.class_id}' assigned more than once")
            continue
        reason = first_violation(cls, room, slot, ledger, availability)
        if reason:
            problems.append(
                f"class '{p.class_id}' in room '{p.room_id}' at slot "
                f"'{p.slot_id}' violates {reason}"
            )
            continue
        ledger.commit(cls, room.id, slot.id)
        seen.add(p.class_id)
        sessions.append(Session(
            class_id      = cls.id,
            room_id       = room.id,
            slot_id       = slot.id,
            academic_year = problem.academic_year,
            term          = problem.term,
        ))

    return sessions, problems


def _call_in_background(oracle: Oracle, payload: Dict[str, Any], timeout: float) -> Future:
    """Run oracle.propose on a daemon thread and return its Future.

    A daemon thread does not keep the interpreter alive, so an oracle that
    never returns is simply left behind once the timeout has passed.
    """
    future: Future = Future()
    future.set_running_or_notify_cancel()

    def work() -> None:
        try:
            future.set_result(oracle.propose(payload, timeout))
        except Exception as e:
            future.set_exception(e)

    threading.Thread(target=work, name="oracle", daemon=True).start()
    return future


def try_oracle(
    oracle: Optional[Oracle], problem: Problem, timeout: float
) -> OracleOutcome:
    if oracle is None:
        return OracleOutcome.failed(OracleFailure.UNAVAILABLE, "no oracle configured")

    name = type(oracle).__name__
    logger.info("Attempting oracle generation via %s (timeout %.1fs)", name, timeout)
    future = _call_in_background(oracle, build_payload(problem), timeout)
    try:
        raw = future.result(timeout=timeout)
    except FutureTimeout:
        return OracleOutcome.failed(
            OracleFailure.TIMEOUT, f"{name} gave no answer within {timeout:g}s"
        )
    except TimeoutError as e:
        return OracleOutcome.failed(OracleFailure.TIMEOUT, f"{name}: {e}")
    except Exception as e:
        return OracleOutcome.failed(
            OracleFailure.TRANSPORT, f"{name}: {type(e).__name__}: {e}"
        )

    proposal = parse_proposal(raw)
    if proposal is None:
        return OracleOutcome.failed(
            OracleFailure.PARSE, f"unrecognised response shape from {name}"
        )
    if not proposal:
        return OracleOutcome.failed(OracleFailure.EMPTY, f"{name} proposed no sessions")

    sessions, problems = validate_proposal(proposal, problem)
    if problems:
        shown = "; ".join(problems[:5])
        more  = f" (+{len(problems) - 5} more)" if len(problems) > 5 else ""
        return OracleOutcome.failed(OracleFailure.VALIDATION, shown + more)

    placed = {s.class_id for s in sessions}
    return OracleOutcome(
        sessions    = sessions,
        unscheduled = [c.id for c in problem.classes if c.id not in placed],
    )
