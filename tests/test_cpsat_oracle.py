# tests for the in-process CP-SAT oracle
# its answers still go through try_oracle's validation, so these also
# check that the model and the constraint checker agree

from timetable_alloc.engine.cpsat_oracle import CpSatOracle
from timetable_alloc.engine.oracle import build_payload, try_oracle
from timetable_alloc.models import (ClassOffering, InstructorAvailability,
    Preference, Problem, Room, RoomType, TimeSlot)

YEAR, TERM = "2025-2026", "1"


def _base_problem():
    classes = [
        ClassOffering("C1", "MATH", "I1", YEAR, TERM, 1.0, cohort_id="K1"),
        ClassOffering("C2", "PHYS", "I1", YEAR, TERM, 1.0, cohort_id="K1"),
        ClassOffering("C3", "CHEM", "I2", YEAR, TERM, 2.0, requires_lab=True, cohort_id="K1"),
        ClassOffering("C4", "LIT",  "I3", YEAR, TERM, 1.0, cohort_id="K2"),
    ]
    slots = [
        TimeSlot("S1", 1, "08:00", "09:00"),
        TimeSlot("S2", 1, "09:00", "10:00"),
        TimeSlot("S3", 2, "08:00", "10:00"),
    ]
    rooms = [Room("R1", 40), Room("LAB1", 20, RoomType.LAB)]
    return Problem(YEAR, TERM, classes, rooms, slots)


def test_cpsat_places_everything_when_possible():
    outcome = try_oracle(CpSatOracle(num_workers=1), _base_problem(), timeout=10)
    assert outcome.ok
    assert {s.class_id for s in outcome.sessions} == {"C1", "C2", "C3", "C4"}
    c3 = next(s for s in outcome.sessions if s.class_id == "C3")
    assert (c3.room_id, c3.slot_id) == ("LAB1", "S3")


def test_cpsat_respects_availability():
    problem = _base_problem()
    problem.availability = [
        InstructorAvailability("I1", 1, "07:30", "09:00"),
        InstructorAvailability("I1", 1, "09:00", "10:00", Preference.UNAVAILABLE),
    ]
    outcome = try_oracle(CpSatOracle(num_workers=1), problem, timeout=10)
    assert outcome.ok
    i1_slots = [s.slot_id for s in outcome.sessions if s.class_id in ("C1", "C2")]
    assert i1_slots == ["S1"]
    assert len(outcome.unscheduled) == 1


def test_cpsat_scenario_c_one_of_two():
    problem = Problem(
        YEAR, TERM,
        classes=[ClassOffering("C1", "A", "I1", YEAR, TERM, 1.0, cohort_id="K"),
                 ClassOffering("C2", "B", "I1", YEAR, TERM, 1.0, cohort_id="K")],
        rooms=[Room("R1"), Room("R2")],
        timeslots=[TimeSlot("S1", 1, "08:00", "09:00")],
    )
    outcome = try_oracle(CpSatOracle(num_workers=1), problem, timeout=10)
    assert outcome.ok
    assert len(outcome.sessions) == 1
    assert len(outcome.unscheduled) == 1


def test_cpsat_nothing_placeable_answers_empty():
    problem = Problem(
        YEAR, TERM,
        classes=[ClassOffering("C1", "A", "I1", YEAR, TERM, 3.0)],
        rooms=[Room("R1")],
        timeslots=[TimeSlot("S1", 1, "08:00", "09:00")],
    )
    answer = CpSatOracle(num_workers=1).propose(build_payload(problem), timeout=5)
    assert answer == {"sessions": []}
