"""
JSON input provider for generation runs.

load_problem() reads a problem file and returns a Problem that is ready for
the engine: classes narrowed to the requested (academic year, term) and
time slots narrowed to the operational window. The engine itself never
filters, it only rejects empty inputs.

Uses only the Python standard-library json module. Basic structural
validation is applied before domain objects are built, so a malformed file
fails with ConfigError naming the offending entry.

Reference: Python docs — json
https://docs.python.org/3/library/json.html
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from timetable_alloc.models import (ClassOffering, GenerationSettings,
    InstructorAvailability, OperationalWindow, OracleParams, Preference,
    Problem, Room, RoomType, TimeSlot)


class ConfigError(ValueError):
    """Raised when the problem JSON is structurally invalid."""


def _require(obj: Dict[str, Any], key: str, ctx: str) -> Any:
    if key not in obj:
        raise ConfigError(f"Missing required key '{key}' in {ctx}")
    return obj[key]


def _as_list(obj: Any, ctx: str) -> List[Any]:
    if not isinstance(obj, list):
        raise ConfigError(f"Expected a JSON array in {ctx}, got {type(obj).__name__}")
    return obj


def _as_dict(obj: Any, ctx: str) -> Dict[str, Any]:
    if not isinstance(obj, dict):
        raise ConfigError(
            f"Expected a JSON object in {ctx}, got {type(obj).__name__}"
        )
    return obj


def _hhmm(value: Any, ctx: str) -> str:
    text = str(value)
    parts = text.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ConfigError(f"Expected HH:MM in {ctx}, got {text!r}")
    return f"{int(parts[0]):02d}:{int(parts[1]):02d}"


def _enum(cls, value: Any, ctx: str):
    try:
        return cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(m.value for m in cls)
        raise ConfigError(f"Unknown value {value!r} in {ctx} (expected {allowed})") from None


def _bool(value: Any, ctx: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"Expected true or false in {ctx}, got {value!r}")
    return value


def _number(kind, value: Any, ctx: str):
    # JSON true/false are not numbers here
    if not isinstance(value, bool):
        try:
            return kind(value)
        except (TypeError, ValueError):
            pass
    raise ConfigError(f"Expected a number in {ctx}, got {value!r}")


def _check_unique_ids(items: list, ctx: str) -> None:
    seen: set = set()
    dupes: set = set()
    for item in items:
        item_id = getattr(item, "id", None)
        if not item_id:
            raise ConfigError(f"Empty or missing 'id' in {ctx}")
        if item_id in seen:
            dupes.add(item_id)
        seen.add(item_id)
    if dupes:
        raise ConfigError(f"Duplicate ids in {ctx}: {sorted(dupes)}")


def _cohort_of(c: Dict[str, Any]) -> Optional[str]:
    if c.get("cohort_id"):
        return str(c["cohort_id"])
    # program + year level identify a cohort
    if c.get("program_id") and c.get("year_level") is not None:
        return f"{c['program_id']}-{c['year_level']}"
    return None


def _duration_of(c: Dict[str, Any], ctx: str) -> float:
    # one credit = one hour
    if "required_duration_hours" in c:
        return _number(float, c["required_duration_hours"], f"{ctx}.required_duration_hours")
    return _number(float, _require(c, "credits", ctx), f"{ctx}.credits")


def eligible_timeslots(
    slots: Sequence[TimeSlot], window: OperationalWindow
) -> List[TimeSlot]:
    return [s for s in slots if window.admits(s)]


def parse_settings(raw: Dict[str, Any]) -> GenerationSettings:
    window_raw = _as_dict(raw.get("window") or {}, "settings.window")
    oracle_raw = _as_dict(raw.get("oracle") or {}, "settings.oracle")
    seed = raw.get("seed")
    return GenerationSettings(
        seed   = int(seed) if seed is not None else None,
        window = OperationalWindow(
            open     = _hhmm(window_raw.get("open", "07:30"),  "settings.window.open"),
            close    = _hhmm(window_raw.get("close", "18:00"), "settings.window.close"),
            weekdays = tuple(int(d) for d in window_raw.get("weekdays", (1, 2, 3, 4, 5))),
        ),
        oracle = OracleParams(
            kind            = str(oracle_raw.get("kind", "none")),
            url             = str(oracle_raw.get("url", "")),
            model           = str(oracle_raw.get("model", "")),
            api_key_env     = str(oracle_raw.get("api_key_env", "ORACLE_API_KEY")),
            timeout_seconds = float(oracle_raw.get("timeout_seconds", 30.0)),
            num_workers     = int(oracle_raw.get("num_workers", 0)),
        ),
    )


def load_problem(
    path: str | Path,
    academic_year: Optional[str] = None,
    term:          Optional[str] = None,
) -> Problem:
    """Load a problem file; year/term override the file's scope."""
    with Path(path).open("r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    raw   = _as_dict(raw, "root")
    meta  = _as_dict(raw.get("meta") or {}, "meta")
    scope = _as_dict(raw.get("scope") or {}, "scope")

    year = academic_year or scope.get("academic_year")
    term = term or scope.get("term")
    if not year or not term:
        raise ConfigError("academic_year and term are required (scope or arguments)")
    year, term = str(year), str(term)

    classes_raw = [
        _as_dict(c, f"classes[{i}]")
        for i, c in enumerate(_as_list(_require(raw, "classes", "root"), "classes"))
    ]
    rooms_raw   = _as_list(_require(raw, "rooms",     "root"), "rooms")
    slots_raw   = _as_list(_require(raw, "timeslots", "root"), "timeslots")
    avail_raw   = _as_list(raw.get("availability") or [], "availability")
    settings    = parse_settings(_as_dict(raw.get("settings") or {}, "settings"))

    classes = [
        ClassOffering(
            id                      = str(_require(c, "id",            f"classes[{i}]")),
            course_id               = str(_require(c, "course_id",     f"classes[{i}]")),
            instructor_id           = str(_require(c, "instructor_id", f"classes[{i}]")),
            academic_year           = str(_require(c, "academic_year", f"classes[{i}]")),
            term                    = str(_require(c, "term",          f"classes[{i}]")),
            required_duration_hours = _duration_of(c, f"classes[{i}]"),
            requires_lab            = _bool(c.get("requires_lab", False), f"classes[{i}].requires_lab"),
            cohort_id               = _cohort_of(c),
            course_code             = str(c.get("course_code", "")),
        )
        for i, c in enumerate(classes_raw)
    ]

    rooms = [
        Room(
            id          = str(_require(r, "id", f"rooms[{i}]")),
            capacity    = _number(int, r.get("capacity", 0), f"rooms[{i}].capacity"),
            type        = _enum(RoomType, r.get("type", "ordinary"), f"rooms[{i}].type"),
            building_id = str(r.get("building_id", "")),
        )
        for i, r in enumerate(rooms_raw)
    ]

    timeslots = [
        TimeSlot(
            id          = str(_require(s, "id", f"timeslots[{i}]")),
            day_of_week = int(_require(s, "day_of_week", f"timeslots[{i}]")),
            start       = _hhmm(_require(s, "start", f"timeslots[{i}]"), f"timeslots[{i}].start"),
            end         = _hhmm(_require(s, "end",   f"timeslots[{i}]"), f"timeslots[{i}].end"),
        )
        for i, s in enumerate(slots_raw)
    ]

    availability = [
        InstructorAvailability(
            instructor_id = str(_require(a, "instructor_id", f"availability[{i}]")),
            day_of_week   = int(_require(a, "day_of_week",   f"availability[{i}]")),
            start         = _hhmm(_require(a, "start", f"availability[{i}]"), f"availability[{i}].start"),
            end           = _hhmm(_require(a, "end",   f"availability[{i}]"), f"availability[{i}].end"),
            preference    = _enum(Preference, a.get("preference", "available"),
                                  f"availability[{i}].preference"),
        )
        for i, a in enumerate(avail_raw)
    ]

    _check_unique_ids(classes,   "classes")
    _check_unique_ids(rooms,     "rooms")
    _check_unique_ids(timeslots, "timeslots")
    for s in timeslots:
        if s.duration_hours <= 0:
            raise ConfigError(f"Time slot '{s.id}' ends before it starts")

    return Problem(
        academic_year = year,
        term          = term,
        classes       = [c for c in classes if (c.academic_year, c.term) == (year, term)],
        rooms         = rooms,
        timeslots     = eligible_timeslots(timeslots, settings.window),
        availability  = availability,
        settings      = settings,
        meta          = meta,
    )


def problem_to_dict(problem: Problem) -> Dict[str, Any]:
    s = problem.settings
    return {
        "meta":  problem.meta,
        "scope": {"academic_year": problem.academic_year, "term": problem.term},
        "classes": [
            {
                "id":                      c.id,
                "course_id":               c.course_id,
                "course_code":             c.course_code,
                "instructor_id":           c.instructor_id,
                "academic_year":           c.academic_year,
                "term":                    c.term,
                "cohort_id":               c.cohort_id,
                "required_duration_hours": c.required_duration_hours,
                "requires_lab":            c.requires_lab,
            }
            for c in problem.classes
        ],
        "rooms": [
            {"id": r.id, "capacity": r.capacity, "type": r.type.value,
             "building_id": r.building_id}
            for r in problem.rooms
        ],
        "timeslots": [
            {"id": t.id, "day_of_week": t.day_of_week, "start": t.start, "end": t.end}
            for t in problem.timeslots
        ],
        "availability": [
            {"instructor_id": a.instructor_id, "day_of_week": a.day_of_week,
             "start": a.start, "end": a.end, "preference": a.preference.value}
            for a in problem.availability
        ],
        "settings": {
            "seed":   s.seed,
            "window": {"open": s.window.open, "close": s.window.close,
                       "weekdays": list(s.window.weekdays)},
            "oracle": asdict(s.oracle),
        },
    }


def save_problem(problem: Problem, path: str | Path) -> None:
    """Serialise a Problem to JSON, creating parent directories if needed."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        # sort_keys=True keeps diffs readable in version control.
        json.dump(problem_to_dict(problem), f, ensure_ascii=False, indent=2, sort_keys=True)
