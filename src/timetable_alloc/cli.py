"""
Command-line interface for the weekly class timetable allocator.

Usage examples:
    python -m timetable_alloc.cli --config data/sample_term.json
    python -m timetable_alloc.cli --config data/sample_term.json --store sessions.json
    python -m timetable_alloc.cli --config data/sample_term.json --oracle cpsat --timeout 5

Exit codes:
    0  every class placed
    1  bad arguments, unreadable config, precheck errors or write failure
    2  schedule stored but some classes are unscheduled
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from timetable_alloc.engine.api import build_oracle, generate_schedule
from timetable_alloc.engine.precheck import PrecheckError, precheck
from timetable_alloc.io_json import ConfigError, load_problem
from timetable_alloc.writer import (InMemoryScheduleWriter, JsonScheduleWriter,
    ScheduleWriteError)

DAY_NAMES = {1: "Mon", 2: "Tue", 3: "Wed", 4: "Thu", 5: "Fri", 6: "Sat", 7: "Sun"}


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Weekly class timetable allocator: command-line mode",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  timetable-alloc --config data/sample_term.json\n"
            "  timetable-alloc --config cfg.json --store sessions.json --seed 7\n"
        ),
    )
    parser.add_argument("--config", required=True, metavar="FILE",
                        help="path to the problem JSON")
    parser.add_argument("--year",  default=None, help="academic year (overrides the file scope)")
    parser.add_argument("--term",  default=None, help="term (overrides the file scope)")
    parser.add_argument("--store", default=None, metavar="FILE",
                        help="session store to replace this scope in (optional)")
    parser.add_argument("--out",   default=None, metavar="FILE",
                        help="write the run report JSON to this path (optional)")
    parser.add_argument("--oracle", default=None, choices=["none", "http", "chat", "cpsat"],
                        help="generation oracle to try before greedy allocation")
    parser.add_argument("--oracle-url", default=None, metavar="URL")
    parser.add_argument("--timeout", type=float, default=None, metavar="S",
                        help="oracle timeout in seconds")
    parser.add_argument("--seed", type=int, default=None,
                        help="random seed for the greedy allocator")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = _parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # ── 1. load problem ───────────────────────────────────────────────────────
    try:
        problem = load_problem(args.config, args.year, args.term)
    except FileNotFoundError:
        print(f"[ERROR] File not found: {args.config}", file=sys.stderr)
        sys.exit(1)
    except (ConfigError, ValueError) as e:
        print(f"[ERROR] Could not load config: {e}", file=sys.stderr)
        sys.exit(1)

    settings = problem.settings
    if args.seed is not None:
        settings.seed = args.seed
    if args.oracle is not None:
        settings.oracle.kind = args.oracle
    if args.oracle_url is not None:
        settings.oracle.url = args.oracle_url
    if args.timeout is not None:
        settings.oracle.timeout_seconds = args.timeout

    # ── 2. precheck ───────────────────────────────────────────────────────────
    errors, warnings = precheck(problem)
    for w in warnings:
        print(f"[WARNING] {w}")
    if errors:
        print(
            f"\n[ERROR] {len(errors)} precheck error(s) found, "
            "no schedule generated:\n",
            file=sys.stderr,
        )
        for i, err in enumerate(errors, 1):
            print(f"  {i}. {err}", file=sys.stderr)
        sys.exit(1)

    # ── 3. generate ───────────────────────────────────────────────────────────
    try:
        oracle = build_oracle(settings.oracle)
    except ValueError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)

    writer = JsonScheduleWriter(args.store) if args.store else InMemoryScheduleWriter()
    print(f"Generating {problem.academic_year} term {problem.term}…")
    try:
        report = generate_schedule(problem, writer, oracle=oracle)
    except (PrecheckError, ScheduleWriteError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)

    # ── 4. print summary ──────────────────────────────────────────────────────
    print(f"\nSource    : {report.source}")
    if report.oracle_failure is not None and settings.oracle.kind != "none":
        print(f"Oracle    : {report.oracle_failure.value} ({report.oracle_detail})")
    for k, v in report.stats.items():
        print(f"  {k}: {v}")

    print(f"\nSchedule ({len(report.sessions)} sessions):")
    slot_map   = {s.id: s for s in problem.timeslots}
    class_map  = {c.id: c for c in problem.classes}
    slot_order = {s.id: (s.day_of_week, s.start) for s in problem.timeslots}

    for session in sorted(report.sessions, key=lambda e: (slot_order[e.slot_id], e.room_id)):
        slot = slot_map[session.slot_id]
        cls  = class_map[session.class_id]
        print(
            f"  [{DAY_NAMES.get(slot.day_of_week, slot.day_of_week)} "
            f"{slot.start}–{slot.end}  room {session.room_id}]  "
            f"{cls.course_code or cls.course_id}  |  {cls.instructor_id}"
        )

    if report.unscheduled:
        print(f"\n[WARNING] {len(report.unscheduled)} class(es) unscheduled: "
              f"{', '.join(report.unscheduled)}")
    if args.store:
        print(f"\n{report.inserted} session(s) stored in: {args.store}")

    # ── 5. write report file (optional) ──────────────────────────────────────
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, ensure_ascii=False, indent=2)
        print(f"Report written to: {args.out}")

    sys.exit(0 if report.complete else 2)


if __name__ == "__main__":
    main()
