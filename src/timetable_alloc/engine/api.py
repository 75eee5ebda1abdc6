"""
Generation run: precheck -> oracle -> validate -> greedy fallback -> write.

Only one run per (academic year, term) may be in flight: the writer's
delete-then-insert is not isolated from a concurrent run's reads. Runs for
different scopes do not block each other.
"""

from __future__ import annotations

import logging
import os
import random
import threading
import time
from typing import Dict, Optional, Tuple

from timetable_alloc.models import OracleParams, Problem
from timetable_alloc.writer import ScheduleWriter
from .greedy import allocate
from .oracle import Oracle, try_oracle
from .precheck import ensure_ok
from .result import GenerationReport

logger = logging.getLogger(__name__)


class ScopeLocks:
    """One lock per (academic_year, term), created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}

    def for_scope(self, academic_year: str, term: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault((academic_year, term), threading.Lock())


_default_locks = ScopeLocks()


def build_oracle(params: OracleParams) -> Optional[Oracle]:
    """Oracle for params.kind, or None when it is "none" or cannot be built.

    A missing url or api key leaves the run without an oracle, so generation
    falls back to greedy allocation. Only an unknown kind raises ValueError.
    """
    kind = (params.kind or "none").lower()
    if kind == "none":
        return None
    try:
        if kind == "cpsat":
            from .cpsat_oracle import CpSatOracle
            return CpSatOracle(num_workers=params.num_workers)
        if kind == "http":
            from .http_oracle import HttpOracle
            return HttpOracle(params.url)
        if kind == "chat":
            from .http_oracle import ChatCompletionOracle
            return ChatCompletionOracle(
                params.url, params.model, os.environ.get(params.api_key_env, "")
            )
    except ValueError as e:
        logger.warning("Oracle %r not usable (%s); greedy allocation only", kind, e)
        return None
    raise ValueError(f"Unknown oracle kind: {params.kind!r}")



def generate_schedule(
    problem: Problem,
    writer:  ScheduleWriter,
    *,
    oracle: Optional[Oracle]        = None,
    rng:    Optional[random.Random] = None,
    locks:  Optional[ScopeLocks]    = None,
) -> GenerationReport:
    warnings = ensure_ok(problem)
    for w in warnings:
        logger.warning(w)

    year, term = problem.academic_year, problem.term
    rng     = rng or random.Random(problem.settings.seed)
    timeout = problem.settings.oracle.timeout_seconds
    t0      = time.perf_counter()

    with (locks or _default_locks).for_scope(year, term):
        outcome = try_oracle(oracle, problem, timeout)
        if outcome.ok:
            source, sessions, unscheduled = "oracle", outcome.sessions, outcome.unscheduled
            logger.info("Oracle proposal accepted: %d session(s)", len(sessions))
        else:
            if oracle is not None:
                logger.warning(
                    "Oracle failed (%s): %s; falling back to greedy allocation",
                    outcome.failure.value, outcome.detail,
                )
            result = allocate(
                problem.classes, problem.rooms, problem.timeslots,
                problem.availability_by_instructor(),
                academic_year = year,
                term          = term,
                rng           = rng,
            )
            source, sessions, unscheduled = "greedy", result.sessions, result.unscheduled

        inserted = writer.replace(year, term, sessions)

    if unscheduled:
        logger.warning("%d class(es) unscheduled for %s term %s", len(unscheduled), year, term)

    return GenerationReport(
        academic_year  = year,
        term           = term,
        source         = source,
        sessions       = list(sessions),
        unscheduled    = list(unscheduled),
        inserted       = inserted,
        oracle_failure = outcome.failure,
        oracle_detail  = outcome.detail,
        warnings       = warnings,
        stats          = {
            "classes":     len(problem.classes),
            "rooms":       len(problem.rooms),
            "slots":       len(problem.timeslots),
            "wall_time_s": round(time.perf_counter() - t0, 3),
        },
    )
