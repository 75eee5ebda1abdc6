"""
Schedule writers: persist the session list of one (academic year, term).

Every writer replaces, never patches: all prior sessions of the scope are
dropped and the new list is inserted. Sessions of other scopes are left
untouched. Failures surface as ScheduleWriteError; there is no retry here.

JsonScheduleWriter writes to a temporary file in the target directory and
swaps it in with os.replace, so a reader sees either the old document or
the new one.
Reference: Python docs — os.replace
https://docs.python.org/3/library/os.html#os.replace
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Protocol, Sequence, Tuple

from timetable_alloc.models import Session

logger = logging.getLogger(__name__)


class ScheduleWriteError(RuntimeError):
    """Raised when prior sessions cannot be removed or new ones stored."""


class ScheduleWriter(Protocol):
    def replace(self, academic_year: str, term: str, sessions: Sequence[Session]) -> int:
        ...


class InMemoryScheduleWriter:

    def __init__(self) -> None:
        self.scopes: Dict[Tuple[str, str], List[Session]] = {}

    def replace(self, academic_year: str, term: str, sessions: Sequence[Session]) -> int:
        self.scopes[academic_year, term] = list(sessions)
        return len(sessions)

    def sessions(self, academic_year: str, term: str) -> List[Session]:
        return list(self.scopes.get((academic_year, term), []))


class JsonScheduleWriter:

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> List[Session]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            return [Session(**row) for row in raw.get("sessions", [])]
        except (OSError, ValueError, TypeError, AttributeError) as e:
            raise ScheduleWriteError(f"Could not read {self.path}: {e}") from e

    def replace(self, academic_year: str, term: str, sessions: Sequence[Session]) -> int:
        kept = [
            s for s in self.load()
            if (s.academic_year, s.term) != (academic_year, term)
        ]
        rows = [asdict(s) for s in kept] + [asdict(s) for s in sessions]

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump({"sessions": rows}, f, ensure_ascii=False, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ScheduleWriteError(f"Could not write {self.path}: {e}") from e

        logger.info(
            "Stored %d session(s) for %s term %s in %s",
            len(sessions), academic_year, term, self.path,
        )
        return len(sessions)
