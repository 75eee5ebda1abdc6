"""
Run-scoped record of which (resource, slot) pairs are already committed.

One ResourceLedger belongs to exactly one generation run and is passed by
reference down the allocation call chain. It is not thread-safe and must
never be shared between runs.
"""

from __future__ import annotations

from typing import Optional, Set, Tuple

from timetable_alloc.models import ClassOffering

Key = Tuple[str, str, str]   # (kind, resource_id, slot_id)


class ResourceLedger:

    def __init__(self) -> None:
        self._keys: Set[Key] = set()

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    # ── reservations ──────────────────────────────────────────────────────────

    def reserve_instructor(self, instructor_id: str, slot_id: str) -> None:
        self._keys.add(("instructor", instructor_id, slot_id))

    def reserve_room(self, room_id: str, slot_id: str) -> None:
        self._keys.add(("room", room_id, slot_id))

    def reserve_cohort(self, cohort_id: Optional[str], slot_id: str) -> None:
        if cohort_id:
            self._keys.add(("cohort", cohort_id, slot_id))

    def commit(self, cls: ClassOffering, room_id: str, slot_id: str) -> None:
        """Reserve every key a placed class consumes."""
        self.reserve_instructor(cls.instructor_id, slot_id)
        self.reserve_room(room_id, slot_id)
        self.reserve_cohort(cls.cohort_id, slot_id)

    # ── membership ────────────────────────────────────────────────────────────

    def instructor_busy(self, instructor_id: str, slot_id: str) -> bool:
        return ("instructor", instructor_id, slot_id) in self._keys

    def room_busy(self, room_id: str, slot_id: str) -> bool:
        return ("room", room_id, slot_id) in self._keys

    def cohort_busy(self, cohort_id: Optional[str], slot_id: str) -> bool:
        if not cohort_id:
            return False
        return ("cohort", cohort_id, slot_id) in self._keys
