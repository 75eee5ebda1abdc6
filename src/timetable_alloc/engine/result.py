from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from timetable_alloc.models import Session


class OracleFailure(str, Enum):
    UNAVAILABLE = "unavailable"   # no oracle configured
    TIMEOUT     = "timeout"
    TRANSPORT   = "transport"     # the oracle call itself raised
    PARSE       = "parse"
    EMPTY       = "empty"
    VALIDATION  = "validation"


@dataclass
class AllocationResult:
    sessions:    List[Session] = field(default_factory=list)
    unscheduled: List[str]     = field(default_factory=list)   # class ids


@dataclass
class OracleOutcome:
    sessions:    List[Session]           = field(default_factory=list)
    unscheduled: List[str]               = field(default_factory=list)
    failure:     Optional[OracleFailure] = None
    detail:      str                     = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def failed(cls, failure: OracleFailure, detail: str = "") -> "OracleOutcome":
        return cls(failure=failure, detail=detail)


@dataclass
class GenerationReport:
    academic_year:  str
    term:           str
    source:         str                      # "oracle" | "greedy"
    sessions:       List[Session]            = field(default_factory=list)
    unscheduled:    List[str]                = field(default_factory=list)
    inserted:       int                      = 0
    oracle_failure: Optional[OracleFailure]  = None
    oracle_detail:  str                      = ""
    warnings:       List[str]                = field(default_factory=list)
    stats:          Dict[str, Any]           = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.unscheduled

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["oracle_failure"] = self.oracle_failure.value if self.oracle_failure else None
        return d
