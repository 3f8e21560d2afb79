"""
Run auditing for feed processing.

Keeps a ledger of per-record failures so one bad record never stops a
batch, and a summary of what the run produced. Nothing here touches the
filesystem; callers decide where (and whether) to persist to_dict() output.
"""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ErrorEntry:
    """Structured error record."""
    timestamp: str
    index: Optional[int]  # position in the input batch
    expediente: Optional[str]
    stage: str  # "parse", "classify", "timeline", "edges", "law", "flows"
    error_type: str
    message: str
    stack_trace: Optional[str] = None


class ErrorLedger:
    """Collects errors isolated while processing individual records."""

    def __init__(self) -> None:
        self.errors: list[ErrorEntry] = []

    def record_error(
        self,
        stage: str,
        exception: BaseException,
        index: Optional[int] = None,
        expediente: Optional[str] = None,
    ) -> ErrorEntry:
        """Record an error and return the entry."""
        entry = ErrorEntry(
            timestamp=_now(),
            index=index,
            expediente=expediente or None,
            stage=stage,
            error_type=type(exception).__name__,
            message=str(exception),
            stack_trace="".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            ),
        )
        self.errors.append(entry)
        return entry

    def by_stage(self) -> dict[str, int]:
        """Error counts per processing stage."""
        counts: dict[str, int] = {}
        for error in self.errors:
            counts[error.stage] = counts.get(error.stage, 0) + 1
        return counts

    def finalize(self) -> dict:
        """Generate the final error ledger."""
        return {
            "generated_at": _now(),
            "total_errors": len(self.errors),
            "by_stage": self.by_stage(),
            "errors": [asdict(e) for e in self.errors],
        }

    def __len__(self) -> int:
        return len(self.errors)

    def __bool__(self) -> bool:
        return bool(self.errors)


@dataclass
class RecordScope:
    """Outcome of one isolated unit of work."""
    failed: bool = False


@contextmanager
def record_context(
    ledger: ErrorLedger,
    stage: str,
    index: Optional[int] = None,
    expediente: Optional[str] = None,
) -> Iterator[RecordScope]:
    """Isolate one record's work: errors go to the ledger, not the caller.

    Usage:
        with record_context(ledger, "classify", i, exp) as scope:
            classify(record)
        if scope.failed:
            ...
    """
    scope = RecordScope()
    try:
        yield scope
    except Exception as e:  # pylint: disable=broad-exception-caught
        scope.failed = True
        ledger.record_error(stage, e, index, expediente)
        logger.warning(
            "Record %s (%s) failed during %s: %s: %s",
            index,
            expediente or "no expediente",
            stage,
            type(e).__name__,
            e,
        )


@dataclass
class RunSummary:
    """Counts and timing for one feed run."""
    initiatives_in: int = 0
    initiatives_processed: int = 0
    laws_in: int = 0
    laws_processed: int = 0
    invalid_initiatives: int = 0  # no expediente
    bad_dates: int = 0
    flows: int = 0
    errors: int = 0
    categories: dict[str, int] = field(default_factory=dict)
    stages: dict[str, int] = field(default_factory=dict)
    relationships: dict[str, Any] = field(default_factory=dict)
    started_at: str = field(default_factory=_now)
    elapsed_seconds: float = 0.0
    _started: float = field(default_factory=time.perf_counter, repr=False)

    def count(self, bucket: dict[str, int], key: str) -> None:
        bucket[key] = bucket.get(key, 0) + 1

    def finish(self, errors: int) -> None:
        """Stamp the elapsed time and error total."""
        self.errors = errors
        self.elapsed_seconds = round(time.perf_counter() - self._started, 3)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (without private timing state)."""
        data = asdict(self)
        data.pop("_started", None)
        return data
