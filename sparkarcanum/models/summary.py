"""
Aggregate results of batch jobs.

Batch jobs never return row-level detail to their callers, only counts.
Each summary is an accumulator: the job folds one outcome per record into
it, which keeps the counting testable without a database.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class RecordOutcome(str, Enum):
    """What happened to a single record in a batch job."""

    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class ImportSummary:
    """Result of a bulk card import."""

    processed: int = 0
    upserted: int = 0
    errors: int = 0
    sets: int = 0

    def record(self, outcome: RecordOutcome) -> "ImportSummary":
        self.processed += 1
        if outcome is RecordOutcome.FAILED:
            self.errors += 1
        else:
            self.upserted += 1
        return self

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BackfillTally:
    """
    Result of a rarity backfill run.

    Attributes:
        processed: Cards examined
        updated: Cards whose stored rarity was changed
        unchanged: Cards already holding the resolved rarity
        errors: Cards that could not be resolved or written
        sources: How many resolutions came from each lookup source
    """

    processed: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    sources: dict[str, int] = field(default_factory=dict)

    def record(self, outcome: RecordOutcome, source: str | None = None) -> "BackfillTally":
        self.processed += 1
        if outcome is RecordOutcome.UPDATED:
            self.updated += 1
        elif outcome is RecordOutcome.UNCHANGED:
            self.unchanged += 1
        else:
            self.errors += 1
        if source is not None:
            self.sources[source] = self.sources.get(source, 0) + 1
        return self

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RulesSyncSummary:
    """Result of a differential rules update."""

    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.unchanged + self.errors

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
