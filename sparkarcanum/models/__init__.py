from sparkarcanum.models.rule import ParsedRule
from sparkarcanum.models.summary import (
    BackfillTally,
    ImportSummary,
    RecordOutcome,
    RulesSyncSummary,
)

__all__ = [
    "BackfillTally",
    "ImportSummary",
    "ParsedRule",
    "RecordOutcome",
    "RulesSyncSummary",
]
