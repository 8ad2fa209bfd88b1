from sparkarcanum.search.ranking import (
    ScoredItem,
    consolidate_printings,
    rank_by_name,
    score_items,
    score_name,
    tokenize_query,
)

__all__ = [
    "ScoredItem",
    "consolidate_printings",
    "rank_by_name",
    "score_items",
    "score_name",
    "tokenize_query",
]
