"""Predicate evaluation and owner-level deduplication."""

from .engine import MatchingEngine
from .models import (
    ConfigSection,
    MatchBatch,
    MatchEvaluationError,
    OwnerMatches,
    RecipientMatches,
)
from .predicates import CHECKS, clause_matches, first_failing_check, matches

__all__ = [
    "CHECKS",
    "ConfigSection",
    "MatchBatch",
    "MatchEvaluationError",
    "MatchingEngine",
    "OwnerMatches",
    "RecipientMatches",
    "clause_matches",
    "first_failing_check",
    "matches",
]
