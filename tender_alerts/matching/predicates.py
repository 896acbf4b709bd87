"""Predicate chain deciding whether one configuration matches one record.

Each check is a pure function ``(config, record, ctx) -> bool`` returning False
only when the record definitely violates that rule. Checks run in order and the
first failure short-circuits. A check that cannot be evaluated because the
record is malformed (TypeError/ValueError/AttributeError) is treated as not
applicable and passes.

New rules are added by appending to ``CHECKS``.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from tender_alerts.domain.models import AlertConfiguration, KeywordClause, MatchType, TenderRecord
from tender_alerts.logging import get_logger
from tender_alerts.utils.timestamps import days_until, utc_now

logger = get_logger(__name__, component="matching")


@dataclass
class EvaluationContext:
    """Per-evaluation values computed once and shared by every check."""

    now: datetime
    _buffer: Optional[str] = None
    _record: Optional[TenderRecord] = None

    def text(self, record: TenderRecord) -> str:
        if self._buffer is None or self._record is not record:
            self._buffer = record.search_text()
            self._record = record
        return self._buffer


Check = Callable[[AlertConfiguration, TenderRecord, EvaluationContext], bool]


def clause_matches(clause: KeywordClause, text: str) -> bool:
    """Match one keyword clause against an already lower-cased buffer.

    ``exact`` requires a word boundary on both sides, ``starts_with`` on the
    left and ``ends_with`` on the right. Boundaries are any non-word character
    or the ends of the buffer, so "it" does not match inside "digital".
    """
    term = clause.term.lower()
    if not term:
        return False

    mode = clause.match_type
    if mode == MatchType.CONTAINS.value:
        return term in text

    escaped = re.escape(term)
    if mode == MatchType.EXACT.value:
        pattern = rf"(?<!\w){escaped}(?!\w)"
    elif mode == MatchType.STARTS_WITH.value:
        pattern = rf"(?<!\w){escaped}"
    elif mode == MatchType.ENDS_WITH.value:
        pattern = rf"{escaped}(?!\w)"
    else:
        return term in text
    return re.search(pattern, text) is not None


def check_active(config, record, ctx) -> bool:
    return bool(config.is_active)


def check_keywords(config, record, ctx) -> bool:
    if not config.keywords:
        return True
    text = ctx.text(record)
    return any(clause_matches(clause, text) for clause in config.keywords)


def check_exclusions(config, record, ctx) -> bool:
    excludes = config.advanced_filters.exclude_keywords
    if not excludes:
        return True
    text = ctx.text(record)
    return not any(term.lower() in text for term in excludes if term)


def check_category(config, record, ctx) -> bool:
    if not config.categories:
        return True
    return record.category in config.categories


def check_location(config, record, ctx) -> bool:
    locations = config.locations
    location = record.location
    if locations.provinces and location.province not in locations.provinces:
        return False
    if locations.districts and location.district not in locations.districts:
        return False
    # City only narrows when the record actually names one
    if locations.cities and location.city and location.city not in locations.cities:
        return False
    return True


def check_organization_type(config, record, ctx) -> bool:
    if not config.organization_types:
        return True
    return record.organization.type in config.organization_types


def check_value_range(config, record, ctx) -> bool:
    amount = record.amount
    if amount is None:
        return True
    bounds = config.estimated_value
    if bounds.min is not None and amount < bounds.min:
        return False
    if bounds.max is not None and amount > bounds.max:
        return False
    return True


def check_days_until_closing(config, record, ctx) -> bool:
    filters = config.advanced_filters
    low, high = filters.min_days_until_closing, filters.max_days_until_closing
    if low is None and high is None:
        return True
    closing = record.dates.closing
    if closing is None:
        return True
    remaining = days_until(closing, ctx.now)
    if low is not None and remaining < low:
        return False
    if high is not None and remaining > high:
        return False
    return True


def check_status(config, record, ctx) -> bool:
    statuses = config.advanced_filters.included_statuses
    if not statuses:
        return True
    return record.status in statuses


def check_priority(config, record, ctx) -> bool:
    priorities = config.advanced_filters.included_priorities
    if not priorities:
        return True
    return record.priority in priorities


CHECKS: List[Tuple[str, Check]] = [
    ("active", check_active),
    ("keywords", check_keywords),
    ("exclusions", check_exclusions),
    ("category", check_category),
    ("location", check_location),
    ("organization_type", check_organization_type),
    ("value_range", check_value_range),
    ("days_until_closing", check_days_until_closing),
    ("status", check_status),
    ("priority", check_priority),
]


def first_failing_check(
    config: AlertConfiguration,
    record: TenderRecord,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Name of the first check the record fails, or None on a match."""
    ctx = EvaluationContext(now=now or utc_now())
    for name, check in CHECKS:
        try:
            passed = check(config, record, ctx)
        except (TypeError, ValueError, AttributeError) as e:
            logger.debug(
                f"Check '{name}' not applicable: {e}",
                extra={
                    "event": "matching.check.skipped",
                    "check": name,
                    "config_id": getattr(config, "id", None),
                    "record_id": getattr(record, "id", None),
                },
            )
            continue
        if not passed:
            return name
    return None


def matches(
    config: AlertConfiguration,
    record: TenderRecord,
    now: Optional[datetime] = None,
) -> bool:
    """Return True if the record satisfies every rule of the configuration.

    Args:
        config: Validated alert configuration
        record: Candidate tender snapshot
        now: Reference time for days-until-closing (defaults to current UTC)
    """
    return first_failing_check(config, record, now) is None
