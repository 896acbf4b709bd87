"""Data models for the matching engine.

An engine pass produces one OwnerMatches per owner with at least one match.
Each owner's matches are split further into RecipientMatches, since a
configuration may override the delivery address and dispatch happens once per
distinct recipient.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from tender_alerts.domain.models import AlertConfiguration, Owner, TenderRecord


class MatchEvaluationError(Exception):
    """Raised when evaluating one (configuration, record) pair fails unexpectedly."""

    def __init__(self, config_id: str, record_id: str, cause: Exception):
        self.config_id = config_id
        self.record_id = record_id
        self.cause = cause
        super().__init__(
            f"Failed to evaluate configuration {config_id} against record {record_id}: {cause}"
        )


@dataclass
class ConfigSection:
    """Records shown under one originating configuration in a digest."""

    config: AlertConfiguration
    records: List[TenderRecord] = field(default_factory=list)


@dataclass
class RecipientMatches:
    """Deduplicated matches bound for a single delivery address.

    Attributes:
        owner: Owner of every configuration in this group
        recipient: Effective delivery address
        records: Unique matched records in first-match order
        configs_by_record: record id -> ids of every configuration it satisfied
        sections: Per-configuration grouping; each record sits under the first
            configuration that matched it so it appears once in the content
    """

    owner: Owner
    recipient: str
    records: List[TenderRecord] = field(default_factory=list)
    configs_by_record: Dict[str, List[str]] = field(default_factory=dict)
    sections: List[ConfigSection] = field(default_factory=list)

    @property
    def config_ids(self) -> List[str]:
        ids: List[str] = []
        for config_ids in self.configs_by_record.values():
            for config_id in config_ids:
                if config_id not in ids:
                    ids.append(config_id)
        return ids

    @property
    def record_ids(self) -> List[str]:
        return [record.id for record in self.records]

    @property
    def primary_config(self) -> AlertConfiguration:
        """First configuration with a non-empty section."""
        return self.sections[0].config

    def stat_pairs(self) -> List[tuple]:
        """(config_id, record_id) pairs to count after a confirmed send."""
        return [
            (config_id, record_id)
            for record_id, config_ids in self.configs_by_record.items()
            for config_id in config_ids
        ]


@dataclass
class OwnerMatches:
    """All matches for one owner, across every recipient they deliver to."""

    owner: Owner
    recipients: List[RecipientMatches] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return len({record.id for group in self.recipients for record in group.records})


@dataclass
class MatchBatch:
    """Outcome of one engine pass over a configuration cohort.

    Attributes:
        owners: Owners with at least one match (zero-match owners are omitted)
        errors: Per-pair evaluation failures, none of which aborted the pass
        evaluated_pairs: Number of (configuration, record) pairs evaluated
    """

    owners: List[OwnerMatches] = field(default_factory=list)
    errors: List[MatchEvaluationError] = field(default_factory=list)
    evaluated_pairs: int = 0

    @property
    def recipient_count(self) -> int:
        return sum(len(owner.recipients) for owner in self.owners)

    def is_empty(self) -> bool:
        return not self.owners
