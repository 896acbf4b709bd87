"""Matching and deduplication across a cohort of configurations.

This module implements the engine that:
1. Groups already-eligible configurations by owner
2. Evaluates every owned configuration against every candidate record
3. Deduplicates matched records per owner and recipient, remembering every
   configuration each record satisfied (stats are counted per configuration)
4. Isolates evaluation failures so one bad pair never aborts the batch
"""

from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from tender_alerts.domain.models import AlertConfiguration, TenderRecord
from tender_alerts.logging import get_logger
from tender_alerts.utils.timestamps import utc_now

from .models import ConfigSection, MatchBatch, MatchEvaluationError, OwnerMatches, RecipientMatches
from .predicates import matches

logger = get_logger(__name__, component="matching")

Predicate = Callable[[AlertConfiguration, TenderRecord, Optional[datetime]], bool]


class MatchingEngine:
    """Produces per-owner, per-recipient deduplicated match sets.

    The predicate is injectable so tests can force evaluation failures.
    """

    def __init__(self, predicate: Optional[Predicate] = None):
        self.predicate = predicate or matches

    def match(
        self,
        configs: Iterable[AlertConfiguration],
        records: Iterable[TenderRecord],
        now: Optional[datetime] = None,
    ) -> MatchBatch:
        """Evaluate configurations against candidate records.

        Args:
            configs: Configurations already filtered by frequency and bucket
            records: Candidate records for this run
            now: Reference time passed to the predicate

        Returns:
            MatchBatch with one OwnerMatches per owner that matched anything
        """
        now = now or utc_now()
        candidates = list(records)
        batch = MatchBatch()

        for owner_configs in self._group_by_owner(configs).values():
            owner_matches = self._match_owner(owner_configs, candidates, now, batch)
            if owner_matches is not None:
                batch.owners.append(owner_matches)

        logger.info(
            f"Matched {len(batch.owners)} owner(s) across {batch.evaluated_pairs} pair(s)",
            extra={
                "event": "matching.batch.completed",
                "owners_matched": len(batch.owners),
                "recipients": batch.recipient_count,
                "evaluated_pairs": batch.evaluated_pairs,
                "errors": len(batch.errors),
            },
        )
        return batch

    def _match_owner(
        self,
        owner_configs: List[AlertConfiguration],
        records: List[TenderRecord],
        now: datetime,
        batch: MatchBatch,
    ) -> Optional[OwnerMatches]:
        owner = owner_configs[0].owner
        groups: "OrderedDict[str, RecipientMatches]" = OrderedDict()
        sections: Dict[tuple, ConfigSection] = {}

        for config in owner_configs:
            for record in records:
                batch.evaluated_pairs += 1
                try:
                    is_match = self.predicate(config, record, now)
                except Exception as e:
                    error = MatchEvaluationError(config.id, record.id, e)
                    batch.errors.append(error)
                    logger.error(
                        str(error),
                        extra={
                            "event": "matching.pair.failed",
                            "config_id": config.id,
                            "record_id": record.id,
                            "owner_id": owner.id,
                            "error_type": type(e).__name__,
                        },
                    )
                    continue

                if not is_match:
                    continue

                recipient = config.effective_email.lower()
                group = groups.get(recipient)
                if group is None:
                    group = RecipientMatches(owner=owner, recipient=recipient)
                    groups[recipient] = group

                matched_by = group.configs_by_record.get(record.id)
                if matched_by is not None:
                    if config.id not in matched_by:
                        matched_by.append(config.id)
                    continue

                group.records.append(record)
                group.configs_by_record[record.id] = [config.id]
                section = sections.get((recipient, config.id))
                if section is None:
                    section = ConfigSection(config=config)
                    sections[(recipient, config.id)] = section
                    group.sections.append(section)
                section.records.append(record)

        if not groups:
            logger.debug(
                f"No matches for owner {owner.id}",
                extra={"event": "matching.owner.empty", "owner_id": owner.id},
            )
            return None

        return OwnerMatches(owner=owner, recipients=list(groups.values()))

    @staticmethod
    def _group_by_owner(
        configs: Iterable[AlertConfiguration],
    ) -> "OrderedDict[str, List[AlertConfiguration]]":
        grouped: "OrderedDict[str, List[AlertConfiguration]]" = OrderedDict()
        for config in configs:
            grouped.setdefault(config.owner_id, []).append(config)
        return grouped
