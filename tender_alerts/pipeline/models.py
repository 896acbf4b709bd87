"""Data models for processing run tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class RunMode(str, Enum):
    """Which eligibility rule and candidate window a run uses."""

    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"
    CLEANUP = "cleanup"


@dataclass
class RunError:
    """
    One isolated failure inside a run.

    Attributes:
        kind: match, render, delivery or stats
        message: Human-readable error description
        owner_id: Owner being processed, if known
        config_ids: Configurations affected
        record_id: Record being evaluated (match errors)
        recipient: Delivery address (render/delivery errors)
    """

    kind: str
    message: str
    owner_id: Optional[str] = None
    config_ids: List[str] = field(default_factory=list)
    record_id: Optional[str] = None
    recipient: Optional[str] = None


@dataclass
class RunResult:
    """
    Outcome of one batch run.

    Attributes:
        mode: Run mode
        run_id: Identifier stamped on every log line of the run
        started_at: UTC timestamp when the run began
        finished_at: UTC timestamp when the run completed
        processed_owners: Owners with at least one match that reached dispatch
        emails_sent: Confirmed sends
        errors: Isolated failures; none of them aborted the run
        candidate_count: Records considered
        config_count: Configurations eligible after entitlement checks
        deleted_count: Configurations removed (cleanup runs)
        skipped: The run did not execute (previous run of the same job in flight)
    """

    mode: RunMode
    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed_owners: int = 0
    emails_sent: int = 0
    errors: List[RunError] = field(default_factory=list)
    candidate_count: int = 0
    config_count: int = 0
    deleted_count: int = 0
    skipped: bool = False

    @property
    def had_errors(self) -> bool:
        return bool(self.errors)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def errors_of(self, kind: str) -> List[RunError]:
        return [error for error in self.errors if error.kind == kind]
