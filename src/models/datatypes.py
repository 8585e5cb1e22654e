"""Data structures for the news classification pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


@dataclass(frozen=True)
class RawItem:
    """
    A news item as harvested from a source, before classification.
    """
    title: str
    description: str
    source: str
    date: Optional[str] = None


@dataclass(frozen=True)
class ClassificationResult:
    """
    Validated classifier output. Only built when every validation rule passes.
    """
    company_name: str
    headline: str
    description: str
    ticker: str        # uppercase, member of the whitelist
    confidence: float  # clamped to [0.0, 1.0]
    news_date: str     # YYYY-MM-DD


@dataclass(frozen=True)
class PublishRecord:
    """
    A classification enriched with the originating item's source and date.
    """
    result: ClassificationResult
    source: str
    date: Optional[str] = None

    @classmethod
    def from_item(cls, result: ClassificationResult, item: RawItem) -> "PublishRecord":
        return cls(result=result, source=item.source, date=item.date)

    def to_payload(self) -> Dict[str, object]:
        """Body sent to the content endpoint."""
        r = self.result
        return {
            "title": r.headline,
            "description": r.description,
            "source": self.source,
            "company": r.company_name,
            "ticker": r.ticker,
            "nsc": r.ticker,
            "confidence": r.confidence,
            "news_date": r.news_date,
            "date": self.date,
        }


class RejectReason(str, Enum):
    UNKNOWN_OR_MISSING_TICKER = "UNKNOWN_OR_MISSING_TICKER"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"


@dataclass(frozen=True)
class Rejected:
    """Validator verdict for classifier output that cannot be published."""
    reason: RejectReason
    detail: str = ""


class PublishStatus(str, Enum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"


@dataclass(frozen=True)
class PublishResult:
    status: PublishStatus
    post_id: Optional[object] = None
    detail: Optional[object] = None

    @property
    def accepted(self) -> bool:
        return self.status is PublishStatus.ACCEPTED


class ItemOutcome(str, Enum):
    """Terminal result of one item's trip through the pipeline."""
    PUBLISHED = "PUBLISHED"
    NO_CLASSIFICATION = "NO_CLASSIFICATION"
    VALIDATION_REJECTED = "VALIDATION_REJECTED"
    PUBLISH_REJECTED = "PUBLISH_REJECTED"
    PUBLISH_FAILED = "PUBLISH_FAILED"
    ERROR = "ERROR"
    # cut short by shutdown; left out of the attempt ledger so a later run retries it
    INTERRUPTED = "INTERRUPTED"


class ProcessorState(str, Enum):
    IDLE = "IDLE"
    BUSY = "BUSY"
    DRAINING = "DRAINING"
    DONE = "DONE"


@dataclass
class RunSummary:
    """
    Per-outcome counters for one run of the queue processor.
    """
    counts: Dict[ItemOutcome, int] = field(
        default_factory=lambda: {outcome: 0 for outcome in ItemOutcome}
    )
    skipped: int = 0

    def add(self, outcome: ItemOutcome) -> None:
        self.counts[outcome] += 1

    @property
    def processed(self) -> int:
        return sum(self.counts.values())

    @property
    def published(self) -> int:
        return self.counts[ItemOutcome.PUBLISHED]

    def describe(self) -> str:
        parts = [f"{outcome.value.lower()}={n}" for outcome, n in self.counts.items() if n]
        if self.skipped:
            parts.append(f"skipped={self.skipped}")
        return f"processed={self.processed} " + " ".join(parts)
