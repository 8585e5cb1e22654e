"""Queue processor — single-flight classification of queued news items.

Flow per item:
  1. Classifier — request(title + description) → raw reply or None
  2. Validator  — validate(raw, whitelist) → ClassificationResult or Rejected
  3. Publisher  — publish(PublishRecord) → accepted / rejected / transport failure
  4. Log the outcome with its reason and record it in the attempt ledger
     (items interrupted by shutdown are not recorded)

A ticker thread calls :meth:`QueueProcessor.tick` every ``interval`` seconds.
A tick that finds an item already in flight does nothing, so ticks never
pile up and at most one classifier call happens per interval. Drain
(queue empty and nothing in flight) is polled separately every
``drain_poll`` seconds; on drain the ticker is stopped and joined.

Failures on a single item are logged and counted — the processor always
moves on to the next item.
"""

import threading
from collections import deque
from typing import Iterable, Optional, Set

from src.core.config import SchedulerSettings
from src.core.ledger import AttemptLedger, item_key
from src.core.logger import logger
from src.models.datatypes import (
    ItemOutcome, ProcessorState, PublishRecord, PublishStatus, RawItem, Rejected, RunSummary,
)
from src.pipeline import validator
from src.providers.base import Classifier, Publisher

_TITLE_PREVIEW = 50


class QueueProcessor:
    """Owns the work queue and drives items through classify → validate → publish.

    Args:
        classifier: Classification backend.
        publisher: Downstream content endpoint.
        whitelist: Uppercase tickers from the company registry (read-only).
        settings: Tick interval and drain-poll period.
        ledger: Optional attempt ledger; items already recorded are skipped on enqueue.
        stop_event: Shutdown event shared with the classifier so shutdown can cut a
                    backoff wait short. Created if not given.
    """

    def __init__(
        self,
        classifier: Classifier,
        publisher: Publisher,
        whitelist: Set[str],
        settings: SchedulerSettings = SchedulerSettings(),
        ledger: Optional[AttemptLedger] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.classifier = classifier
        self.publisher = publisher
        self.whitelist = frozenset(whitelist)
        self.settings = settings
        self.ledger = ledger
        self.stop_event = stop_event or threading.Event()
        self.summary = RunSummary()

        self._queue: deque = deque()
        self._lock = threading.Lock()
        self._busy = False
        self._done = False
        self._ticker: Optional[threading.Thread] = None

    # ── queue ─────────────────────────────────────────────────────────────────

    def enqueue(self, items: Iterable[RawItem]) -> int:
        """Append items in order. Returns how many were queued."""
        queued = 0
        with self._lock:
            if self._done:
                logger.warning("QueueProcessor: enqueue after shutdown ignored")
                return 0
            for item in items:
                if self.ledger is not None and self.ledger.seen(item_key(item)):
                    logger.info(f"SKIP [{_preview(item)}] reason=ALREADY_ATTEMPTED")
                    self.summary.skipped += 1
                    continue
                self._queue.append(item)
                queued += 1
        logger.info(f"QueueProcessor: queue loaded with {queued} articles")
        return queued

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def state(self) -> ProcessorState:
        with self._lock:
            if self._done:
                return ProcessorState.DONE
            if self._busy:
                return ProcessorState.BUSY
            if self._queue:
                return ProcessorState.IDLE
            return ProcessorState.DRAINING

    def is_drained(self) -> bool:
        with self._lock:
            return not self._queue and not self._busy

    # ── processing ────────────────────────────────────────────────────────────

    def tick(self) -> Optional[ItemOutcome]:
        """Process the head of the queue unless an item is already in flight.

        Returns:
            The item's outcome, or None when the tick was a no-op.
        """
        with self._lock:
            if self._done or self._busy or not self._queue:
                return None
            self._busy = True
            item = self._queue.popleft()

        outcome = ItemOutcome.ERROR
        try:
            outcome = self._process(item)
        except Exception as exc:
            logger.error(
                f"OUTCOME [{_preview(item)}] outcome={ItemOutcome.ERROR.value} "
                f"reason={type(exc).__name__} | {exc}",
                exc_info=True,
            )
        finally:
            if self.ledger is not None and outcome is not ItemOutcome.INTERRUPTED:
                self.ledger.record(item_key(item), outcome.value)
            with self._lock:
                self.summary.add(outcome)
                self._busy = False
        return outcome

    def _process(self, item: RawItem) -> ItemOutcome:
        logger.info(f"Processing: {_preview(item)}...")

        raw = self.classifier.request(f"{item.title} {item.description}", self.whitelist)
        if raw is None:
            if self.stop_event.is_set():
                return self._log(item, ItemOutcome.INTERRUPTED, "SHUTDOWN")
            return self._log(item, ItemOutcome.NO_CLASSIFICATION, "CLASSIFIER_UNAVAILABLE")

        verdict = validator.validate(raw, self.whitelist)
        if isinstance(verdict, Rejected):
            return self._log(
                item, ItemOutcome.VALIDATION_REJECTED, verdict.reason.value, verdict.detail
            )

        result = self.publisher.publish(PublishRecord.from_item(verdict, item))
        if result.accepted:
            return self._log(item, ItemOutcome.PUBLISHED, f"id={result.post_id}", verdict.ticker)
        if result.status is PublishStatus.REJECTED:
            return self._log(item, ItemOutcome.PUBLISH_REJECTED, "PUBLISH_REJECTED", result.detail)
        return self._log(item, ItemOutcome.PUBLISH_FAILED, "PUBLISH_TRANSPORT_ERROR", result.detail)

    def _log(self, item: RawItem, outcome: ItemOutcome, reason: str, detail=None) -> ItemOutcome:
        line = f"OUTCOME [{_preview(item)}] outcome={outcome.value} reason={reason}"
        if detail:
            line += f" | {detail}"
        if outcome is ItemOutcome.PUBLISHED:
            logger.info(line)
        else:
            logger.warning(line)
        return outcome

    # ── scheduling ────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the ticker thread. The first tick fires after one interval."""
        if self._ticker is not None:
            return
        self._ticker = threading.Thread(target=self._tick_loop, name="queue-ticker", daemon=True)
        self._ticker.start()
        logger.info(
            f"QueueProcessor: ticking every {self.settings.interval}s "
            f"(drain poll {self.settings.drain_poll}s)"
        )

    def _tick_loop(self) -> None:
        while not self.stop_event.wait(self.settings.interval):
            self.tick()

    def run(self) -> RunSummary:
        """Process the queue until it drains, then shut down.

        Returns:
            RunSummary: Counts per outcome for this run.
        """
        self.start()
        try:
            while not self.is_drained():
                if self.stop_event.wait(self.settings.drain_poll):
                    break
        finally:
            self.shutdown()
        logger.info(f"QueueProcessor: processing completed — {self.summary.describe()}")
        return self.summary

    def shutdown(self) -> None:
        """Stop the ticker and mark the processor DONE. Safe to call twice."""
        self.stop_event.set()
        ticker = self._ticker
        if ticker is not None and ticker is not threading.current_thread():
            ticker.join()
        with self._lock:
            self._done = True


# ── helpers ───────────────────────────────────────────────────────────────────

def _preview(item: RawItem) -> str:
    return item.title[:_TITLE_PREVIEW]
