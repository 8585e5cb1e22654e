"""Tests for the queue processor."""

import threading
import time
from unittest.mock import Mock

import pytest
import requests

from src.core.config import ClassifierSettings, SchedulerSettings
from src.core.ledger import AttemptLedger, item_key
from src.models.datatypes import ItemOutcome, ProcessorState, PublishStatus, RawItem
from src.pipeline.engine import QueueProcessor
from src.providers.classifier import GroqClassifier
from src.providers.base import Classifier

from conftest import FakeClassifier, FakePublisher

FAST = SchedulerSettings(interval=0.01, drain_poll=0.01)


class BlockingClassifier(Classifier):
    """Holds every request open until released, tracking concurrency."""

    def __init__(self, reply) -> None:
        self.reply = reply
        self.entered = threading.Event()
        self.release = threading.Event()
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = 0
        self._lock = threading.Lock()

    def request(self, text, whitelist):
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.entered.set()
        self.release.wait(timeout=5)
        with self._lock:
            self.in_flight -= 1
        return self.reply

    def classify(self, text, whitelist):
        raise NotImplementedError


class TestQueue:
    def test_enqueue_is_fifo(self, items) -> None:
        classifier = FakeClassifier({})
        processor = QueueProcessor(classifier, FakePublisher(), {"ABC"}, FAST)

        assert processor.enqueue(items) == 2
        processor.tick()
        processor.tick()

        assert [c.split(" ")[0] for c in classifier.calls] == ["ABC", "Markets"]

    def test_states(self, items) -> None:
        processor = QueueProcessor(FakeClassifier({}), FakePublisher(), {"ABC"}, FAST)

        assert processor.state is ProcessorState.DRAINING
        processor.enqueue(items[:1])
        assert processor.state is ProcessorState.IDLE
        processor.tick()
        assert processor.state is ProcessorState.DRAINING
        assert processor.is_drained()
        processor.shutdown()
        assert processor.state is ProcessorState.DONE

    def test_tick_on_empty_queue_is_noop(self) -> None:
        classifier = FakeClassifier({})
        processor = QueueProcessor(classifier, FakePublisher(), {"ABC"}, FAST)

        assert processor.tick() is None
        assert classifier.calls == []


class TestTick:
    def test_published(self, items, abc_reply) -> None:
        publisher = FakePublisher()
        processor = QueueProcessor(
            FakeClassifier({"ABC wins order": abc_reply}), publisher, {"ABC"}, FAST
        )
        processor.enqueue(items[:1])

        assert processor.tick() is ItemOutcome.PUBLISHED
        record = publisher.records[0]
        assert record.result.ticker == "ABC"
        assert record.source == "Sahi Buzz"
        assert record.date == "2h ago"

    def test_no_classification(self, items) -> None:
        publisher = FakePublisher()
        processor = QueueProcessor(FakeClassifier({}), publisher, {"ABC"}, FAST)
        processor.enqueue(items[:1])

        assert processor.tick() is ItemOutcome.NO_CLASSIFICATION
        assert publisher.records == []

    def test_validation_rejected_is_logged_with_reason(self, items, abc_reply, caplog) -> None:
        publisher = FakePublisher()
        processor = QueueProcessor(
            FakeClassifier({"ABC wins order": abc_reply}), publisher, {"XYZ"}, FAST
        )
        processor.enqueue(items[:1])

        assert processor.tick() is ItemOutcome.VALIDATION_REJECTED
        assert publisher.records == []
        assert "reason=UNKNOWN_OR_MISSING_TICKER" in caplog.text

    @pytest.mark.parametrize(
        "status, outcome",
        [
            (PublishStatus.REJECTED, ItemOutcome.PUBLISH_REJECTED),
            (PublishStatus.TRANSPORT_FAILURE, ItemOutcome.PUBLISH_FAILED),
        ],
    )
    def test_publish_failures_are_dropped(self, items, abc_reply, status, outcome) -> None:
        publisher = FakePublisher(status)
        processor = QueueProcessor(
            FakeClassifier({"ABC wins order": abc_reply}), publisher, {"ABC"}, FAST
        )
        processor.enqueue(items[:1])

        assert processor.tick() is outcome
        assert len(publisher.records) == 1
        assert processor.is_drained()

    def test_exception_is_contained_and_flag_released(self, items) -> None:
        classifier = Mock(spec=Classifier)
        classifier.request.side_effect = RuntimeError("boom")
        processor = QueueProcessor(classifier, FakePublisher(), {"ABC"}, FAST)
        processor.enqueue(items)

        assert processor.tick() is ItemOutcome.ERROR
        assert processor.state is ProcessorState.IDLE
        assert processor.tick() is ItemOutcome.ERROR
        assert processor.summary.counts[ItemOutcome.ERROR] == 2

    def test_no_calls_after_shutdown(self, items) -> None:
        classifier = FakeClassifier({})
        processor = QueueProcessor(classifier, FakePublisher(), {"ABC"}, FAST)
        processor.enqueue(items)
        processor.shutdown()

        assert processor.tick() is None
        assert classifier.calls == []


class TestSingleFlight:
    def test_concurrent_ticks_never_overlap(self, items, abc_reply) -> None:
        classifier = BlockingClassifier(abc_reply)
        processor = QueueProcessor(classifier, FakePublisher(), {"ABC"}, FAST)
        processor.enqueue(items)

        first = threading.Thread(target=processor.tick)
        first.start()
        assert classifier.entered.wait(timeout=5)
        assert processor.state is ProcessorState.BUSY

        results = []
        others = [
            threading.Thread(target=lambda: results.append(processor.tick()))
            for _ in range(10)
        ]
        for t in others:
            t.start()
        for t in others:
            t.join(timeout=5)

        assert results == [None] * 10
        assert classifier.calls == 1
        assert len(processor) == 1

        classifier.release.set()
        first.join(timeout=5)

        assert processor.tick() is ItemOutcome.PUBLISHED
        assert classifier.calls == 2
        assert classifier.max_in_flight == 1


class TestRun:
    def test_end_to_end(self, items, abc_reply) -> None:
        classifier = FakeClassifier({
            "ABC wins order": abc_reply,
            "Markets close flat": {"company_name": "None", "headline": "H", "confidence": 0.5},
        })
        publisher = FakePublisher()
        processor = QueueProcessor(classifier, publisher, {"ABC"}, FAST)
        processor.enqueue(items)

        summary = processor.run()

        assert processor.state is ProcessorState.DONE
        assert len(publisher.records) == 1
        assert publisher.records[0].result.ticker == "ABC"
        assert summary.published == 1
        assert summary.counts[ItemOutcome.VALIDATION_REJECTED] == 1
        assert summary.processed == 2

    def test_drain_detected_promptly_and_nothing_runs_after(self, items, abc_reply) -> None:
        finished = []

        class TimedPublisher(FakePublisher):
            def publish(self, record):
                result = super().publish(record)
                finished.append(time.monotonic())
                return result

        classifier = FakeClassifier({"ABC wins order": abc_reply, "Markets close flat": abc_reply})
        publisher = TimedPublisher()
        processor = QueueProcessor(
            classifier, publisher, {"ABC"}, SchedulerSettings(interval=0.01, drain_poll=0.05)
        )
        processor.enqueue(items)

        processor.run()
        returned = time.monotonic()

        assert len(finished) == 2
        assert returned - finished[-1] < 1.0
        time.sleep(0.1)
        assert len(classifier.calls) == 2
        assert len(publisher.records) == 2

    def test_empty_queue_finishes_immediately(self) -> None:
        processor = QueueProcessor(FakeClassifier({}), FakePublisher(), {"ABC"}, FAST)

        summary = processor.run()

        assert summary.processed == 0
        assert processor.state is ProcessorState.DONE

    def test_interval_rate_limits_classifier_calls(self, items) -> None:
        classifier = FakeClassifier({})
        processor = QueueProcessor(
            classifier, FakePublisher(), {"ABC"}, SchedulerSettings(interval=0.2, drain_poll=0.01)
        )
        processor.enqueue(items)

        started = time.monotonic()
        processor.run()

        # first tick fires after one interval, second after two
        assert time.monotonic() - started >= 0.4
        assert len(classifier.calls) == 2


class TestLedger:
    def test_records_outcomes_and_skips_on_next_run(self, tmp_path, items, abc_reply) -> None:
        ledger = AttemptLedger(str(tmp_path / "attempts.db"))
        classifier = FakeClassifier({"ABC wins order": abc_reply})

        first = QueueProcessor(classifier, FakePublisher(), {"ABC"}, FAST, ledger=ledger)
        first.enqueue(items)
        first.run()

        assert ledger.seen(item_key(items[0]))
        assert ledger.seen(item_key(items[1]))

        second = QueueProcessor(classifier, FakePublisher(), {"ABC"}, FAST, ledger=ledger)
        assert second.enqueue(items) == 0
        assert second.summary.skipped == 2

    def test_item_interrupted_by_shutdown_is_not_recorded(self, tmp_path, items) -> None:
        ledger = AttemptLedger(str(tmp_path / "attempts.db"))
        stop = threading.Event()
        session = Mock()

        def fail_and_stop(*args, **kwargs):
            stop.set()
            raise requests.ConnectionError("down")

        session.post.side_effect = fail_and_stop
        classifier = GroqClassifier(ClassifierSettings(api_key="k"), session=session, stop_event=stop)
        processor = QueueProcessor(
            classifier, FakePublisher(), {"ABC"}, FAST, ledger=ledger, stop_event=stop
        )
        processor.enqueue(items[:1])

        assert processor.tick() is ItemOutcome.INTERRUPTED
        assert session.post.call_count == 1
        assert not ledger.seen(item_key(items[0]))

        next_run = QueueProcessor(FakeClassifier({}), FakePublisher(), {"ABC"}, FAST, ledger=ledger)
        assert next_run.enqueue(items[:1]) == 1

    def test_classifier_exhaustion_without_shutdown_is_recorded(self, tmp_path, items) -> None:
        ledger = AttemptLedger(str(tmp_path / "attempts.db"))
        processor = QueueProcessor(FakeClassifier({}), FakePublisher(), {"ABC"}, FAST, ledger=ledger)
        processor.enqueue(items[:1])

        assert processor.tick() is ItemOutcome.NO_CLASSIFICATION
        assert ledger.seen(item_key(items[0]))

    def test_raw_item_key_is_stable(self) -> None:
        a = RawItem(title="T", description="D", source="S", date="d")
        b = RawItem(title="T", description="other", source="S", date="d")
        c = RawItem(title="T", description="D", source="S2", date="d")

        assert item_key(a) == item_key(b)
        assert item_key(a) != item_key(c)
