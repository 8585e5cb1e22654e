"""Shared fixtures for the pipeline tests."""

import os
import tempfile
from pathlib import Path

# Keep test runs from writing into the project's output/ directory
os.environ.setdefault(
    "PIPELINE_LOG_FILE", str(Path(tempfile.gettempdir()) / "news-ticker-pipeline-tests.log")
)

import threading  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402

from src.models.datatypes import PublishResult, PublishStatus, RawItem  # noqa: E402
from src.providers.base import Classifier, Publisher  # noqa: E402


class FakeClassifier(Classifier):
    """Returns canned replies keyed by the item title found in the request text."""

    def __init__(self, replies: Dict[str, Optional[Dict[str, Any]]]) -> None:
        self.replies = replies
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def request(self, text, whitelist):
        with self._lock:
            self.calls.append(text)
        for title, reply in self.replies.items():
            if text.startswith(title):
                return reply
        return None

    def classify(self, text, whitelist):
        raise NotImplementedError


class FakePublisher(Publisher):
    def __init__(self, status: PublishStatus = PublishStatus.ACCEPTED) -> None:
        self.status = status
        self.records = []
        self._lock = threading.Lock()

    def publish(self, record):
        with self._lock:
            self.records.append(record)
            post_id = len(self.records)
        if self.status is PublishStatus.ACCEPTED:
            return PublishResult(status=self.status, post_id=post_id)
        return PublishResult(status=self.status, detail="nope")


@pytest.fixture
def abc_reply() -> Dict[str, Any]:
    return {
        "company_name": "ABC Corp",
        "headline": "ABC wins order",
        "description": "ABC secured a large order.",
        "nsc": "abc",
        "confidence": 0.9,
        "news_date": "2024-05-01",
    }


@pytest.fixture
def items() -> List[RawItem]:
    return [
        RawItem(title="ABC wins order", description="Large order", source="Sahi Buzz", date="2h ago"),
        RawItem(title="Markets close flat", description="Indices unchanged", source="Sahi Buzz"),
    ]
