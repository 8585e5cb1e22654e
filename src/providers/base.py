"""Abstract base classes for the pipeline's external collaborators."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

from src.models.datatypes import ClassificationResult, PublishRecord, PublishResult, RawItem


class NewsSource(ABC):
    """Abstract interface for acquiring raw news items."""

    @abstractmethod
    def fetch_items(self) -> List[RawItem]:
        """
        Fetch every item currently available from the source.

        Returns:
            List[RawItem]: Items with non-empty title and description.

        Raises:
            SourceUnavailableError: If the source cannot be reached or parsed.
        """
        pass


class Classifier(ABC):
    """Abstract interface for mapping news text to a whitelisted company."""

    @abstractmethod
    def request(self, text: str, whitelist: Set[str]) -> Optional[Dict[str, Any]]:
        """
        Ask the classification backend about ``text``.

        Args:
            text (str): Title and description of the item.
            whitelist (Set[str]): Valid ticker symbols, used to steer the prompt.

        Returns:
            Optional[Dict[str, Any]]: The raw, unvalidated reply object, or None
                                      when no classification is available.
        """
        pass

    @abstractmethod
    def classify(self, text: str, whitelist: Set[str]) -> Optional[ClassificationResult]:
        """
        Request and validate in one step. Never raises.

        Returns:
            Optional[ClassificationResult]: A validated result, or None.
        """
        pass


class Publisher(ABC):
    """Abstract interface for the downstream content endpoint."""

    @abstractmethod
    def publish(self, record: PublishRecord) -> PublishResult:
        """
        Send one record downstream. Never raises and never retries.

        Args:
            record (PublishRecord): The validated, enriched record.

        Returns:
            PublishResult: Accepted with an id, rejected, or transport failure.
        """
        pass
