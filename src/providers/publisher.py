"""WordPress content publisher.

One POST per record, no retries. The endpoint signals acceptance by
returning the new post's ``id``; any reply without one is a rejection.
"""

from typing import Any, Optional

import requests

from src.core.config import PublisherSettings
from src.core.errors import PublishRejected, PublishTransportError
from src.core.logger import logger
from src.models.datatypes import PublishRecord, PublishResult, PublishStatus
from src.providers.base import Publisher


class WordPressPublisher(Publisher):
    """Publishes classified articles to a custom WordPress REST route.

    Args:
        settings: Route URL, timeout and optional basic-auth credentials.
        session: Optional ``requests.Session`` (one is created if omitted).
    """

    def __init__(self, settings: PublisherSettings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        if settings.username and settings.password:
            self.session.auth = (settings.username, settings.password)

    def publish(self, record: PublishRecord) -> PublishResult:
        label = f"{record.result.ticker} - {record.result.company_name}"
        try:
            post_id = self._post(record)
        except PublishRejected as e:
            logger.warning(f"PUBLISH [{label}] status=REJECTED | {e} | detail={e.detail!r}")
            return PublishResult(status=PublishStatus.REJECTED, detail=e.detail)
        except PublishTransportError as e:
            logger.error(f"PUBLISH [{label}] status=TRANSPORT_FAILURE | {e}")
            return PublishResult(status=PublishStatus.TRANSPORT_FAILURE, detail=e.detail or str(e))

        logger.info(f"PUBLISH [{label}] status=ACCEPTED id={post_id}")
        return PublishResult(status=PublishStatus.ACCEPTED, post_id=post_id)

    def _post(self, record: PublishRecord) -> Any:
        """Send the record and return the new post id. Raises a PublishError subclass."""
        try:
            resp = self.session.post(
                self.settings.url,
                json=record.to_payload(),
                timeout=self.settings.timeout,
            )
        except requests.RequestException as exc:
            raise PublishTransportError(f"request failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not 200 <= resp.status_code < 300:
            message = body.get("message") if isinstance(body, dict) else None
            raise PublishRejected(
                f"HTTP {resp.status_code}", detail=message or resp.text[:200]
            )
        if body is None:
            raise PublishRejected("server rejected record (no id in reply)", detail=resp.text[:200])
        if not isinstance(body, dict) or not body.get("id"):
            raise PublishRejected("server rejected record (no id in reply)", detail=body)
        return body["id"]
