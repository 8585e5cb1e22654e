"""Classifier output validator — turns a raw JSON reply into a ClassificationResult.

Rules, first failure wins:
  1. Ticker (``nsc`` or ``ticker``) present and in the whitelist
     → else ``UNKNOWN_OR_MISSING_TICKER``
  2. ``company_name``, ``headline``, ``confidence`` present and truthy
     → else ``MISSING_REQUIRED_FIELD``
  3. ``confidence`` clamped to [0, 1]
  4. ``news_date`` normalized to YYYY-MM-DD; unparseable → today (UTC)

Rules 3 and 4 correct silently and never reject.
"""

from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Set, Union

from src.core.errors import ValidationRejected
from src.models.datatypes import ClassificationResult, Rejected, RejectReason

_REQUIRED_FIELDS = ("company_name", "headline", "confidence")
_TICKER_KEYS = ("nsc", "ticker")

# Accepted in addition to ISO 8601
_DATE_FORMATS = (
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def validate(
    raw: Any,
    whitelist: Set[str],
    today: Callable[[], date] = _utc_today,
) -> Union[ClassificationResult, Rejected]:
    """Validate and normalize classifier output against the ticker whitelist.

    Args:
        raw: Parsed classifier JSON (normally a dict).
        whitelist: Uppercase tickers from the company registry.
        today: Clock used for the date fallback.

    Returns:
        A :class:`ClassificationResult` on success, else :class:`Rejected`
        carrying the first failing rule's reason.
    """
    try:
        return _check(raw, whitelist, today)
    except ValidationRejected as e:
        return Rejected(reason=e.reason, detail=e.detail)


def _check(raw: Any, whitelist: Set[str], today: Callable[[], date]) -> ClassificationResult:
    if not isinstance(raw, dict):
        raise ValidationRejected(RejectReason.UNKNOWN_OR_MISSING_TICKER, "no company in reply")

    ticker = _ticker(raw)
    if not ticker or ticker not in whitelist:
        raise ValidationRejected(
            RejectReason.UNKNOWN_OR_MISSING_TICKER, ticker or "undefined"
        )

    missing = [f for f in _REQUIRED_FIELDS if not raw.get(f)]
    if missing:
        raise ValidationRejected(RejectReason.MISSING_REQUIRED_FIELD, ", ".join(missing))

    confidence = _as_float(raw["confidence"])
    if confidence is None:
        raise ValidationRejected(
            RejectReason.MISSING_REQUIRED_FIELD, f"confidence={raw['confidence']!r}"
        )

    return ClassificationResult(
        company_name=str(raw["company_name"]),
        headline=str(raw["headline"]),
        description=str(raw.get("description") or ""),
        ticker=ticker,
        confidence=max(0.0, min(1.0, confidence)),
        news_date=normalize_date(raw.get("news_date"), today),
    )


def _ticker(raw: dict) -> Optional[str]:
    value = next((raw[k] for k in _TICKER_KEYS if raw.get(k)), None)
    if not isinstance(value, str):
        return None
    return value.strip().upper() or None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def normalize_date(value: Any, today: Callable[[], date] = _utc_today) -> str:
    """Return ``value`` as ``YYYY-MM-DD``, or today's UTC date if it can't be parsed.

    Timezone-aware datetimes are converted to UTC before the date is taken.
    """
    if isinstance(value, str) and value.strip():
        text = value.strip()
        parsed = _parse_iso(text)
        if parsed is None:
            for fmt in _DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is not None:
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc)
            return parsed.strftime("%Y-%m-%d")
    return today().strftime("%Y-%m-%d")


def _parse_iso(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
