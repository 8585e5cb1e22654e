"""Company registry — the whitelist of ticker symbols a classification may use.

The registry fails open: if the company list is missing or malformed the
run continues with an empty whitelist, which makes the validator reject
every classification rather than crash the process.
"""

import json
from pathlib import Path
from typing import Any, FrozenSet, Iterable, Union

from src.core.errors import RegistryLoadError
from src.core.logger import logger

_TICKER_KEYS = ("nsc", "ticker")


def parse_companies(entries: Any) -> FrozenSet[str]:
    """Normalize a parsed company list into a set of uppercase tickers.

    Only entries carrying both a non-empty ticker (``nsc`` or ``ticker``) and
    a non-empty ``name`` are kept. Duplicates collapse.

    Args:
        entries: Parsed JSON, expected to be a list of objects.

    Returns:
        FrozenSet[str]: Uppercase ticker symbols.

    Raises:
        RegistryLoadError: If ``entries`` is not a list.
    """
    if not isinstance(entries, list):
        raise RegistryLoadError(
            f"Invalid company list format: expected a list, got {type(entries).__name__}"
        )

    tickers = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        ticker = next((entry[k] for k in _TICKER_KEYS if entry.get(k)), None)
        name = entry.get("name")
        if not isinstance(ticker, str) or not ticker.strip() or not name:
            continue
        tickers.add(ticker.strip().upper())
    return frozenset(tickers)


def _read(source: Union[str, Path]) -> Any:
    path = Path(source)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise RegistryLoadError(f"Could not read company list {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise RegistryLoadError(f"Company list {path} is not valid JSON: {e}") from e


def load(source: Union[str, Path, Iterable[Any]]) -> FrozenSet[str]:
    """Load the ticker whitelist, resolving to the empty set on any error.

    Args:
        source: Path to a JSON file, or an already-parsed list of entries.

    Returns:
        FrozenSet[str]: Uppercase tickers; empty if loading failed.
    """
    try:
        entries = _read(source) if isinstance(source, (str, Path)) else source
        tickers = parse_companies(entries)
    except RegistryLoadError as e:
        logger.error(f"Company loading failed: {e} — every classification will be rejected")
        return frozenset()

    logger.info(f"Loaded {len(tickers)} valid company codes")
    return tickers
