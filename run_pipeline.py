"""News ticker classification pipeline entry point.

Usage:
    python run_pipeline.py [config.yaml]

Loads config.yaml and the company list, pulls the news page into the queue,
then classifies and publishes one item per tick until the queue drains.
Exits 0 after a clean drain, 1 when startup fails.
"""

import sys
import threading
from dotenv import load_dotenv

load_dotenv()  # must precede src imports so env vars are available at module load

from src.core.config import Settings, load_config  # noqa: E402
from src.core.errors import ConfigError, SourceUnavailableError  # noqa: E402
from src.core.ledger import AttemptLedger  # noqa: E402
from src.core.logger import logger  # noqa: E402
from src.pipeline import registry  # noqa: E402
from src.pipeline.engine import QueueProcessor  # noqa: E402
from src.providers.classifier import GroqClassifier  # noqa: E402
from src.providers.news import build_source  # noqa: E402
from src.providers.publisher import WordPressPublisher  # noqa: E402


def main(argv=None) -> int:
    """Run the pipeline. Returns 0 on success, 1 on failure."""
    argv = sys.argv[1:] if argv is None else argv
    config_path = argv[0] if argv else "config.yaml"

    try:
        settings = Settings.from_config(load_config(config_path))
    except (FileNotFoundError, ValueError, ConfigError) as exc:
        logger.error(f"run_pipeline: failed to load config: {exc}")
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    whitelist = registry.load(settings.company_list)

    try:
        items = build_source(settings.source).fetch_items()
    except (SourceUnavailableError, ConfigError) as exc:
        logger.error(f"run_pipeline: news source unavailable: {exc}")
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    stop_event = threading.Event()
    processor = QueueProcessor(
        classifier=GroqClassifier(settings.classifier, stop_event=stop_event),
        publisher=WordPressPublisher(settings.publisher),
        whitelist=whitelist,
        settings=settings.scheduler,
        ledger=AttemptLedger(settings.ledger_path) if settings.ledger_path else None,
        stop_event=stop_event,
    )
    processor.enqueue(items)

    try:
        summary = processor.run()
    except KeyboardInterrupt:
        logger.warning("run_pipeline: interrupted — shutting down")
        processor.shutdown()
        return 1

    print(f"SUCCESS: {summary.describe()}")
    logger.info(f"run_pipeline: completed — {summary.published} articles published")
    return 0


if __name__ == "__main__":
    sys.exit(main())
