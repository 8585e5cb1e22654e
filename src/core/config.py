"""Configuration module for loading project settings and environment variables.

``config.yaml`` holds the non-secret knobs; API keys and publisher
credentials come from the environment (``.env`` is loaded on import).
Components never read this module's state directly: ``run_pipeline.py``
builds one :class:`Settings` and passes the relevant section into each
constructor.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from src.core.errors import ConfigError

# Load environment variables from .env file
load_dotenv()

_SOURCE_KINDS = ("html", "rss", "json")


def load_config(config_path: str | Path = "config.yaml") -> Dict[str, Any]:
    """
    Load configuration from the specified YAML file.

    Args:
        config_path (str | Path): Path to the configuration file. Defaults to "config.yaml".

    Returns:
        Dict[str, Any]: A dictionary containing the configuration settings.
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    with open(config_file, "r", encoding="utf-8") as file:
        config_data = yaml.safe_load(file)

    if not config_data:
        raise ValueError(f"Configuration file {config_path} is empty or invalid.")

    return config_data


@dataclass(frozen=True)
class ClassifierSettings:
    """Groq chat-completions endpoint and retry policy."""
    base_url: str = "https://api.groq.com/openai/v1"
    model: str = "deepseek-r1-distill-llama-70b"
    api_key: str = ""
    timeout: float = 60.0
    max_attempts: int = 3
    backoff: float = 15.0
    backoff_multiplier: float = 1.0
    jitter: float = 0.0
    max_chars: int = 1500
    temperature: float = 0.1


@dataclass(frozen=True)
class PublisherSettings:
    """WordPress REST route that receives classified articles."""
    url: str = ""
    timeout: float = 60.0
    username: str = ""
    password: str = ""


@dataclass(frozen=True)
class SchedulerSettings:
    interval: float = 30.0
    drain_poll: float = 1.0


@dataclass(frozen=True)
class SourceSettings:
    kind: str = "html"
    url: str = ""
    path: str = ""
    name: str = "Sahi Buzz"
    item_xpath: str = (
        "//*[contains(concat(' ', normalize-space(@class), ' '), "
        "' bg-surface-neutral-l1-dark ')]/div"
    )
    timeout: float = 60.0


@dataclass(frozen=True)
class Settings:
    """Fully resolved run configuration."""
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    publisher: PublisherSettings = field(default_factory=PublisherSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    source: SourceSettings = field(default_factory=SourceSettings)
    company_list: str = "companies.json"
    output_dir: str = "output"
    ledger_path: Optional[str] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Settings":
        """Build settings from a parsed ``config.yaml`` dict plus the environment.

        Args:
            config: Output of :func:`load_config`.

        Returns:
            Settings: Validated settings.

        Raises:
            ConfigError: If a section has the wrong shape or a value is out of range.
        """
        classifier_cfg = _section(config, "classifier")
        publisher_cfg = _section(config, "publisher")
        scheduler_cfg = _section(config, "scheduler")
        source_cfg = _section(config, "source")

        try:
            # Secrets: environment wins over config.yaml
            classifier = ClassifierSettings(**{
                **classifier_cfg,
                "api_key": os.getenv("GROQ_API_KEY") or classifier_cfg.get("api_key", ""),
            })
            publisher = PublisherSettings(**{
                **publisher_cfg,
                "username": os.getenv("WP_USER") or publisher_cfg.get("username", ""),
                "password": os.getenv("WP_PASS") or publisher_cfg.get("password", ""),
            })
            scheduler = SchedulerSettings(**scheduler_cfg)
            source = SourceSettings(**source_cfg)
        except TypeError as exc:
            raise ConfigError(f"Unknown configuration key: {exc}") from exc

        settings = cls(
            classifier=classifier,
            publisher=publisher,
            scheduler=scheduler,
            source=source,
            company_list=config.get("company_list", "companies.json"),
            output_dir=config.get("output_dir", "output"),
            ledger_path=config.get("ledger_path"),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise :class:`ConfigError` for values the pipeline cannot run with."""
        if self.classifier.max_attempts < 1:
            raise ConfigError("classifier.max_attempts must be at least 1")
        if self.classifier.backoff < 0 or self.classifier.jitter < 0:
            raise ConfigError("classifier.backoff and classifier.jitter must be >= 0")
        if self.classifier.max_chars < 1:
            raise ConfigError("classifier.max_chars must be positive")
        if self.scheduler.interval <= 0 or self.scheduler.drain_poll <= 0:
            raise ConfigError("scheduler.interval and scheduler.drain_poll must be > 0")
        if self.source.kind not in _SOURCE_KINDS:
            raise ConfigError(
                f"source.kind must be one of {', '.join(_SOURCE_KINDS)}, got {self.source.kind!r}"
            )
        if not self.publisher.url:
            raise ConfigError("publisher.url is required")


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return ``config[name]`` as a dict (missing → empty)."""
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value
