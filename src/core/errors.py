"""Exception taxonomy for the classification pipeline.

Per-item errors (classifier, validation, publish) are caught inside the
queue processor and never stop the run. Only ``ConfigError`` and
``SourceUnavailableError`` are fatal, and only at startup.
"""


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigError(PipelineError):
    """Configuration file is present but holds unusable values."""


class SourceUnavailableError(PipelineError):
    """The initial news source could not be acquired."""


class RegistryLoadError(PipelineError):
    """The company list is missing or not a well-formed list."""


# ── Classifier ────────────────────────────────────────────────────────────────

class ClassifierError(PipelineError):
    """A single classifier attempt failed. Retried by the client."""


class ClassifierTransportError(ClassifierError):
    """Network failure or non-2xx reply from the classifier endpoint."""


class ClassifierTimeout(ClassifierError):
    """The classifier did not answer within the per-call timeout."""


class ClassifierMalformedResponse(ClassifierError):
    """The reply envelope or its JSON content could not be parsed."""


# ── Validation ────────────────────────────────────────────────────────────────

class ValidationRejected(PipelineError):
    """Classifier output was well-formed but semantically unusable."""

    def __init__(self, reason, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


# ── Publishing ────────────────────────────────────────────────────────────────

class PublishError(PipelineError):
    """Base class for publish failures. Never retried."""

    def __init__(self, message: str, detail=None) -> None:
        self.detail = detail
        super().__init__(message)


class PublishRejected(PublishError):
    """The content endpoint answered but did not accept the record."""


class PublishTransportError(PublishError):
    """The content endpoint could not be reached or answered garbage."""
