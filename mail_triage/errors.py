"""
Error taxonomy for the triage pipeline.

Fatal errors (ConfigurationError, FetchError, ClassificationError) end the
current triage cycle and are turned into a single user-facing message by the
engine. DataAnomaly is never propagated past the classifier.
"""


class TriageError(Exception):
    """Base exception for all triage errors."""


class ConfigurationError(TriageError):
    """A credential or setting required for the selected backend is missing."""


class FetchError(TriageError):
    """Mailbox listing or message query/retrieval failed."""


class ClassificationError(TriageError):
    """The classification backend failed or returned an unusable payload."""


class DataAnomaly(TriageError):
    """A single classifier entry is unusable (e.g. an out-of-range email index)."""


__all__ = [
    "TriageError",
    "ConfigurationError",
    "FetchError",
    "ClassificationError",
    "DataAnomaly",
]
