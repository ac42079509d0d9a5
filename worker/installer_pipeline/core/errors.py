"""Exception types that abort a discovery run.

Per-installer failures are not exceptions: they are collected as
``CandidateError`` records and the batch carries on.
"""


class ConfigurationError(ValueError):
    """Raised for invalid run parameters, before any network call is made."""


class UpstreamServiceError(RuntimeError):
    """Raised when a required upstream service fails or times out."""
