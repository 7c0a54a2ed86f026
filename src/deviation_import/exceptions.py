"""
Exception hierarchy for the deviation import pipeline.

Only authentication and pagination integrity abort a run. Everything else is
recorded per item (warnings, unmapped lines, failed import entries) so that a
single bad record never blocks a batch.
"""

from __future__ import annotations

from typing import Any


class DeviationImportError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary of additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(DeviationImportError):
    """Missing credentials, unknown species, or an unusable mapping config."""


class ArtifactError(DeviationImportError):
    """A JSON artifact is missing or does not match its schema."""


# ---------------------------------------------------------------------------
# Source platform
# ---------------------------------------------------------------------------

class SourceError(DeviationImportError):
    """Base class for source platform failures."""


class AuthError(SourceError):
    """Token issuance failed, or the platform kept rejecting fresh tokens."""


class ApiError(SourceError):
    """Non-2xx response after retry exhaustion, or a non-transient status.

    Attributes:
        status_code: Last HTTP status seen, None for transport failures
        url: Request URL (without the access token)
    """

    def __init__(self, message: str, status_code: int | None = None, url: str = ""):
        super().__init__(message, {"status_code": status_code, "url": url})
        self.status_code = status_code
        self.url = url


# ---------------------------------------------------------------------------
# Destination registry
# ---------------------------------------------------------------------------

class RegistryError(DeviationImportError):
    """Base class for registry API failures."""


class RegistryHTTPError(RegistryError):
    """Transport failure or non-2xx HTTP status from the registry.

    Attributes:
        status_code: HTTP status, None when no response was received
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code


class RegistryGraphQLError(RegistryError):
    """Application-level errors returned alongside a success status.

    Attributes:
        messages: Individual error messages as returned by the server
    """

    def __init__(self, messages: list[str]):
        super().__init__(f"GraphQL Error: {', '.join(messages)}", {"messages": messages})
        self.messages = messages
