"""Exception types surfaced by catalog services and provider clients."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for catalog failures callers are expected to handle."""


class VenueNotFoundError(CatalogError, LookupError):
    def __init__(self, venue_id: str, role: str = "venue") -> None:
        super().__init__(f"{role.capitalize()} venue not found: {venue_id}")
        self.venue_id = venue_id
        self.role = role


class SourceNotConfiguredError(CatalogError):
    """Raised when a provider client is built without its credentials."""

    def __init__(self, setting_name: str) -> None:
        super().__init__(f"{setting_name} not configured")
        self.setting_name = setting_name


class ProviderError(CatalogError):
    """A provider answered with a non-success HTTP status."""

    def __init__(self, provider: str, status_code: int, body: str = "") -> None:
        excerpt = body[:500]
        message = f"{provider} API error {status_code}"
        if excerpt:
            message = f"{message}: {excerpt}"
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
