# sourcing/clients/errors.py

"""Error taxonomy for external marketplace, scraping and AI calls."""


class CatalogError(Exception):
    """Base class for failures talking to an external catalog."""


class RateLimitedError(CatalogError):
    """The marketplace answered HTTP 429; retry later."""

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(
            f"{source}: rate limit exceeded, please try again later"
        )


class AuthenticationError(CatalogError):
    """Credentials were rejected (401/403) or are not configured."""

    def __init__(self, source: str, detail: str = "") -> None:
        self.source = source
        message = f"{source}: authentication failed"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class UpstreamError(CatalogError):
    """Any other non-2xx answer or transport failure."""

    def __init__(self, source: str, status: int, body: str = "") -> None:
        self.source = source
        self.status = status
        self.body = body
        super().__init__(f"{source}: API error {status}: {body[:200]}")


class ScrapeError(Exception):
    """A product URL could not be scraped into usable data."""


class EnhancementError(Exception):
    """The AI-text capability was unreachable or returned nothing usable."""
