"""Custom exception classes for the acquisition and tracking pipeline."""


class DealGalaxyException(Exception):
    """Base exception for all DealGalaxy errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NavigationTimeout(DealGalaxyException):
    """Raised when a page does not settle within the navigation timeout."""

    def __init__(self, url: str, timeout_ms: int = 30000):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Navigation to {url} did not settle within {timeout_ms}ms")


class SessionError(DealGalaxyException):
    """Raised on a lower-level browser or transport failure."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Fetch session failed for {url}: {reason}")


class IdentifierMissing(DealGalaxyException):
    """Raised when no product identifier can be derived from a URL."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No product identifier found in URL '{url}'")


class ExtractionFailed(DealGalaxyException):
    """Raised when a page yields no usable title or price."""

    def __init__(self, url: str, reason: str = "no usable price"):
        self.url = url
        self.reason = reason
        super().__init__(f"Extraction failed for {url}: {reason}")


class DuplicateTracking(DealGalaxyException):
    """Raised when an owner already actively tracks the same product."""

    def __init__(self, owner_id: str, asin: str):
        self.owner_id = owner_id
        self.asin = asin
        super().__init__(f"Product '{asin}' is already being tracked by owner '{owner_id}'")


class NotFoundError(DealGalaxyException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class UnauthorizedError(DealGalaxyException):
    """Raised when a resource belongs to a different owner."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"Access to {resource} '{identifier}' is not allowed")


class InvalidRequestError(DealGalaxyException):
    """Raised when a request is rejected before any work is done."""
