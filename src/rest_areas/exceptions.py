class RestAreaFinderError(Exception):
    """Base exception for rest-area resolution errors."""


class ExternalServiceError(RestAreaFinderError):
    """Raised when an upstream API call fails."""


class InvalidRouteError(RestAreaFinderError):
    """Raised when the route input is empty or malformed."""


class NoRouteFoundError(RestAreaFinderError):
    """Raised when a drivable route cannot be generated."""


class DataUnavailableError(RestAreaFinderError):
    """Raised when a reference catalog cannot be fetched."""
