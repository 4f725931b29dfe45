class RouterClientException(Exception):
    pass


class ConfigException(RouterClientException):
    """Invalid exporter configuration (router IP, timeout, listen address)."""
    pass


class AuthenticationException(RouterClientException):
    """createContext failed: transport error, malformed JSON or empty contextID."""
    pass


class FetchException(RouterClientException):
    """An authenticated API call failed at transport level or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ParseException(RouterClientException):
    """A 2xx response body could not be decoded as a JSON object."""
    pass
