"""Errors raised by taste sources and their session contexts."""


class TasteSourceError(Exception):
    """Base class for taste retrieval failures."""
    pass


class NotConnectedError(TasteSourceError):
    """No usable credential for the account; the user has to (re)connect."""
    pass


class ProviderAPIError(TasteSourceError):
    """Provider answered with a non-success status that retrying will not fix."""

    def __init__(self, provider: str, endpoint: str, status_code: int, body: str = ""):
        super().__init__(f"{provider} API {endpoint}: {status_code} {body}".strip())
        self.provider = provider
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
