"""Custom exceptions for the registry purge engine."""


class PurgeError(Exception):
    """Base exception for all purge-related errors."""

    pass


class ParseError(PurgeError):
    """Raised when an age/duration expression cannot be parsed."""

    pass


class PatternError(PurgeError):
    """Raised when a tag filter is not a valid regular expression."""

    pass


class ValidationError(PurgeError):
    """Raised when a reference or input value is malformed."""

    pass


class MetadataError(PurgeError):
    """Raised when an archive record cannot be decoded or persisted."""

    pass


class RegistryError(PurgeError):
    """Raised when the registry answers with an error response.

    Attributes:
        code: Registry error code (e.g. ``MANIFEST_UNKNOWN``)
        message: Human readable message sent by the registry
        status: HTTP status code, if any
    """

    def __init__(self, code: str, message: str, status: int | None = None) -> None:
        super().__init__(f"{code} {message}")
        self.code = code
        self.message = message
        self.status = status

    @property
    def not_found(self) -> bool:
        """True if the registry reported that the resource does not exist."""
        return self.status == 404


class TransportError(RegistryError):
    """Raised when unable to talk to the registry at all."""

    def __init__(self, message: str) -> None:
        super().__init__("TRANSPORT", message)
