"""Error taxonomy for the protection pipeline."""


class ProtectionError(Exception):
    """Base class for protection pipeline failures."""


class SerializationError(ProtectionError):
    """Capture jobs could not be packaged into a request."""


class TransportError(ProtectionError):
    """The protection service could not be reached or answered non-2xx."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseParseError(ProtectionError):
    """A service response body did not match the expected shape."""
