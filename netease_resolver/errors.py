"""
Error types for track resolution.

Every failure in the resolver surfaces as a subclass of NeteaseError so
callers can catch the whole family or a single kind.
"""


class NeteaseError(Exception):
    """Base class for all resolver errors."""

    pass


class InvalidUrl(NeteaseError):
    """URL cannot be parsed or carries no usable track id."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class SigningError(NeteaseError):
    """Request parameters could not be signed."""

    pass


class NetworkError(NeteaseError):
    """Transport failure or non-200 HTTP status."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class ApiError(NeteaseError):
    """Vendor envelope reported a non-success code."""

    def __init__(self, message: str, code: int = 0):
        super().__init__(message)
        self.code = code


class DecodeError(NeteaseError):
    """Response body does not have the expected JSON shape."""

    pass


class EmptyResult(NeteaseError):
    """Vendor accepted the request but returned no payload entries."""

    pass


class TrackNotFound(EmptyResult):
    """Song detail lookup returned no songs."""

    pass


class NoUrlAvailable(EmptyResult):
    """No playable URL at the requested bitrate/region."""

    pass


class ProgramHasNoTrack(EmptyResult):
    """Program container is empty or does not wrap a track."""

    pass


class SpawnError(NeteaseError):
    """Decoder process could not be started."""

    pass
