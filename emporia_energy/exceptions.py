"""Error taxonomy for the Emporia bridge.

Every error the core raises derives from :class:`EmporiaError` so hosts can
isolate failures with a single ``except`` clause.
"""

from __future__ import annotations


class EmporiaError(RuntimeError):
    """Base class for all bridge errors."""


class CognitoError(EmporiaError):
    """Cognito rejected a request or answered with something unexpected."""

    def __init__(self, message: str, *, error_type: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.status = status


class AuthError(EmporiaError):
    """Base class for authentication and session failures."""


class InvalidCredentialsError(AuthError):
    pass


class NoRefreshTokenError(AuthError):
    pass


class RefreshRejectedError(AuthError):
    pass


class SessionExpiredError(AuthError):
    pass


class UnauthenticatedError(AuthError):
    pass


class LoginFailedError(AuthError):
    """Login failed for a reason other than bad credentials (throttling, unsupported challenge)."""


class AuthNetworkError(AuthError):
    """The identity provider could not be reached during login or refresh."""


class AuthorizationRejectedError(AuthError):
    """The vendor API answered 401; drives the refresh-and-retry policy."""


class NetworkError(EmporiaError):
    pass


class NetworkTimeoutError(NetworkError):
    pass


class NetworkUnreachableError(NetworkError):
    pass


class DeviceError(EmporiaError):
    pass


class DeviceNotFoundError(DeviceError):
    pass


class RejectedStateError(DeviceError):
    pass


class StorageError(EmporiaError):
    pass


class StorageReadError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class VendorResponseError(EmporiaError):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class InvalidConfigError(EmporiaError):
    pass
