"""
Defines custom exceptions for the application to allow for more specific error handling.

Every exception carries an optional ``recovery_suggestion`` that callers (the CLI,
connection tests) can surface to the user next to the error message.
"""

NETWORK_HINTS = (
    "\n• Check that you are connected to the VPN if one is required"
    "\n• Check the reverse proxy URL if you use one"
)


class MediaHubError(Exception):
    """Base exception for all application-specific errors."""

    recovery_suggestion: str | None = None

    def __init__(self, message: str = "", recovery_suggestion: str | None = None):
        super().__init__(message or self.__doc__)
        if recovery_suggestion is not None:
            self.recovery_suggestion = recovery_suggestion


class ConfigurationError(MediaHubError):
    """Raised for issues related to configuration loading or validation."""


class CredentialMissingError(MediaHubError):
    """Raised when an instance has no usable credentials stored."""

    recovery_suggestion = "Edit the instance and enter its credentials again."


class CredentialStoreError(MediaHubError):
    """Raised when the secure credential store cannot be read or written."""

    recovery_suggestion = "Check the permissions of the configuration directory."


class LocalMisconfigurationError(MediaHubError):
    """Raised for local configuration mistakes detected before any network call."""


class InvalidURLError(LocalMisconfigurationError):
    """Raised when an instance base URL cannot be used."""

    recovery_suggestion = "Check the base URL of your instance."


class NetworkError(MediaHubError):
    """Base class for transport level failures."""


class NetworkUnreachableError(NetworkError):
    """Raised when the host cannot be reached."""

    recovery_suggestion = (
        "Check that you are connected to the internet or the local network."
        + NETWORK_HINTS
    )


class TLSError(NetworkError):
    """Raised when the TLS handshake or certificate validation fails."""

    recovery_suggestion = (
        "Check the server certificate, or use http:// if the service does not "
        "serve TLS."
    )


class RequestTimeoutError(NetworkError):
    """Raised when the server does not answer in time."""

    recovery_suggestion = "Check your network connection and try again." + NETWORK_HINTS


class HTTPStatusError(MediaHubError):
    """Raised when a backend answers with a non-success HTTP status."""

    def __init__(
        self,
        status: int,
        message: str = "",
        recovery_suggestion: str | None = None,
    ):
        super().__init__(message or f"Server error ({status})", recovery_suggestion)
        self.status = status


class AuthRejectedError(HTTPStatusError):
    """Raised when the backend rejects the supplied credentials (401/403)."""

    recovery_suggestion = "Check that your API key is correct and valid."


class NotFoundError(HTTPStatusError):
    """Raised when the backend answers 404."""

    recovery_suggestion = "Check that the service is correctly configured."


class RequestRejectedError(HTTPStatusError):
    """Raised for client errors other than auth and not-found (e.g. 409 conflict)."""


class BackendError(HTTPStatusError):
    """Raised when the backend fails with a 5xx status."""

    recovery_suggestion = "The server is having trouble, try again later."


class DecodeMismatchError(MediaHubError):
    """Raised when a backend response does not have the expected shape."""


class FetchSupersededError(MediaHubError):
    """Raised to the caller of a fetch that was replaced by a newer one."""
