"""Error types raised by the browser core."""

from typing import Optional


class UsosApiBrowserError(Exception):
    """Base class for all errors raised by the core."""


class TransportError(UsosApiBrowserError):
    """Network, DNS or TLS failure, or a non-2xx response."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[bytes] = None,
        url: Optional[str] = None
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.url = url

    @property
    def body_text(self) -> str:
        """Server response body decoded for display (empty if none)."""
        if not self.body:
            return ""
        return self.body.decode("utf-8", errors="replace")

    def __str__(self) -> str:
        message = super().__str__()
        if self.status is not None:
            message = f"{message} (HTTP {self.status})"
        return message


class DecodeError(UsosApiBrowserError):
    """Catalog payload is not well-formed JSON of the expected shape."""

    def __init__(self, message: str, body: Optional[bytes] = None):
        super().__init__(message)
        self.body = body


class ProtocolError(UsosApiBrowserError):
    """Well-formed response that lacks the expected OAuth fields."""

    def __init__(self, message: str, body: Optional[str] = None):
        super().__init__(message)
        self.body = body


class SigningError(UsosApiBrowserError, ValueError):
    """Invalid combination of signing credentials."""
