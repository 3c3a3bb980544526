"""Blocking HTTP transport used by the catalog client and the token flow."""

import logging
import re
from typing import Optional

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)

_SIGNATURE_RE = re.compile(r"(oauth_signature=)[^&]*")


def _mask_signature(url: str) -> str:
    return _SIGNATURE_RE.sub(r"\1***", url)


class HttpTransport:
    """GET-only HTTP transport over httpx."""

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.Client] = None):
        """
        Initialize transport.

        Args:
            timeout: Default request timeout in seconds
            client: Preconfigured httpx client (a new one is created if omitted)
        """
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        """Close HTTP client."""
        self.client.close()

    def get(self, url: str, timeout: Optional[float] = None) -> tuple[int, bytes]:
        """
        Perform a GET request.

        Args:
            url: Fully built (and possibly signed) URL
            timeout: Per-call timeout in seconds, defaults to the transport's

        Returns:
            Tuple of (status code, raw body)

        Raises:
            TransportError: On a malformed URL, network failure, timeout or
                non-2xx status after redirects
        """
        logger.debug(f"GET {_mask_signature(url)}")
        try:
            response = self.client.get(url, timeout=timeout or self.timeout, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Request failed: {e}", url=url) from e

        if not response.is_success:
            raise TransportError(
                f"Server responded with {response.reason_phrase or 'an error'}",
                status=response.status_code,
                body=response.content,
                url=url
            )
        return response.status_code, response.content

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
