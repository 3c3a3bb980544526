"""OAuth 1.0a (HMAC-SHA1) request signing and URL building."""

import base64
import hashlib
import hmac
import secrets
import time
from typing import Mapping, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from ..errors import SigningError

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"

# RFC 3986 unreserved characters, minus the alphanumerics quote() never escapes
_UNRESERVED = "-._~"


def percent_encode(value: str) -> str:
    """
    Percent-encode a value per RFC 3986 (as OAuth 1.0a requires).

    Spaces become %20, never '+'.
    """
    return quote(str(value).encode("utf-8"), safe=_UNRESERVED)


def generate_nonce() -> str:
    """Generate a single-use random nonce."""
    return secrets.token_hex(16)


def generate_timestamp() -> int:
    """Get seconds since epoch."""
    return int(time.time())


def _split_url(url: str):
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a malformed port
    except ValueError as e:
        raise SigningError(f"Malformed URL {url!r}: {e}") from e
    return parts


def base_string_uri(url: str) -> str:
    """Normalize a URL for the signature base string (no query, no default port)."""
    parts = _split_url(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        netloc = f"{host}:{port}"
    else:
        netloc = host
    return urlunsplit((scheme, netloc, parts.path or "/", "", ""))


def normalize_parameters(params: Mapping[str, str]) -> str:
    """Encode, sort (by key, then value) and join request parameters."""
    pairs = sorted((percent_encode(k), percent_encode(v)) for k, v in params.items())
    return "&".join(f"{k}={v}" for k, v in pairs)


def signature_base_string(http_method: str, url: str, params: Mapping[str, str]) -> str:
    """Build the OAuth 1.0a signature base string."""
    return "&".join((
        percent_encode(http_method.upper()),
        percent_encode(base_string_uri(url)),
        percent_encode(normalize_parameters(params))
    ))


def hmac_sha1_signature(base_string: str, consumer_secret: str = "", token_secret: str = "") -> str:
    """
    Compute the base64 HMAC-SHA1 signature of a base string.

    Args:
        base_string: Signature base string
        consumer_secret: Consumer secret (may be empty)
        token_secret: Token secret (may be empty)

    Returns:
        Base64-encoded digest (not yet percent-encoded)
    """
    key = f"{percent_encode(consumer_secret)}&{percent_encode(token_secret)}"
    digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def with_scheme(base_url: str, use_ssl: Optional[bool]) -> str:
    """Force https/http on a base URL, or keep its scheme when use_ssl is None."""
    if use_ssl is None:
        return base_url
    parts = _split_url(base_url)
    return urlunsplit(("https" if use_ssl else "http",) + tuple(parts[1:]))


def build_signed_url(
    base_url: str,
    method_path: str,
    params: Optional[Mapping[str, str]] = None,
    consumer_key: str = "",
    consumer_secret: str = "",
    token: str = "",
    token_secret: str = "",
    use_ssl: Optional[bool] = None,
    nonce: Optional[str] = None,
    timestamp: Optional[int] = None
) -> str:
    """
    Build a (possibly signed) GET URL for an API method.

    Without a consumer key the URL is unsigned and carries only the caller's
    params. With a consumer key it is signed over the consumer secret and,
    when a token is given, the token secret.

    Args:
        base_url: Installation base URL (e.g., https://usosapps.uw.edu.pl/)
        method_path: Method path (e.g., services/oauth/request_token)
        params: Method arguments
        consumer_key: Consumer key, empty for an unsigned URL
        consumer_secret: Consumer secret (may be empty)
        token: Token, empty to sign with the consumer only
        token_secret: Token secret (may be empty)
        use_ssl: True for https, False for http, None to keep base_url's scheme
        nonce: Fixed nonce (random if omitted)
        timestamp: Fixed timestamp (current time if omitted)

    Returns:
        Complete URL with query string

    Raises:
        SigningError: If a token is given without a consumer key, or the
            base URL cannot be parsed for signing
    """
    if token and not consumer_key:
        raise SigningError("Cannot sign with a token without a consumer key")

    url = f"{with_scheme(base_url, use_ssl).rstrip('/')}/{method_path.lstrip('/')}"
    query = dict(params or {})

    if consumer_key:
        oauth_params = {
            "oauth_consumer_key": consumer_key,
            "oauth_nonce": nonce or generate_nonce(),
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_timestamp": str(timestamp if timestamp is not None else generate_timestamp()),
            "oauth_version": OAUTH_VERSION
        }
        if token:
            oauth_params["oauth_token"] = token
        oauth_params.update(query)
        query = oauth_params
        base_string = signature_base_string("GET", url, query)
        signature = hmac_sha1_signature(base_string, consumer_secret, token_secret if token else "")
        query_string = f"{normalize_parameters(query)}&oauth_signature={percent_encode(signature)}"
    else:
        query_string = normalize_parameters(query)

    if not query_string:
        return url
    return f"{url}?{query_string}"
