"""Three-legged OAuth 1.0a token acquisition ("Quick Fill")."""

import logging
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional

from ..catalog.models import Installation, TokenPair
from ..errors import ProtocolError, SigningError, TransportError
from ..transport import HttpTransport
from .browser import open_in_browser
from .signer import build_signed_url

logger = logging.getLogger(__name__)

REQUEST_TOKEN_PATH = "services/oauth/request_token"
AUTHORIZE_PATH = "services/oauth/authorize"
ACCESS_TOKEN_PATH = "services/oauth/access_token"

# Installations without TLS (e.g. developer setups) only answer over http
DEFAULT_SCHEMES = ("https", "http")


class FlowState(str, Enum):
    START = "start"
    REQUEST_TOKEN = "request_token"
    AWAITING_USER_AUTHORIZATION = "awaiting_user_authorization"
    AWAITING_VERIFIER = "awaiting_verifier"
    ACCESS_TOKEN = "access_token"
    DONE = "done"
    FAILED = "failed"


def parse_token_response(body: str) -> TokenPair:
    """
    Extract oauth_token and oauth_token_secret from a token endpoint response.

    The body is split literally on '&' and values are taken as-is, without
    URL-decoding.

    Raises:
        ProtocolError: If either key is missing
    """
    token = None
    token_secret = None
    for part in body.strip().split("&"):
        if part.startswith("oauth_token="):
            token = part[len("oauth_token="):]
        if part.startswith("oauth_token_secret="):
            token_secret = part[len("oauth_token_secret="):]
    if token is None or token_secret is None:
        raise ProtocolError("Could not parse token response", body=body)
    return TokenPair(token=token, token_secret=token_secret)


class TokenAcquisitionFlow:
    """
    Request token -> user authorization -> verifier -> access token.

    Each network step tries the configured URL schemes in order and moves on
    to the next one only on a transport failure.
    """

    def __init__(
        self,
        transport: HttpTransport,
        installation: Installation,
        consumer_key: str,
        consumer_secret: str,
        scopes: Iterable[str] = (),
        schemes: Iterable[str] = DEFAULT_SCHEMES,
        timeout: Optional[float] = None
    ):
        """
        Initialize flow.

        Args:
            transport: HTTP transport
            installation: Installation to acquire a token from
            consumer_key: Registered consumer key
            consumer_secret: Consumer secret
            scopes: Scope keys to request
            schemes: URL schemes to try, in order, for each network step
            timeout: Per-request timeout (transport default if None)

        Raises:
            SigningError: If no consumer key is given
            ValueError: If no scheme is given
        """
        if not consumer_key:
            raise SigningError("A consumer key is required to acquire tokens")
        self.schemes = tuple(schemes)
        if not self.schemes:
            raise ValueError("At least one URL scheme is required")

        self.transport = transport
        self.installation = installation
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.scopes = list(scopes)
        self.timeout = timeout

        self.state = FlowState.START
        self.request_token: Optional[TokenPair] = None
        self.access_token: Optional[TokenPair] = None

    def _fetch(self, path: str, params: Mapping[str, str], token: Optional[TokenPair] = None) -> str:
        last_error: Optional[TransportError] = None
        for scheme in self.schemes:
            url = build_signed_url(
                self.installation.base_url,
                path,
                params,
                consumer_key=self.consumer_key,
                consumer_secret=self.consumer_secret,
                token=token.token if token else "",
                token_secret=token.token_secret if token else "",
                use_ssl=(scheme == "https")
            )
            try:
                _, body = self.transport.get(url, timeout=self.timeout)
                return body.decode("utf-8", errors="replace")
            except TransportError as e:
                logger.warning(f"{path} over {scheme} failed: {e}")
                last_error = e
        self.state = FlowState.FAILED
        raise last_error

    def _parse(self, body: str) -> TokenPair:
        try:
            return parse_token_response(body)
        except ProtocolError:
            self.state = FlowState.FAILED
            raise

    def fetch_request_token(self) -> TokenPair:
        """
        Obtain a request token (signed with consumer credentials only).

        Raises:
            RuntimeError: If the flow has already moved past this step
            TransportError: If every scheme failed
            ProtocolError: If the response lacks the token or its secret
        """
        if self.state != FlowState.START:
            raise RuntimeError(f"Cannot request a token in state {self.state.value}")
        self.state = FlowState.REQUEST_TOKEN

        params = {"oauth_callback": "oob"}
        if self.scopes:
            params["scopes"] = "|".join(self.scopes)

        self.request_token = self._parse(self._fetch(REQUEST_TOKEN_PATH, params))
        self.state = FlowState.AWAITING_USER_AUTHORIZATION
        return self.request_token

    def authorization_url(self) -> str:
        """
        Unsigned URL of the page where the user authorizes the request token.

        Raises:
            RuntimeError: If there is no request token yet
        """
        if self.request_token is None:
            raise RuntimeError("No request token. Call fetch_request_token() first.")
        return build_signed_url(
            self.installation.base_url,
            AUTHORIZE_PATH,
            {"oauth_token": self.request_token.token}
        )

    def open_authorization_page(self, launcher: Callable[[str], bool] = open_in_browser) -> bool:
        """
        Hand the authorization URL to a browser launcher.

        Returns:
            Whatever the launcher reports; the flow proceeds either way
        """
        if self.state != FlowState.AWAITING_USER_AUTHORIZATION:
            raise RuntimeError(f"Cannot authorize in state {self.state.value}")
        opened = launcher(self.authorization_url())
        self.state = FlowState.AWAITING_VERIFIER
        return opened

    def exchange_verifier(self, verifier: str) -> TokenPair:
        """
        Exchange the verifier (PIN) for an access token.

        Args:
            verifier: PIN shown by the authorization page

        Raises:
            RuntimeError: If the request token step has not completed
            TransportError: If every scheme failed
            ProtocolError: If the response lacks the token or its secret
        """
        if self.state not in (FlowState.AWAITING_USER_AUTHORIZATION, FlowState.AWAITING_VERIFIER):
            raise RuntimeError(f"Cannot exchange a verifier in state {self.state.value}")
        self.state = FlowState.ACCESS_TOKEN

        body = self._fetch(ACCESS_TOKEN_PATH, {"oauth_verifier": verifier.strip()}, token=self.request_token)
        self.access_token = self._parse(body)
        self.state = FlowState.DONE
        return self.access_token

    def run(
        self,
        read_verifier: Callable[[str], str],
        launcher: Callable[[str], bool] = open_in_browser
    ) -> TokenPair:
        """
        Run the whole sequence.

        Args:
            read_verifier: Called with the authorization URL, returns the PIN
            launcher: Browser launcher

        Returns:
            Access token pair
        """
        self.fetch_request_token()
        self.open_authorization_page(launcher)
        return self.exchange_verifier(read_verifier(self.authorization_url()))
