"""Client for the installation, method and scope description endpoints."""

import json
import logging
from typing import Any, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from ..errors import DecodeError
from ..oauth.signer import build_signed_url
from ..transport import HttpTransport
from .models import Credentials, Installation, Method, Scope

logger = logging.getLogger(__name__)

INSTALLATIONS_PATH = "services/apisrv/installations"
METHOD_INDEX_PATH = "services/apiref/method_index"
METHOD_DETAIL_PATH = "services/apiref/method"
SCOPES_PATH = "services/apiref/scopes"
DEVELOPERS_PATH = "developers/"

_installations_adapter = TypeAdapter(list[Installation])
_methods_adapter = TypeAdapter(list[Method])
_scopes_adapter = TypeAdapter(list[Scope])


class CatalogClient:
    """Fetches installations, methods and scopes from USOS API installations."""

    def __init__(
        self,
        transport: HttpTransport,
        mother_installation: Installation,
        credentials: Optional[Credentials] = None
    ):
        """
        Initialize catalog client.

        Args:
            transport: HTTP transport used for every call
            mother_installation: Installation that lists all the others
            credentials: Consumer credentials to sign discovery calls with (optional)
        """
        self.transport = transport
        self.mother_installation = mother_installation
        self.credentials = credentials
        self._details: dict[str, Method] = {}
        self._details_installation: Optional[Installation] = None

    def invalidate(self) -> None:
        """Drop all cached method details."""
        self._details.clear()
        self._details_installation = None

    def _url(self, installation: Installation, path: str, params: Optional[Mapping[str, str]] = None) -> str:
        credentials = self.credentials or Credentials()
        return build_signed_url(
            installation.base_url,
            path,
            params,
            consumer_key=credentials.consumer_key,
            consumer_secret=credentials.consumer_secret
        )

    def _fetch_json(self, url: str) -> Any:
        _, body = self.transport.get(url)
        try:
            return json.loads(body)
        except ValueError as e:
            raise DecodeError(f"Response is not valid JSON: {e}", body=body) from e

    def _decode(self, adapter: TypeAdapter, url: str) -> Any:
        data = self._fetch_json(url)
        try:
            return adapter.validate_python(data)
        except ValidationError as e:
            raise DecodeError(f"Unexpected response format: {e}") from e

    def list_installations(self) -> list[Installation]:
        """
        List all USOS API installations known to the mother installation.

        Raises:
            TransportError: If the mother installation is unreachable
            DecodeError: If the payload is malformed
        """
        return self._decode(_installations_adapter, self._url(self.mother_installation, INSTALLATIONS_PATH))

    def list_methods(self, installation: Installation) -> list[Method]:
        """
        List methods of an installation (listing form: name and brief description).

        Raises:
            TransportError: If the installation is unreachable
            DecodeError: If the payload is malformed
        """
        self._check_cache_owner(installation)
        return self._decode(_methods_adapter, self._url(installation, METHOD_INDEX_PATH))

    def get_method_detail(self, installation: Installation, method_name: str) -> Method:
        """
        Get full description of a method (arguments, auth options).

        Cached per method until the installation changes or invalidate() is called.

        Raises:
            TransportError: If the installation is unreachable
            DecodeError: If the payload is malformed
        """
        self._check_cache_owner(installation)
        cached = self._details.get(method_name)
        if cached is not None:
            return cached

        data = self._fetch_json(self._url(installation, METHOD_DETAIL_PATH, {"name": method_name}))
        try:
            method = Method.model_validate(data).model_copy(update={"is_detailed": True})
        except ValidationError as e:
            raise DecodeError(f"Unexpected method description format: {e}") from e

        self._details_installation = installation
        self._details[method_name] = method
        return method

    def list_scopes(self, installation: Installation) -> list[Scope]:
        """
        List authorization scopes of an installation.

        Raises:
            TransportError: If the installation is unreachable
            DecodeError: If the payload is malformed
        """
        self._check_cache_owner(installation)
        return self._decode(_scopes_adapter, self._url(installation, SCOPES_PATH))

    def _check_cache_owner(self, installation: Installation) -> None:
        if self._details_installation is not None and self._details_installation != installation:
            logger.debug(f"Installation changed to {installation.base_url}, dropping cached method details")
            self.invalidate()

    def method_url(
        self,
        installation: Installation,
        method_name: str,
        arguments: Optional[Mapping[str, str]] = None,
        credentials: Optional[Credentials] = None,
        use_ssl: Optional[bool] = None
    ) -> str:
        """
        Build a URL calling a method, signed with whatever credentials are given.

        Args:
            installation: Target installation
            method_name: Method path
            arguments: Argument values; empty values are left out
            credentials: Credentials already resolved for signing (None for unsigned)
            use_ssl: Force https/http, or None to keep the installation's scheme

        Returns:
            Complete method URL
        """
        params = {name: value for name, value in (arguments or {}).items() if value}
        credentials = credentials or Credentials()
        return build_signed_url(
            installation.base_url,
            method_name,
            params,
            consumer_key=credentials.consumer_key,
            consumer_secret=credentials.consumer_secret,
            token=credentials.token,
            token_secret=credentials.token_secret,
            use_ssl=use_ssl
        )

    def call(self, url: str, timeout: Optional[float] = None) -> str:
        """
        Execute a prepared method URL.

        Returns:
            Response body as text

        Raises:
            TransportError: On network failure or non-2xx status
        """
        _, body = self.transport.get(url, timeout=timeout)
        return body.decode("utf-8", errors="replace")

    def developers_url(self, installation: Installation) -> str:
        """URL of the installation's developer center (consumer key registration)."""
        return build_signed_url(installation.base_url, DEVELOPERS_PATH)
