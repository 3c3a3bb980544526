"""Browsing session: current installation with its methods, scopes and tree."""

import logging
from typing import Iterable, Mapping, Optional

from .client import CatalogClient
from .models import Credentials, Installation, Method, Scope
from .response import make_readable
from .tree import MethodTreeNode, build_tree

logger = logging.getLogger(__name__)


class Session:
    """
    State of one browsing context.

    The installation-dependent state (methods, scopes, tree) is always
    replaced as a whole; a failed refresh leaves the previous state intact.
    Not safe for concurrent refreshes.
    """

    def __init__(self, catalog: CatalogClient, installation: Installation):
        self.catalog = catalog
        self.current_installation = installation
        self.methods: list[Method] = []
        self.scopes: list[Scope] = []
        self.tree: MethodTreeNode = build_tree([])
        self.known_installations: list[Installation] = []

    def load_installations(self, extra: Iterable[Installation] = ()) -> list[Installation]:
        """
        Fetch the installation list from the mother installation.

        Args:
            extra: Additional installations appended after the fetched ones

        Returns:
            Known installations, without duplicates

        Raises:
            TransportError, DecodeError: Left to the caller to fall back on
        """
        installations = self.catalog.list_installations()
        known: list[Installation] = []
        for installation in [*installations, *extra]:
            if installation not in known:
                known.append(installation)
        self.known_installations = known
        return known

    def switch_installation(self, installation: Installation) -> None:
        """Select another installation and drop all of its predecessor's data."""
        if installation == self.current_installation:
            return
        logger.info(f"Switching installation to {installation.base_url}")
        self.current_installation = installation
        self.methods = []
        self.scopes = []
        self.tree = build_tree([])
        self.catalog.invalidate()

    def refresh(self) -> MethodTreeNode:
        """
        Reload methods and scopes of the current installation and rebuild the tree.

        Returns:
            New tree root

        Raises:
            TransportError, DecodeError: Session state is left unchanged
        """
        installation = self.current_installation
        methods = self.catalog.list_methods(installation)
        scopes = self.catalog.list_scopes(installation)
        tree = build_tree(methods)

        self.methods, self.scopes, self.tree = methods, scopes, tree
        if installation not in self.known_installations:
            self.known_installations.append(installation)
        logger.info(f"Loaded {len(methods)} methods and {len(scopes)} scopes from {installation.base_url}")
        return tree

    def get_method_detail(self, method_name: str) -> Method:
        """Full description of a method of the current installation."""
        return self.catalog.get_method_detail(self.current_installation, method_name)

    def method_url(
        self,
        method_name: str,
        arguments: Optional[Mapping[str, str]] = None,
        credentials: Optional[Credentials] = None,
        use_ssl: Optional[bool] = None
    ) -> str:
        """Signed URL of a method call on the current installation."""
        return self.catalog.method_url(self.current_installation, method_name, arguments, credentials, use_ssl)

    def execute(
        self,
        method_name: str,
        arguments: Optional[Mapping[str, str]] = None,
        credentials: Optional[Credentials] = None,
        use_ssl: Optional[bool] = None,
        readable: bool = False
    ) -> str:
        """
        Call a method on the current installation.

        Returns:
            Response body, pretty-printed if readable is set

        Raises:
            TransportError: Carries the server's error body when there is one
        """
        return self.call(self.method_url(method_name, arguments, credentials, use_ssl), readable)

    def call(self, url: str, readable: bool = False) -> str:
        """Send a URL prepared by method_url() exactly as built."""
        body = self.catalog.call(url)
        return make_readable(body) if readable else body
