"""Method catalog: models, client, tree and browsing session."""

from .client import CatalogClient
from .models import (
    AuthRequirement,
    Credentials,
    Installation,
    Method,
    MethodArgument,
    Scope,
    TokenPair,
)
from .session import Session
from .tree import MethodTreeNode, build_tree

__all__ = [
    "AuthRequirement",
    "CatalogClient",
    "Credentials",
    "Installation",
    "Method",
    "MethodArgument",
    "MethodTreeNode",
    "Scope",
    "Session",
    "TokenPair",
    "build_tree",
]
