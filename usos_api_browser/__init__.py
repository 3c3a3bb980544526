"""USOS API Browser core: OAuth 1.0a signing, token acquisition and method catalog."""

__version__ = "0.1.0"
