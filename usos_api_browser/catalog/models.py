"""Pydantic models for the method catalog and OAuth credentials."""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from ..errors import SigningError

AS_USER_ID = "as_user_id"


class AuthRequirement(str, Enum):
    """How a method treats a consumer key or a token."""

    IGNORED = "ignored"
    OPTIONAL = "optional"
    REQUIRED = "required"


class Installation(BaseModel):
    """One USOS API installation, identified by its base URL."""

    model_config = ConfigDict(frozen=True)

    base_url: str


class Scope(BaseModel):
    """Permission grant a token can be authorized for."""

    key: str
    description: str = Field(
        default="",
        validation_alias=AliasChoices("description", "developers_description")
    )


class MethodArgument(BaseModel):
    """Single argument of an API method."""

    name: str
    is_required: bool = False
    description: str = ""


class Method(BaseModel):
    """
    API method description.

    The listing form (method index) only carries name and brief_description;
    the detail form adds arguments, ref_url and the auth options.
    """

    name: str
    brief_description: str = ""
    ref_url: str = ""
    arguments: list[MethodArgument] = Field(default_factory=list)
    auth_options_token: AuthRequirement = AuthRequirement.IGNORED
    auth_options_consumer: AuthRequirement = AuthRequirement.IGNORED
    auth_options_ssl_required: bool = False
    is_detailed: bool = False

    @model_validator(mode="before")
    @classmethod
    def flatten_auth_options(cls, data: Any) -> Any:
        """Flatten the wire's nested auth_options object."""
        if not isinstance(data, dict) or "auth_options" not in data:
            return data
        data = dict(data)
        options = data.pop("auth_options") or {}
        if not isinstance(options, dict):
            raise ValueError("auth_options must be an object")
        for key in ("token", "consumer", "ssl_required"):
            if key in options:
                data[f"auth_options_{key}"] = options[key]
        return data

    @property
    def short_name(self) -> str:
        """Last segment of the method path."""
        return self.name.rsplit("/", 1)[-1]

    def form_arguments(self) -> list[MethodArgument]:
        """Arguments to offer a caller, including as_user_id for token-aware methods."""
        arguments = list(self.arguments)
        if (
            self.auth_options_token != AuthRequirement.IGNORED
            and not any(arg.name == AS_USER_ID for arg in arguments)
        ):
            arguments.append(MethodArgument(name=AS_USER_ID))
        return arguments


class TokenPair(BaseModel):
    """OAuth token and its secret (request or access)."""

    token: str
    token_secret: str


class Credentials(BaseModel):
    """Consumer and token credentials; each part may be empty."""

    consumer_key: str = ""
    consumer_secret: str = ""
    token: str = ""
    token_secret: str = ""

    @property
    def has_consumer(self) -> bool:
        """Check if a consumer key is set."""
        return bool(self.consumer_key)

    def for_signing(self, sign_with_consumer: bool, sign_with_token: bool) -> "Credentials":
        """
        Resolve "sign with consumer" / "sign with token" choices.

        Args:
            sign_with_consumer: Sign with the consumer key and secret
            sign_with_token: Also sign with the token and its secret

        Returns:
            Credentials with the unused parts blanked out

        Raises:
            SigningError: If signing with a token but not the consumer key
        """
        if sign_with_token and not sign_with_consumer:
            raise SigningError("Signing with a token requires signing with the consumer key")
        if not sign_with_consumer:
            return Credentials()
        if not sign_with_token:
            return Credentials(consumer_key=self.consumer_key, consumer_secret=self.consumer_secret)
        return self.model_copy()

    def with_token(self, pair: TokenPair) -> "Credentials":
        """Copy with the token pair replaced."""
        return self.model_copy(update={"token": pair.token, "token_secret": pair.token_secret})
