import os
from typing import Optional, Any, List, Mapping
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator, ValidationError

from drsfs.core.errors import AuthConfigurationError


class GoogleAuthConfig(BaseModel):
    """One named entry of the global `google.auths` list."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    scheme: str
    json_file: Optional[str] = Field(default=None, alias="json-file")
    client_id: Optional[str] = Field(default=None, alias="client-id")
    client_secret: Optional[str] = Field(default=None, alias="client-secret")

    @field_validator('name', 'scheme', mode='before')
    def validate_not_empty_str(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Value cannot be empty or whitespace only")
        return v.strip()

    @model_validator(mode='after')
    def validate_scheme_fields(self):
        if self.scheme == "service_account" and not self.json_file:
            raise ValueError(f"Auth '{self.name}' (service_account) requires json-file")
        if self.scheme == "refresh_token" and not (self.client_id and self.client_secret):
            raise ValueError(f"Auth '{self.name}' (refresh_token) requires client-id and client-secret")
        return self


class GoogleConfiguration(BaseModel):
    """
    Global Google configuration: the credential-provider details for every
    auth name an instance config may select.

    Example (as a mapping):
        {
            "application-name": "cromwell",
            "auths": [
                {"name": "application-default", "scheme": "application_default"},
                {"name": "user-service-account", "scheme": "user_service_account"},
            ],
        }
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    application_name: str = Field(default="drsfs", alias="application-name")
    auths: List[GoogleAuthConfig] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique_names(self):
        names = [a.name for a in self.auths]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate auth names: {duplicates}")
        return self

    @classmethod
    def from_config(cls, global_config: Mapping[str, Any]) -> "GoogleConfiguration":
        """
        Build from a global config mapping, reading its `google` section
        when present. Invalid entries raise AuthConfigurationError.
        """
        section = global_config.get("google", global_config) if global_config else {}
        try:
            return cls.model_validate(section)
        except ValidationError as e:
            raise AuthConfigurationError(str(e)) from e

    @property
    def auth_names(self) -> List[str]:
        return [a.name for a in self.auths]

    def auth(self, name: str):
        """
        Resolve an auth name into its GoogleAuthMode.

        Raises:
            AuthConfigurationError: If no auth with this name is configured
        """
        from drsfs.core.auth.providers import get_auth_mode

        for auth_config in self.auths:
            if auth_config.name == name:
                return get_auth_mode(auth_config, application_name=self.application_name)
        raise AuthConfigurationError(
            f"`google` configuration stanza does not contain an auth named '{name}'. "
            f"Known auth names: {', '.join(self.auth_names) or '<none>'}",
            scheme=name,
        )


class DrsInstanceConfig(BaseModel):
    """Per-filesystem instance config: selects the auth name."""
    model_config = ConfigDict(frozen=True)

    auth: str

    @field_validator('auth', mode='before')
    def validate_not_empty_str(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("auth cannot be empty or whitespace only")
        return v.strip()

    @classmethod
    def from_config(cls, instance_config: Mapping[str, Any]) -> "DrsInstanceConfig":
        try:
            return cls.model_validate(dict(instance_config or {}))
        except ValidationError as e:
            raise AuthConfigurationError(str(e)) from e


class DrsFileSystemConfig(BaseModel):
    """
    Filesystem-wide settings shared by every factory: where the resolution
    service lives and how long a resolution request may take.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    resolver_url: str = Field(..., alias="DRS_RESOLVER_URL")
    timeout: float = Field(default=60.0, alias="DRS_RESOLVER_TIMEOUT")

    @field_validator('resolver_url', mode='before')
    def validate_url(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("resolver_url cannot be empty or whitespace only")
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"resolver_url must be an http(s) url, got '{v}'")
        return v

    @field_validator('timeout', mode='before')
    def coerce_float(cls, v):
        if isinstance(v, (int, float)):
            v = float(v)
        elif isinstance(v, str):
            v = float(v.strip())
        else:
            raise ValueError("Expected float-compatible value")
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DrsFileSystemConfig":
        """Read DRS_RESOLVER_URL and DRS_RESOLVER_TIMEOUT from the environment."""
        env = os.environ if env is None else env
        values = {k: env[k] for k in ("DRS_RESOLVER_URL", "DRS_RESOLVER_TIMEOUT") if k in env}
        return cls.model_validate(values)


__all__ = [
    "GoogleAuthConfig",
    "GoogleConfiguration",
    "DrsInstanceConfig",
    "DrsFileSystemConfig",
]
